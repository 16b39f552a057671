# tests/test_reconciler.py
"""Unit tests for startup reconciliation of the visitor count."""

from datetime import datetime, timedelta

from app.schemas.visitor_event import VisitorEventType
from app.services.ledger import OccupancyLedger
from app.services.reconciler import reconcile, recover_current_visitor_count

TZ = "Asia/Jakarta"
NOW = datetime(2026, 10, 19, 5, 0, 0)            # 12:00 in Jakarta
LOCAL_MIDNIGHT = datetime(2026, 10, 18, 17, 0, 0)


def log(ledger, kind, count, at=NOW - timedelta(hours=1)):
    for _ in range(count):
        ledger.append_event(kind, timestamp=at)


class TestReconciler:
    def test_crash_recovery_overrides_stale_count(self, ledger):
        log(ledger, VisitorEventType.ENTRY, 5)
        log(ledger, VisitorEventType.EXIT, 2)
        ledger.overwrite_current_visitors(7)

        assert reconcile(ledger, 10, now=NOW) == 3
        assert ledger.get_current_status().current_visitors == 3

    def test_is_idempotent(self, ledger):
        log(ledger, VisitorEventType.ENTRY, 4)
        log(ledger, VisitorEventType.EXIT, 1)
        first = reconcile(ledger, 10, now=NOW)
        second = reconcile(ledger, 10, now=NOW)
        assert first == second == 3

    def test_only_counts_today_in_reference_timezone(self, ledger):
        log(ledger, VisitorEventType.ENTRY, 6, at=LOCAL_MIDNIGHT - timedelta(minutes=1))
        log(ledger, VisitorEventType.ENTRY, 2, at=LOCAL_MIDNIGHT)
        assert reconcile(ledger, 10, now=NOW) == 2

    def test_more_exits_than_entries_clamps_to_zero(self, ledger):
        log(ledger, VisitorEventType.ENTRY, 1)
        log(ledger, VisitorEventType.EXIT, 3)
        assert reconcile(ledger, 10, now=NOW) == 0

    def test_first_boot_creates_status_row(self, session_factory):
        ledger = OccupancyLedger(session_factory, TZ)
        assert reconcile(ledger, 42, now=NOW) == 0
        snap = ledger.get_current_status()
        assert snap.max_capacity == 42
        assert snap.is_open is True

    def test_existing_capacity_is_not_reset(self, ledger):
        ledger.update_max_capacity(30)
        reconcile(ledger, 100, now=NOW)
        assert ledger.get_current_status().max_capacity == 30

    def test_floor_policy_applies_when_enabled_and_open(self, session_factory):
        ledger = OccupancyLedger(session_factory, TZ, keep_min_visitor_while_open=True)
        ledger.bootstrap(10)
        assert recover_current_visitor_count(ledger, NOW) == 1
        ledger.set_open(False)
        assert recover_current_visitor_count(ledger, NOW) == 0

    def test_replay_equals_net_entries(self, ledger):
        kinds = [VisitorEventType.EXIT, VisitorEventType.ENTRY, VisitorEventType.ENTRY,
                 VisitorEventType.EXIT, VisitorEventType.ENTRY, VisitorEventType.ENTRY]
        for i, kind in enumerate(kinds):
            ledger.record_visitor_event(kind, NOW - timedelta(minutes=30 - i))
        assert reconcile(ledger, 10, now=NOW) == max(0, 4 - 2)
