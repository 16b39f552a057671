# app/services/reconciler.py
"""
Startup reconciliation of the live visitor count.

The counter in current_status only ever moves by ±1, so a crash mid-event,
a missed shutdown or a manual edit leaves it drifting. On boot the count is
rebuilt from today's visitor log (reference timezone, local midnight → now)
and written over whatever value was persisted.

Must run to completion before the MQTT ingestor or any admin request can
write, otherwise a live decrement could be overwritten.
"""

from datetime import datetime
from typing import Optional

from app.services.ledger import OccupancyLedger, apply_floor
from app.utils.logger import get_logger
from app.utils.timezone import start_of_day_utc, utc_now

logger = get_logger(__name__)


def recover_current_visitor_count(ledger: OccupancyLedger, now: Optional[datetime] = None) -> int:
    """Net visitors for today according to the log, floor policy applied."""
    now = now or utc_now()
    entries, exits = ledger.count_events_since(start_of_day_utc(now, ledger.tz_name), now)
    recovered = max(0, entries - exits)

    if recovered == 0 and ledger.keep_min_visitor_while_open:
        recovered = apply_floor(recovered, ledger.get_current_status().is_open, True, True)
        if recovered:
            logger.info("[Recovery] Restaurant is open but count is 0, keeping minimum of 1 visitor")

    logger.info(f"[Recovery] Today's log: {entries} entries, {exits} exits → {recovered} visitors")
    return recovered


def reconcile(ledger: OccupancyLedger, default_capacity: int, now: Optional[datetime] = None) -> int:
    """
    Ensure the status row exists, then overwrite its visitor count with the
    value recovered from the log. Idempotent while no new events arrive.
    """
    if ledger.bootstrap(default_capacity):
        logger.info("[Recovery] Status row created on first boot")

    recovered = recover_current_visitor_count(ledger, now)
    ledger.overwrite_current_visitors(recovered)
    logger.info(f"[Recovery] Synced visitor count: {recovered}")
    return recovered
