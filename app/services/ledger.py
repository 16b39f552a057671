# app/services/ledger.py
"""
Occupancy ledger: the single write path for visitor state.

Owns three tables:
  - visitor_logs       append-only entry/exit log (source of truth)
  - current_status     the one status row (count, capacity, open flag)
  - hourly_statistics  per-(date, hour) rollup used by the dashboard chart

Mutations are serialized with a re-entrant lock so the MQTT thread and the
API threadpool never interleave a read-modify-write on the same row. The lock
is taken with a timeout and storage errors surface as StorageUnavailable;
the ledger never retries on its own.
"""

import threading
from contextlib import contextmanager
from datetime import date, datetime
from typing import Iterator, Optional

from sqlalchemy import func, text
from sqlalchemy.exc import (
    InterfaceError, OperationalError, SQLAlchemyError, TimeoutError as PoolTimeoutError,
)
from sqlalchemy.orm import Session, sessionmaker

from app.errors import InvalidCapacity, NotInitialized, StorageError, StorageUnavailable
from app.models.current_status import CurrentStatus, STATUS_ID
from app.models.hourly_statistic import HourlyStatistic
from app.models.visitor_log import VisitorLog
from app.schemas.dashboard import DashboardSnapshot
from app.schemas.hourly_stats import HourlyStatsOut
from app.schemas.visitor_event import VisitorEventType, VisitorLogOut
from app.utils.logger import get_logger
from app.utils.timezone import isoformat_in_zone, utc_now, zone_date, zone_hour

logger = get_logger(__name__)

HOURS_PER_DAY = 24


def build_snapshot(current_visitors: int, max_capacity: int, is_open: bool) -> DashboardSnapshot:
    """Derive seats, occupancy rate and the open/full/closed status."""
    available_seats = max(0, max_capacity - current_visitors)
    if max_capacity > 0:
        # rounds halves up
        occupancy_rate = (200 * current_visitors + max_capacity) // (2 * max_capacity)
        occupancy_rate = min(100, max(0, occupancy_rate))
    else:
        occupancy_rate = 0

    if not is_open:
        status = "closed"
    elif current_visitors >= max_capacity:
        status = "full"
    else:
        status = "open"

    return DashboardSnapshot(
        current_visitors=current_visitors,
        max_capacity=max_capacity,
        available_seats=available_seats,
        occupancy_rate=occupancy_rate,
        status=status,
        is_open=is_open,
    )


def _hourly_out(row: HourlyStatistic) -> HourlyStatsOut:
    return HourlyStatsOut(hour=row.hour, entry_count=row.entry_count,
                          exit_count=row.exit_count, peak_visitors=row.peak_visitors)


def apply_floor(count: int, is_open: bool, decrementing: bool, keep_min_while_open: bool) -> int:
    """Clamp a count to >= 0, and to 1 when the open-floor policy applies."""
    count = max(0, count)
    if keep_min_while_open and is_open and decrementing and count == 0:
        return 1
    return count


class OccupancyLedger:
    def __init__(
        self,
        session_factory: sessionmaker,
        tz_name: str,
        keep_min_visitor_while_open: bool = False,
        lock_timeout: float = 5.0,
    ):
        self._session_factory = session_factory
        self.tz_name = tz_name
        self.keep_min_visitor_while_open = keep_min_visitor_while_open
        self._lock_timeout = lock_timeout
        self._lock = threading.RLock()
        self._closed = False

    # ── Plumbing ─────────────────────────────────────────────────────────
    @contextmanager
    def _session(self) -> Iterator[Session]:
        if self._closed:
            raise StorageUnavailable("Ledger is shut down")
        db = self._session_factory()
        try:
            yield db
            db.commit()
        except (OperationalError, InterfaceError, PoolTimeoutError) as e:
            db.rollback()
            logger.error(f"[Ledger] Storage unavailable: {e}")
            raise StorageUnavailable(f"Database unavailable: {e.__class__.__name__}") from e
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"[Ledger] Statement rejected: {e}")
            raise StorageError(f"Database error: {e.__class__.__name__}") from e
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    @contextmanager
    def _write(self) -> Iterator[None]:
        if not self._lock.acquire(timeout=self._lock_timeout):
            raise StorageUnavailable(f"Ledger busy for more than {self._lock_timeout}s")
        try:
            if self._closed:
                raise StorageUnavailable("Ledger is shut down")
            yield
        finally:
            self._lock.release()

    @staticmethod
    def _status_for_update(db: Session) -> CurrentStatus:
        # FOR UPDATE is a no-op on SQLite; the in-process lock still serializes
        status = (
            db.query(CurrentStatus)
            .filter(CurrentStatus.id == STATUS_ID)
            .with_for_update()
            .first()
        )
        if status is None:
            raise NotInitialized("Current status row does not exist yet")
        return status

    # ── Lifecycle ────────────────────────────────────────────────────────
    def bootstrap(self, default_capacity: int) -> bool:
        """Create the status row if absent. Returns True when it was created."""
        if default_capacity < 1:
            raise InvalidCapacity(f"Default capacity must be >= 1, got {default_capacity}")
        with self._write(), self._session() as db:
            if db.query(CurrentStatus).filter(CurrentStatus.id == STATUS_ID).first():
                return False
            db.add(CurrentStatus(id=STATUS_ID, current_visitors=0, max_capacity=default_capacity,
                                 is_open=True, updated_at=utc_now()))
        logger.info(f"[Ledger] Initialized current status (capacity={default_capacity})")
        return True

    def ping(self) -> bool:
        with self._session() as db:
            db.execute(text("SELECT 1"))
        return True

    def close(self):
        """Wait for the in-flight write to finish, then refuse new work."""
        with self._lock:
            self._closed = True
        logger.info("[Ledger] Closed")

    @property
    def closed(self) -> bool:
        return self._closed

    # ── Visitor log ──────────────────────────────────────────────────────
    def append_event(self, event_type: VisitorEventType, timestamp: Optional[datetime] = None) -> VisitorLog:
        with self._write(), self._session() as db:
            entry = VisitorLog(type=VisitorEventType(event_type).value, timestamp=timestamp or utc_now())
            db.add(entry)
            db.flush()
            db.expunge(entry)
        return entry

    def count_events_since(self, start: datetime, end: Optional[datetime] = None) -> tuple[int, int]:
        """(entries, exits) with start <= timestamp [<= end], naive UTC bounds."""
        with self._session() as db:
            q = db.query(VisitorLog.type, func.count(VisitorLog.id)).filter(VisitorLog.timestamp >= start)
            if end is not None:
                q = q.filter(VisitorLog.timestamp <= end)
            counts = dict(q.group_by(VisitorLog.type).all())
        return counts.get(VisitorEventType.ENTRY.value, 0), counts.get(VisitorEventType.EXIT.value, 0)

    def query_recent_events(self, limit: int = 20) -> list[VisitorLogOut]:
        with self._session() as db:
            rows = (
                db.query(VisitorLog)
                .order_by(VisitorLog.timestamp.desc(), VisitorLog.id.desc())
                .limit(limit)
                .all()
            )
            return [
                VisitorLogOut(id=r.id, type=r.type, timestamp=isoformat_in_zone(r.timestamp, self.tz_name))
                for r in rows
            ]

    # ── Current status ───────────────────────────────────────────────────
    def adjust_current_visitors(self, delta: int) -> int:
        with self._write(), self._session() as db:
            status = self._status_for_update(db)
            new_count = apply_floor(status.current_visitors + delta, status.is_open,
                                    delta < 0, self.keep_min_visitor_while_open)
            if new_count == 1 and status.current_visitors + delta <= 0:
                logger.info("[Ledger] Maintaining minimum visitor count of 1 while open")
            status.current_visitors = new_count
            status.updated_at = utc_now()
        return new_count

    def overwrite_current_visitors(self, count: int) -> int:
        with self._write(), self._session() as db:
            status = self._status_for_update(db)
            status.current_visitors = max(0, count)
            status.updated_at = utc_now()
            return status.current_visitors

    def get_current_status(self) -> DashboardSnapshot:
        with self._session() as db:
            status = db.query(CurrentStatus).filter(CurrentStatus.id == STATUS_ID).first()
            if status is None:
                raise NotInitialized("Current status row does not exist yet")
            return build_snapshot(status.current_visitors, status.max_capacity, status.is_open)

    def update_max_capacity(self, capacity: int) -> int:
        if capacity < 1:
            raise InvalidCapacity(f"Capacity must be at least 1, got {capacity}")
        with self._write(), self._session() as db:
            status = self._status_for_update(db)
            status.max_capacity = capacity
            status.updated_at = utc_now()
        logger.info(f"[Ledger] Max capacity set to {capacity}")
        return capacity

    def set_open(self, is_open: bool) -> bool:
        with self._write(), self._session() as db:
            status = self._status_for_update(db)
            status.is_open = bool(is_open)
            status.updated_at = utc_now()
        logger.info(f"[Ledger] Restaurant marked {'open' if is_open else 'closed'}")
        return bool(is_open)

    # ── Hourly statistics ────────────────────────────────────────────────
    def upsert_hourly_aggregate(self, day: date, hour: int, event_type: VisitorEventType,
                                current_visitors: int) -> HourlyStatsOut:
        event_type = VisitorEventType(event_type)
        is_entry = event_type is VisitorEventType.ENTRY
        with self._write(), self._session() as db:
            row = (
                db.query(HourlyStatistic)
                .filter(HourlyStatistic.date == day, HourlyStatistic.hour == hour)
                .with_for_update()
                .first()
            )
            if row is None:
                row = HourlyStatistic(
                    date=day, hour=hour,
                    entry_count=1 if is_entry else 0,
                    exit_count=0 if is_entry else 1,
                    peak_visitors=current_visitors,
                )
                db.add(row)
            elif is_entry:
                row.entry_count += 1
                row.peak_visitors = max(row.peak_visitors, current_visitors)
            else:
                row.exit_count += 1
            db.flush()
            return _hourly_out(row)

    def query_hourly_aggregates(self, day: date) -> list[HourlyStatsOut]:
        """Always 24 entries, hour ascending, zero-filled for quiet hours."""
        with self._session() as db:
            rows = db.query(HourlyStatistic).filter(HourlyStatistic.date == day).all()
            by_hour = {r.hour: _hourly_out(r) for r in rows}
        return [by_hour.get(h, HourlyStatsOut(hour=h)) for h in range(HOURS_PER_DAY)]

    def query_today_hourly_aggregates(self, now: Optional[datetime] = None) -> list[HourlyStatsOut]:
        return self.query_hourly_aggregates(zone_date(now or utc_now(), self.tz_name))

    # ── Composite ────────────────────────────────────────────────────────
    def record_visitor_event(self, event_type: VisitorEventType, now: Optional[datetime] = None) -> tuple[VisitorLog, int]:
        """
        Log one sensor crossing, adjust the count and roll it into the hourly
        table, all under one lock acquisition. Returns (log row, new count).
        """
        event_type = VisitorEventType(event_type)
        now = now or utc_now()
        delta = 1 if event_type is VisitorEventType.ENTRY else -1
        with self._write():
            entry = self.append_event(event_type, timestamp=now)
            current = self.adjust_current_visitors(delta)
            self.upsert_hourly_aggregate(zone_date(now, self.tz_name), zone_hour(now, self.tz_name),
                                         event_type, current)
        return entry, current
