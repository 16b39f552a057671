# app/models/hourly_statistic.py
"""
Per-hour rollup of the visitor log for one calendar day (reference timezone).
Rows are created lazily on the first event of an hour and only ever
incremented afterwards. Derived data: the visitor log stays authoritative.
"""

from sqlalchemy import Column, Integer, Date, UniqueConstraint
from app.database import Base


class HourlyStatistic(Base):
    __tablename__ = "hourly_statistics"
    __table_args__ = (UniqueConstraint("date", "hour", name="uq_hourly_statistics_date_hour"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    date = Column(Date, nullable=False, index=True)
    hour = Column(Integer, nullable=False)              # 0-23
    entry_count = Column(Integer, default=0, nullable=False)
    exit_count = Column(Integer, default=0, nullable=False)
    peak_visitors = Column(Integer, default=0, nullable=False)

    def __repr__(self):
        return f"<HourlyStatistic {self.date} h={self.hour} in={self.entry_count} out={self.exit_count}>"
