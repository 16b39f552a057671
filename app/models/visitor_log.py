# app/models/visitor_log.py
"""
Visitor event log table.
Append-only: one row per sensor-reported entry or exit, never updated or deleted.
Source of truth for startup reconciliation of the current visitor count.
"""

from sqlalchemy import Column, Integer, String, DateTime
from app.database import Base


class VisitorLog(Base):
    __tablename__ = "visitor_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    type = Column(String(10), nullable=False, index=True)     # entry | exit
    timestamp = Column(DateTime, nullable=False, index=True)  # naive UTC

    def __repr__(self):
        return f"<VisitorLog {self.id} type={self.type} at={self.timestamp}>"
