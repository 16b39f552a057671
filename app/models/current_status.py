# app/models/current_status.py
"""
Current status table, exactly one row, keyed by STATUS_ID.
Holds the live visitor count, the configured capacity and the open/closed flag.
Created on first boot; mutated only through the occupancy ledger.
"""

from sqlalchemy import Column, Integer, String, DateTime, Boolean
from app.database import Base

STATUS_ID = "singleton"


class CurrentStatus(Base):
    __tablename__ = "current_status"

    id = Column(String(20), primary_key=True, default=STATUS_ID)
    current_visitors = Column(Integer, default=0, nullable=False)
    max_capacity = Column(Integer, default=100, nullable=False)
    is_open = Column(Boolean, default=True, nullable=False)
    updated_at = Column(DateTime)

    def __repr__(self):
        return f"<CurrentStatus {self.current_visitors}/{self.max_capacity} open={self.is_open}>"
