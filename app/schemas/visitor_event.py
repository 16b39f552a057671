# app/schemas/visitor_event.py
import enum

from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class VisitorEventType(str, enum.Enum):
    ENTRY = "entry"
    EXIT = "exit"


class VisitorLogOut(BaseModel):
    id: int
    type: VisitorEventType
    timestamp: str                                # ISO 8601, reference timezone


class RealtimeEvent(BaseModel):
    """Transient notification pushed as `visitor:event`; never persisted."""
    id: str
    type: VisitorEventType
    timestamp: str
    current_visitors: int

    class Config:
        alias_generator = to_camel
        populate_by_name = True
