# app/schemas/dashboard.py
from pydantic import BaseModel, StrictBool
from pydantic.alias_generators import to_camel
from typing import Literal, Optional


class DashboardSnapshot(BaseModel):
    current_visitors: int
    max_capacity: int
    available_seats: int
    occupancy_rate: int                           # percent, 0-100
    status: Literal["open", "full", "closed"]
    is_open: bool

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class CapacityUpdate(BaseModel):
    capacity: int
    password: Optional[str] = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class CapacityUpdatedOut(BaseModel):
    success: bool = True
    capacity: int


class StatusToggle(BaseModel):
    is_open: StrictBool                           # "true" / 1 are rejected
    password: Optional[str] = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True
