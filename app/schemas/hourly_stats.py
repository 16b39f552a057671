# app/schemas/hourly_stats.py
from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class HourlyStatsOut(BaseModel):
    hour: int
    entry_count: int = 0
    exit_count: int = 0
    peak_visitors: int = 0

    class Config:
        alias_generator = to_camel
        populate_by_name = True
