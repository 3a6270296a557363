from enum import Enum

from pydantic import Field

from storeaudio.schemas.common import CamelModel


class DayOfWeek(str, Enum):
    MONDAY = "MONDAY"
    TUESDAY = "TUESDAY"
    WEDNESDAY = "WEDNESDAY"
    THURSDAY = "THURSDAY"
    FRIDAY = "FRIDAY"
    SATURDAY = "SATURDAY"
    SUNDAY = "SUNDAY"


class ScheduleRuleFields(CamelModel):
    playlist_id: str
    day_of_week: DayOfWeek
    start_time: str = Field(..., description="HH:MM, inclusive")
    end_time: str = Field(..., description="HH:MM, exclusive")
    volume: int | None = Field(None, ge=0, le=100)
    is_active: bool = True


class ScheduleRuleIn(ScheduleRuleFields):
    store_id: str


class ScheduleRuleUpdate(CamelModel):
    playlist_id: str | None = None
    day_of_week: DayOfWeek | None = None
    start_time: str | None = None
    end_time: str | None = None
    volume: int | None = Field(None, ge=0, le=100)
    is_active: bool | None = None


class BulkCreateIn(CamelModel):
    store_id: str
    rules: list[ScheduleRuleFields]


class CopyScheduleIn(CamelModel):
    source_store_id: str
    target_store_id: str
