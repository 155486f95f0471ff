from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

Source = Literal["Vape", "Cigarettes", "Snus", "None"]
TimeOfDay = Literal["morning", "afternoon", "evening", "night"]

TIME_OF_DAY_BUCKETS: tuple[str, ...] = ("morning", "afternoon", "evening", "night")


def default_timezone_offset_minutes() -> int:
    """Host offset in minutes behind UTC (positive west of Greenwich)."""
    offset = datetime.now().astimezone().utcoffset()
    return -int(offset.total_seconds() // 60) if offset is not None else 0


class CamelModel(BaseModel):
    """Stored and exchanged JSON uses camelCase keys; Python code uses snake_case."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LogRecord(CamelModel):
    id: str
    timestamp: str  # ISO-8601 creation instant
    date: str  # YYYY-MM-DD, local calendar date frozen at creation
    time_of_day: TimeOfDay  # frozen at creation, never recomputed
    source: Source
    unit_type: str
    amount: float = Field(default=0, ge=0)
    estimated_mg: float | None = Field(default=0, ge=0)
    reason: str | None = None
    health_effects: list[str] = Field(default_factory=list)
    focus_level: int | None = Field(default=None, ge=1, le=10)
    anxiety_level: int | None = Field(default=None, ge=1, le=10)
    clear_thinking: bool | None = None
    notes: str | None = None

    @field_validator("timestamp")
    @classmethod
    def validate_timestamp(cls, v):
        try:
            datetime.fromisoformat(v)
        except ValueError as e:
            raise ValueError("timestamp must be ISO-8601") from e
        return v

    @field_validator("date")
    @classmethod
    def validate_date(cls, v):
        try:
            datetime.strptime(v, "%Y-%m-%d")
        except ValueError as e:
            raise ValueError("date must be in YYYY-MM-DD format") from e
        return v


class LogUpdate(CamelModel):
    """Fields a record may be amended with. id, timestamp, date and timeOfDay are frozen."""

    source: Source | None = None
    unit_type: str | None = None
    amount: float | None = Field(default=None, ge=0)
    estimated_mg: float | None = Field(default=None, ge=0)
    reason: str | None = None
    health_effects: list[str] | None = None
    focus_level: int | None = Field(default=None, ge=1, le=10)
    anxiety_level: int | None = Field(default=None, ge=1, le=10)
    clear_thinking: bool | None = None
    notes: str | None = None


class Settings(CamelModel):
    daily_mg_limit: float = Field(default=40, gt=0)
    daily_event_limit: int = Field(default=5, gt=0)  # not used by any aggregation yet
    morning_limit_enabled: bool = False
    timezone_offset_minutes: int = Field(default_factory=default_timezone_offset_minutes)


class IntakeRequest(CamelModel):
    """Answers collected by the four-step intake wizard."""

    source: Source | None = None
    quantity: float | None = None
    strength: float | None = None
    health_effects: list[str] = Field(default_factory=list)
    reason: str | None = None
    other_reason: str | None = None


class CheckInRequest(CamelModel):
    focus_level: int = Field(ge=1, le=10)
    anxiety_level: int = Field(ge=1, le=10)
    clear_thinking: bool | None = None
    notes: str | None = None

    @field_validator("notes")
    @classmethod
    def blank_notes_to_none(cls, v):
        if v is None:
            return None
        return v.strip() or None


class CheckInResponse(CamelModel):
    created: bool
    log: LogRecord


class ImportResponse(BaseModel):
    ok: bool
    count: int
    message: str


class ExportDocument(CamelModel):
    version: str = "1.0"
    export_date: str
    logs: list[LogRecord]
    settings: Settings
