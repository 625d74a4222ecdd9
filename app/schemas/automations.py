"""Pydantic schemas for automations and their runs."""
import re
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.config import settings
from app.models.db_models import AutomationRunStatus, AutomationType

TIME_OF_DAY_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


class ScheduleFrequency(str, Enum):
    """How often an automation runs."""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class AutomationHealth(str, Enum):
    """Display health of an automation."""
    DISABLED = "disabled"
    BROKEN = "broken"
    ACTIVE = "active"


class AutomationLevel(str, Enum):
    """What an automation operates on."""
    ORGANISATION = "organisation"
    HOUSE = "house"
    CLIENT = "client"


def _check_time_of_day(v: Optional[str]) -> Optional[str]:
    if v is not None and not TIME_OF_DAY_PATTERN.match(v):
        raise ValueError("time_of_day must be in HH:MM format")
    return v


class AutomationSchedule(BaseModel):
    """Schedule for an automation."""
    frequency: ScheduleFrequency = ScheduleFrequency.MONTHLY
    time_of_day: str = "02:00"
    timezone: str = Field(default_factory=lambda: settings.DEFAULT_TIMEZONE)
    day_of_week: int = Field(1, ge=0, le=6)  # 0 = Sunday
    day_of_month: int = Field(1, ge=1, le=28)

    @field_validator("time_of_day")
    @classmethod
    def validate_time_of_day(cls, v: str) -> str:
        return _check_time_of_day(v)


class AutomationScheduleUpdate(BaseModel):
    """Partial schedule, merged over the stored one."""
    frequency: Optional[ScheduleFrequency] = None
    time_of_day: Optional[str] = None
    timezone: Optional[str] = None
    day_of_week: Optional[int] = Field(None, ge=0, le=6)
    day_of_month: Optional[int] = Field(None, ge=1, le=28)

    @field_validator("time_of_day")
    @classmethod
    def validate_time_of_day(cls, v: Optional[str]) -> Optional[str]:
        return _check_time_of_day(v)


class AutomationCreate(BaseModel):
    """Schema for creating an automation."""
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    type: AutomationType
    is_enabled: bool = True
    schedule: AutomationSchedule = Field(default_factory=AutomationSchedule)
    parameters: Dict[str, Any] = {}


class AutomationUpdate(BaseModel):
    """Schema for updating an automation."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    is_enabled: Optional[bool] = None
    schedule: Optional[AutomationScheduleUpdate] = None
    parameters: Optional[Dict[str, Any]] = None


class AutomationToggle(BaseModel):
    """Schema for enabling or disabling an automation."""
    is_enabled: bool


class AutomationResponse(BaseModel):
    """Schema for automation response."""
    id: UUID
    name: str
    description: Optional[str] = None
    type: AutomationType
    is_enabled: bool
    schedule: Dict[str, Any]
    parameters: Dict[str, Any]
    last_run_at: Optional[datetime] = None
    next_run_at: Optional[datetime] = None
    last_run_status: Optional[AutomationRunStatus] = None
    created_at: datetime
    updated_at: datetime

    # Display helpers
    health: Optional[AutomationHealth] = None
    level: Optional[AutomationLevel] = None
    schedule_description: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class AutomationRunResponse(BaseModel):
    """Schema for automation run response."""
    id: UUID
    automation_id: UUID
    started_at: datetime
    finished_at: Optional[datetime] = None
    status: AutomationRunStatus
    summary: Optional[str] = None
    metrics: Optional[Dict[str, Any]] = None
    error: Optional[Any] = None

    model_config = ConfigDict(from_attributes=True)


class SchedulerResult(BaseModel):
    """Outcome of one automation in a scheduler pass."""
    automation_id: UUID
    name: str
    status: AutomationRunStatus
    summary: Optional[str] = None
    error: Optional[str] = None


class SchedulerResponse(BaseModel):
    """Result of a scheduler pass."""
    processed: int
    results: List[SchedulerResult] = []


class PreflightResponse(BaseModel):
    """Whether an automation can be run right now."""
    can_run: bool
    reason: Optional[str] = None


class RunNowResponse(BaseModel):
    """Result of running an automation on demand."""
    success: bool
    summary: Optional[str] = None
    error: Optional[str] = None
    run: AutomationRunResponse
