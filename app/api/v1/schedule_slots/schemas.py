from datetime import date, datetime, time
from typing import List, Optional, Union
from uuid import UUID

from pydantic import Field, field_serializer, field_validator

from app.api.v1.lessons.schemas import GenerationOptions, GenerationSummary
from app.core.enums import DayOfWeek
from app.core.schemas import ApiModel, time_field, time_out


class ScheduleSlotCandidate(ApiModel):
    day_of_week: DayOfWeek
    start_time: Union[str, time] = Field(..., description="24-hour format, e.g. 09:00")
    end_time: Union[str, time] = Field(..., description="24-hour format, e.g. 10:00")
    exclude_slot_id: Optional[UUID] = Field(None, description="Slot being edited, ignored when checking overlap")

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def parse_time(cls, v: Union[str, time]) -> time:
        return time_field(v)


class ScheduleSlotCreate(ApiModel):
    day_of_week: DayOfWeek
    start_time: Union[str, time] = Field(..., description="24-hour format, e.g. 09:00")
    end_time: Union[str, time] = Field(..., description="24-hour format, e.g. 10:00")
    semester_id: Optional[UUID] = None
    effective_from: Optional[date] = None
    effective_to: Optional[date] = None
    generate_lessons: bool = False
    generation_options: Optional[GenerationOptions] = None

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def parse_time(cls, v: Union[str, time]) -> time:
        return time_field(v)


class ScheduleSlotUpdate(ApiModel):
    day_of_week: Optional[DayOfWeek] = None
    start_time: Optional[Union[str, time]] = Field(None, description="24-hour format, e.g. 09:00")
    end_time: Optional[Union[str, time]] = Field(None, description="24-hour format, e.g. 10:00")
    semester_id: Optional[UUID] = None
    effective_from: Optional[date] = None
    effective_to: Optional[date] = None

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def parse_time(cls, v: Optional[Union[str, time]]) -> Optional[time]:
        if v is None:
            return None
        return time_field(v)


class ScheduleSlotResponse(ApiModel):
    id: UUID
    class_id: UUID
    semester_id: Optional[UUID] = None
    day_of_week: DayOfWeek
    start_time: time
    end_time: time
    effective_from: Optional[date] = None
    effective_to: Optional[date] = None
    is_archived: bool
    archived_at: Optional[datetime] = None
    created_at: datetime

    @field_serializer("start_time", "end_time")
    def serialize_time_24(self, t: time) -> str:
        return time_out(t)


class SlotOverlap(ApiModel):
    slot_id: Optional[UUID] = None
    class_id: Optional[UUID] = None
    class_name: Optional[str] = None
    day_of_week: DayOfWeek
    start_time: time
    end_time: time
    shared_resource: Optional[str] = None  # teacher | classroom

    @field_serializer("start_time", "end_time")
    def serialize_time_24(self, t: time) -> str:
        return time_out(t)


class SlotValidationResponse(ApiModel):
    ok: bool
    reason: Optional[str] = None
    overlapping_slot: Optional[SlotOverlap] = None
    has_existing_overlap: bool = False
    existing_overlaps: List[SlotOverlap] = []


class TimeSlotSuggestionRequest(ApiModel):
    preferred_day_of_week: DayOfWeek
    preferred_start_time: Union[str, time]
    duration: int = Field(..., gt=0, le=24 * 60, description="Minutes")
    max_suggestions: Optional[int] = Field(None, ge=1, le=50)

    @field_validator("preferred_start_time", mode="before")
    @classmethod
    def parse_time(cls, v: Union[str, time]) -> time:
        return time_field(v)


class TimeSlotSuggestion(ApiModel):
    day_of_week: DayOfWeek
    start_time: time
    end_time: time

    @field_serializer("start_time", "end_time")
    def serialize_time_24(self, t: time) -> str:
        return time_out(t)


class TimeSlotSuggestionsResponse(ApiModel):
    suggestions: List[TimeSlotSuggestion]


class ScheduleSlotCreatedResponse(ApiModel):
    slot: ScheduleSlotResponse
    existing_overlap: SlotValidationResponse
    generation_summary: Optional[GenerationSummary] = None
