from datetime import date, datetime, time
from typing import List, Optional, Union
from uuid import UUID

from pydantic import Field, field_serializer, field_validator

from app.core.enums import (
    ConflictType,
    EditLock,
    GenerationRangeType,
    GenerationSource,
    LessonStatus,
    LessonTimeWindow,
)
from app.core.schemas import ApiModel, time_field, time_out


class LessonWindow(ApiModel):
    """Date and 24-hour time window of a lesson."""

    scheduled_date: date
    start_time: Union[str, time] = Field(..., description="24-hour format, e.g. 09:00")
    end_time: Union[str, time] = Field(..., description="24-hour format, e.g. 10:00")

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def parse_time(cls, v: Union[str, time]) -> time:
        return time_field(v)

    @field_serializer("start_time", "end_time")
    def serialize_time_24(self, t: time) -> str:
        return time_out(t)


class LessonCreate(LessonWindow):
    class_id: UUID
    notes: Optional[str] = Field(None, max_length=1000)
    force: bool = Field(False, description="Create even when the window conflicts with other lessons")


class LessonUpdate(ApiModel):
    """Edit of lesson details. On conducted lessons conducted_at may be corrected as well."""

    notes: Optional[str] = Field(None, max_length=1000)
    conducted_at: Optional[datetime] = None


class ConductLessonRequest(ApiModel):
    conducted_at: Optional[datetime] = Field(None, description="Defaults to now")
    notes: Optional[str] = Field(None, max_length=1000)


class MakeupLessonRequest(LessonWindow):
    notes: Optional[str] = Field(None, max_length=1000)


class CancelLessonRequest(ApiModel):
    cancellation_reason: str = Field(..., description="Required, 5-500 characters")
    makeup: Optional[MakeupLessonRequest] = Field(
        None, description="When present, a linked Make Up lesson is created in the same operation"
    )


class NoShowRequest(ApiModel):
    notes: Optional[str] = Field(None, max_length=1000)


class RescheduleLessonRequest(ApiModel):
    new_scheduled_date: date
    new_start_time: Union[str, time]
    new_end_time: Union[str, time]
    reschedule_reason: Optional[str] = Field(None, max_length=500)
    force: bool = Field(False, description="Commit past soft conflicts")

    @field_validator("new_start_time", "new_end_time", mode="before")
    @classmethod
    def parse_time(cls, v: Union[str, time]) -> time:
        return time_field(v)

    @field_serializer("new_start_time", "new_end_time")
    def serialize_time_24(self, t: time) -> str:
        return time_out(t)


class LessonResponse(ApiModel):
    id: UUID
    class_id: UUID
    class_name: Optional[str] = None
    teacher_id: UUID
    classroom_id: Optional[UUID] = None
    schedule_slot_id: Optional[UUID] = None
    scheduled_date: date
    start_time: time
    end_time: time
    status_name: LessonStatus
    conducted_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    reschedule_reason: Optional[str] = None
    makeup_lesson_id: Optional[UUID] = None
    original_lesson_id: Optional[UUID] = None
    original_lesson_date: Optional[date] = None
    notes: Optional[str] = None
    generation_source: GenerationSource
    created_at: datetime
    updated_at: datetime
    # Derived, read-only
    needs_documentation: bool = False
    can_conduct: bool = False
    edit_lock: EditLock = EditLock.NONE
    has_audit_history: bool = False

    @field_serializer("start_time", "end_time")
    def serialize_time_24(self, t: time) -> str:
        return time_out(t)

    @property
    def lesson_status(self) -> LessonStatus:
        return self.status_name


class LessonConflict(ApiModel):
    conflict_type: ConflictType
    conflicting_lesson_id: UUID
    conflicting_class_id: UUID
    conflicting_class_name: Optional[str] = None
    classroom_name: Optional[str] = None
    scheduled_date: date
    start_time: time
    end_time: time
    conflict_details: str

    @field_serializer("start_time", "end_time")
    def serialize_time_24(self, t: time) -> str:
        return time_out(t)


class ConflictSuggestion(LessonWindow):
    type: str  # next_weekday | next_week
    label: str


class ConflictCheckResult(ApiModel):
    has_conflicts: bool
    conflicts: List[LessonConflict] = []
    suggestions: List[ConflictSuggestion] = []


class GenerationOptions(ApiModel):
    range_type: GenerationRangeType = GenerationRangeType.UNTIL_YEAR_END
    start_date: Optional[date] = Field(None, description="Custom range only")
    end_date: Optional[date] = Field(None, description="Custom range only")
    skip_conflicts: bool = True
    skip_holidays: bool = True
    skip_breaks: bool = True


class SkippedDate(ApiModel):
    scheduled_date: date
    skip_reason: str  # teaching_break | public_holiday | scheduling_conflict


class GenerationSummary(ApiModel):
    total_generated: int
    skipped_conflicts: int
    skipped_holidays: int
    skipped_breaks: int = 0
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    lesson_ids: List[UUID] = []
    skipped: List[SkippedDate] = []


class LessonAuditEntry(ApiModel):
    id: UUID
    lesson_id: UUID
    field_changed: str
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    changed_at: datetime


class PastUnstartedCount(ApiModel):
    class_id: UUID
    count: int


class LessonListParams(ApiModel):
    """Filters of the lesson repository list."""

    class_id: Optional[UUID] = None
    status_name: Optional[LessonStatus] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    semester_id: Optional[UUID] = None
    time_window: LessonTimeWindow = LessonTimeWindow.ALL
