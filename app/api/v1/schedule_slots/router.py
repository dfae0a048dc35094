from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.lessons.schemas import GenerationOptions, GenerationSummary
from app.core.exceptions import ServiceError
from app.db.session import get_db

from .schemas import (
    ScheduleSlotCandidate,
    ScheduleSlotCreate,
    ScheduleSlotCreatedResponse,
    ScheduleSlotResponse,
    ScheduleSlotUpdate,
    SlotValidationResponse,
    TimeSlotSuggestionRequest,
    TimeSlotSuggestionsResponse,
)
from . import service

router = APIRouter(prefix="/api/v1", tags=["schedule-slots"])


def _http_error(e: ServiceError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.post(
    "/classes/{class_id}/schedule-slots",
    response_model=ScheduleSlotCreatedResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_schedule_slot(
    class_id: UUID,
    payload: ScheduleSlotCreate,
    db: AsyncSession = Depends(get_db),
):
    try:
        return await service.create_schedule_slot(db, class_id, payload)
    except ServiceError as e:
        raise _http_error(e)


@router.get("/classes/{class_id}/schedule-slots", response_model=List[ScheduleSlotResponse])
async def list_schedule_slots(
    class_id: UUID,
    include_archived: bool = Query(False, alias="includeArchived"),
    db: AsyncSession = Depends(get_db),
):
    return await service.list_schedule_slots(db, class_id, include_archived=include_archived)


@router.post("/classes/{class_id}/schedule-slots/validate", response_model=SlotValidationResponse)
async def validate_schedule_slot(
    class_id: UUID,
    payload: ScheduleSlotCandidate,
    db: AsyncSession = Depends(get_db),
):
    try:
        return await service.validate_schedule_slot(db, class_id, payload)
    except ServiceError as e:
        raise _http_error(e)


@router.post("/classes/{class_id}/schedule-slots/suggestions", response_model=TimeSlotSuggestionsResponse)
async def suggest_time_slots(
    class_id: UUID,
    payload: TimeSlotSuggestionRequest,
    db: AsyncSession = Depends(get_db),
):
    try:
        return await service.suggest_time_slots(db, class_id, payload)
    except ServiceError as e:
        raise _http_error(e)


@router.get("/schedule-slots/{slot_id}", response_model=ScheduleSlotResponse)
async def get_schedule_slot(slot_id: UUID, db: AsyncSession = Depends(get_db)):
    try:
        return await service.get_schedule_slot(db, slot_id)
    except ServiceError as e:
        raise _http_error(e)


@router.put("/schedule-slots/{slot_id}", response_model=ScheduleSlotResponse)
async def update_schedule_slot(
    slot_id: UUID,
    payload: ScheduleSlotUpdate,
    db: AsyncSession = Depends(get_db),
):
    try:
        return await service.update_schedule_slot(db, slot_id, payload)
    except ServiceError as e:
        raise _http_error(e)


@router.post("/schedule-slots/{slot_id}/archive", response_model=ScheduleSlotResponse)
async def archive_schedule_slot(slot_id: UUID, db: AsyncSession = Depends(get_db)):
    try:
        return await service.archive_schedule_slot(db, slot_id)
    except ServiceError as e:
        raise _http_error(e)


@router.post("/schedule-slots/{slot_id}/generate", response_model=GenerationSummary)
async def generate_lessons(
    slot_id: UUID,
    payload: Optional[GenerationOptions] = None,
    db: AsyncSession = Depends(get_db),
):
    try:
        return await service.generate_for_slot(db, slot_id, payload or GenerationOptions())
    except ServiceError as e:
        raise _http_error(e)
