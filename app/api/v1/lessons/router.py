from datetime import date
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import LessonStatus, LessonTimeWindow
from app.core.exceptions import ServiceError
from app.core.time_range import TimeRange
from app.db.session import get_db

from .schemas import (
    CancelLessonRequest,
    ConductLessonRequest,
    ConflictCheckResult,
    LessonAuditEntry,
    LessonCreate,
    LessonListParams,
    LessonResponse,
    LessonUpdate,
    MakeupLessonRequest,
    NoShowRequest,
    PastUnstartedCount,
    RescheduleLessonRequest,
)
from . import service

router = APIRouter(prefix="/api/v1/lessons", tags=["lessons"])


def _http_error(e: ServiceError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.get("", response_model=List[LessonResponse])
async def list_lessons(
    class_id: Optional[UUID] = Query(None, alias="classId"),
    status_name: Optional[LessonStatus] = Query(None, alias="statusName"),
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    semester_id: Optional[UUID] = Query(None, alias="semesterId"),
    time_window: LessonTimeWindow = Query(LessonTimeWindow.ALL, alias="timeWindow"),
    db: AsyncSession = Depends(get_db),
):
    params = LessonListParams(
        class_id=class_id,
        status_name=status_name,
        start_date=start_date,
        end_date=end_date,
        semester_id=semester_id,
        time_window=time_window,
    )
    try:
        return await service.list_lessons(db, params)
    except ServiceError as e:
        raise _http_error(e)


@router.post("", response_model=LessonResponse, status_code=status.HTTP_201_CREATED)
async def create_lesson(payload: LessonCreate, db: AsyncSession = Depends(get_db)):
    try:
        return await service.create_lesson(db, payload)
    except ServiceError as e:
        raise _http_error(e)


@router.get("/conflicts", response_model=ConflictCheckResult)
async def check_conflicts(
    class_id: UUID = Query(..., alias="classId"),
    scheduled_date: date = Query(..., alias="scheduledDate"),
    start_time: str = Query(..., alias="startTime", description="24-hour HH:MM"),
    end_time: str = Query(..., alias="endTime", description="24-hour HH:MM"),
    exclude_lesson_id: Optional[UUID] = Query(None, alias="excludeLessonId"),
    db: AsyncSession = Depends(get_db),
):
    try:
        window = TimeRange.parse(start_time, end_time)
        return await service.check_conflicts(db, class_id, scheduled_date, window, exclude_lesson_id)
    except ServiceError as e:
        raise _http_error(e)


@router.get("/past-unstarted", response_model=List[LessonResponse])
async def list_past_unstarted(
    class_id: UUID = Query(..., alias="classId"),
    db: AsyncSession = Depends(get_db),
):
    return await service.list_past_unstarted(db, class_id)


@router.get("/past-unstarted/count", response_model=PastUnstartedCount)
async def count_past_unstarted(
    class_id: UUID = Query(..., alias="classId"),
    db: AsyncSession = Depends(get_db),
):
    return await service.count_past_unstarted(db, class_id)


@router.get("/{lesson_id}", response_model=LessonResponse)
async def get_lesson(lesson_id: UUID, db: AsyncSession = Depends(get_db)):
    try:
        return await service.get_lesson(db, lesson_id)
    except ServiceError as e:
        raise _http_error(e)


@router.patch("/{lesson_id}", response_model=LessonResponse)
async def update_lesson(lesson_id: UUID, payload: LessonUpdate, db: AsyncSession = Depends(get_db)):
    try:
        return await service.update_lesson(db, lesson_id, payload)
    except ServiceError as e:
        raise _http_error(e)


@router.delete("/{lesson_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_lesson(lesson_id: UUID, db: AsyncSession = Depends(get_db)):
    try:
        await service.delete_lesson(db, lesson_id)
    except ServiceError as e:
        raise _http_error(e)


@router.post("/{lesson_id}/conduct", response_model=LessonResponse)
async def conduct_lesson(
    lesson_id: UUID,
    payload: Optional[ConductLessonRequest] = None,
    db: AsyncSession = Depends(get_db),
):
    try:
        return await service.conduct_lesson(db, lesson_id, payload or ConductLessonRequest())
    except ServiceError as e:
        raise _http_error(e)


@router.post("/{lesson_id}/cancel", response_model=LessonResponse)
async def cancel_lesson(lesson_id: UUID, payload: CancelLessonRequest, db: AsyncSession = Depends(get_db)):
    try:
        return await service.cancel_lesson(db, lesson_id, payload)
    except ServiceError as e:
        raise _http_error(e)


@router.post("/{lesson_id}/no-show", response_model=LessonResponse)
async def mark_no_show(
    lesson_id: UUID,
    payload: Optional[NoShowRequest] = None,
    db: AsyncSession = Depends(get_db),
):
    try:
        return await service.mark_no_show(db, lesson_id, payload or NoShowRequest())
    except ServiceError as e:
        raise _http_error(e)


@router.post("/{lesson_id}/reschedule", response_model=LessonResponse)
async def reschedule_lesson(
    lesson_id: UUID,
    payload: RescheduleLessonRequest,
    db: AsyncSession = Depends(get_db),
):
    try:
        return await service.reschedule_lesson(db, lesson_id, payload)
    except ServiceError as e:
        raise _http_error(e)


@router.post("/{lesson_id}/makeup", response_model=LessonResponse, status_code=status.HTTP_201_CREATED)
async def create_makeup_lesson(
    lesson_id: UUID,
    payload: MakeupLessonRequest,
    db: AsyncSession = Depends(get_db),
):
    try:
        return await service.create_makeup_lesson(db, lesson_id, payload)
    except ServiceError as e:
        raise _http_error(e)


@router.get("/{lesson_id}/audit-history", response_model=List[LessonAuditEntry])
async def list_audit_history(lesson_id: UUID, db: AsyncSession = Depends(get_db)):
    try:
        return await service.list_audit_history(db, lesson_id)
    except ServiceError as e:
        raise _http_error(e)
