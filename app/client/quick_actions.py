import logging
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Awaitable, Callable, Optional, Union
from uuid import UUID

from app.api.v1.lessons import lifecycle
from app.api.v1.lessons.schemas import (
    CancelLessonRequest,
    ConductLessonRequest,
    LessonResponse,
    MakeupLessonRequest,
    NoShowRequest,
    RescheduleLessonRequest,
)
from app.core.enums import LessonAction
from app.core.exceptions import InvalidTransitionError, ServiceError

from .api_client import LessonApiClient, LessonListFilters

logger = logging.getLogger(__name__)

RefreshCallback = Callable[[LessonListFilters], Awaitable[None]]

REFRESH_FAILED_MESSAGE = "Saved, but the lesson list could not be refreshed."


@dataclass
class ActionOutcome:
    success: bool
    lesson: Optional[LessonResponse] = None
    error: Optional[ServiceError] = None
    message: Optional[str] = None


class QuickLessonActions:
    """
    One-click lesson actions for list and detail views.

    After a successful action the caller's refresh callback is awaited with the
    view's active filters; the list itself is owned by the view. Failures come
    back as an unsuccessful ActionOutcome and are never retried.
    A refresh that raises is logged and reported in the message of the
    otherwise successful outcome.
    """

    def __init__(
        self,
        client: LessonApiClient,
        refresh: RefreshCallback,
        filters: Optional[LessonListFilters] = None,
    ) -> None:
        self.client = client
        self.refresh = refresh
        self.filters = filters or LessonListFilters()

    def set_filters(self, filters: LessonListFilters) -> None:
        self.filters = filters

    async def _run(self, action: LessonAction, call: Callable[[], Awaitable[LessonResponse]]) -> ActionOutcome:
        try:
            lesson = await call()
        except ServiceError as e:
            logger.warning("lesson action %s failed: %s", action.value, e.message)
            return ActionOutcome(success=False, error=e, message=e.message)
        try:
            await self.refresh(self.filters)
        except Exception:
            # the change is already saved; only the list is out of date
            logger.exception("lesson list refresh after %s failed", action.value)
            return ActionOutcome(success=True, lesson=lesson, message=REFRESH_FAILED_MESSAGE)
        return ActionOutcome(success=True, lesson=lesson)

    @staticmethod
    def _precheck(lesson: Optional[LessonResponse], action: LessonAction) -> Optional[ActionOutcome]:
        if lesson is None:
            return None
        try:
            lifecycle.ensure_transition(lesson.status_name, action)
        except InvalidTransitionError as e:
            return ActionOutcome(success=False, lesson=lesson, error=e, message=e.message)
        return None

    async def conduct(
        self,
        lesson_id: UUID,
        notes: Optional[str] = None,
        lesson: Optional[LessonResponse] = None,
        now: Optional[datetime] = None,
    ) -> ActionOutcome:
        rejected = self._precheck(lesson, LessonAction.CONDUCT)
        if rejected:
            return rejected
        if lesson is not None:
            reason = lifecycle.cannot_conduct_reason(lesson, now)
            if reason:
                error = InvalidTransitionError(reason)
                return ActionOutcome(success=False, lesson=lesson, error=error, message=reason)
        payload = ConductLessonRequest(notes=notes)
        return await self._run(LessonAction.CONDUCT, lambda: self.client.conduct(lesson_id, payload))

    async def cancel(
        self,
        lesson_id: UUID,
        reason: str,
        makeup: Optional[MakeupLessonRequest] = None,
        lesson: Optional[LessonResponse] = None,
    ) -> ActionOutcome:
        """Cancel, optionally with a make-up lesson. Both happen in one request."""
        rejected = self._precheck(lesson, LessonAction.CANCEL)
        if rejected:
            return rejected
        try:
            cleaned = lifecycle.clean_cancellation_reason(reason)
        except ServiceError as e:
            return ActionOutcome(success=False, lesson=lesson, error=e, message=e.message)
        payload = CancelLessonRequest(cancellation_reason=cleaned, makeup=makeup)
        return await self._run(LessonAction.CANCEL, lambda: self.client.cancel(lesson_id, payload))

    async def no_show(
        self,
        lesson_id: UUID,
        notes: Optional[str] = None,
        lesson: Optional[LessonResponse] = None,
    ) -> ActionOutcome:
        rejected = self._precheck(lesson, LessonAction.NO_SHOW)
        if rejected:
            return rejected
        payload = NoShowRequest(notes=notes)
        return await self._run(LessonAction.NO_SHOW, lambda: self.client.no_show(lesson_id, payload))

    async def reschedule(
        self,
        lesson_id: UUID,
        new_date: date,
        start_time: Union[str, time],
        end_time: Union[str, time],
        reason: Optional[str] = None,
        force: bool = False,
        lesson: Optional[LessonResponse] = None,
    ) -> ActionOutcome:
        rejected = self._precheck(lesson, LessonAction.RESCHEDULE)
        if rejected:
            return rejected
        try:
            payload = RescheduleLessonRequest(
                new_scheduled_date=new_date,
                new_start_time=start_time,
                new_end_time=end_time,
                reschedule_reason=reason,
                force=force,
            )
        except ValueError as e:
            return ActionOutcome(success=False, lesson=lesson, message=str(e))
        return await self._run(LessonAction.RESCHEDULE, lambda: self.client.reschedule(lesson_id, payload))
