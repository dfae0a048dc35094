"""
Debounced conflict check behind the lesson create/reschedule forms.

Every input change bumps a generation counter. A result is applied only when
the generation it was requested under is still the latest one, so a slow
response for an old input can never overwrite the state of a newer input.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import date, time
from typing import List, Optional, Set, Union
from uuid import UUID

from app.api.v1.lessons.schemas import ConflictSuggestion, LessonConflict
from app.core.config import settings
from app.core.exceptions import ServiceError
from app.core.time_range import TimeRange

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConflictQuery:
    class_id: UUID
    scheduled_date: date
    window: TimeRange
    exclude_lesson_id: Optional[UUID] = None


def build_query(
    class_id: Optional[UUID],
    scheduled_date: Optional[date],
    start_time: Optional[Union[str, time]],
    end_time: Optional[Union[str, time]],
    exclude_lesson_id: Optional[UUID] = None,
) -> Optional[ConflictQuery]:
    """None when the form input is incomplete or not a valid time range."""
    if not class_id or not scheduled_date or not start_time or not end_time:
        return None
    try:
        window = TimeRange.parse(start_time, end_time)
    except ServiceError as e:
        logger.debug("conflict check skipped: %s", e.message)
        return None
    return ConflictQuery(class_id, scheduled_date, window, exclude_lesson_id)


class ConflictPrecheck:
    def __init__(self, client, debounce_ms: Optional[int] = None) -> None:
        self._client = client
        if debounce_ms is None:
            debounce_ms = settings.conflict_check_debounce_ms
        self._delay = debounce_ms / 1000
        self._generation = 0
        self._last_query: Optional[ConflictQuery] = None
        self._timer: Optional[asyncio.Task] = None
        self._tasks: Set[asyncio.Task] = set()

        self.conflicts: List[LessonConflict] = []
        self.suggestions: List[ConflictSuggestion] = []
        self.error: Optional[str] = None
        self.checking = False

    @property
    def has_conflicts(self) -> bool:
        return bool(self.conflicts)

    @property
    def generation(self) -> int:
        return self._generation

    def update(
        self,
        class_id: Optional[UUID] = None,
        scheduled_date: Optional[date] = None,
        start_time: Optional[Union[str, time]] = None,
        end_time: Optional[Union[str, time]] = None,
        exclude_lesson_id: Optional[UUID] = None,
    ) -> None:
        """Feed the current form values. Must be called from a running event loop."""
        query = build_query(class_id, scheduled_date, start_time, end_time, exclude_lesson_id)
        if query is None:
            self._cancel_timer()
            self._generation += 1
            self._last_query = None
            self._clear()
            return
        if query == self._last_query:
            return

        self._cancel_timer()
        self._generation += 1
        self._last_query = query
        self.checking = True
        task = asyncio.get_running_loop().create_task(self._debounced(query, self._generation))
        self._timer = task
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def wait(self) -> None:
        """Wait until no timer or request is outstanding."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        await self.wait()

    def _cancel_timer(self) -> None:
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None

    def _clear(self) -> None:
        self.conflicts = []
        self.suggestions = []
        self.error = None
        self.checking = False

    def _is_stale(self, generation: int) -> bool:
        if generation != self._generation:
            logger.debug("dropping conflict check result %d (latest is %d)", generation, self._generation)
            return True
        return False

    async def _debounced(self, query: ConflictQuery, generation: int) -> None:
        await asyncio.sleep(self._delay)
        # past the debounce; from here on the request is no longer cancelled by new input
        if self._timer is asyncio.current_task():
            self._timer = None
        try:
            result = await self._client.check_conflicts(
                query.class_id,
                query.scheduled_date,
                query.window.start,
                query.window.end,
                query.exclude_lesson_id,
            )
        except ServiceError as e:
            if self._is_stale(generation):
                return
            logger.warning("conflict check failed: %s", e.message)
            self.conflicts = []
            self.suggestions = []
            self.error = e.message
            self.checking = False
            self._last_query = None
            return
        if self._is_stale(generation):
            return
        self.conflicts = list(result.conflicts)
        self.suggestions = list(result.suggestions)
        self.error = None
        self.checking = False
