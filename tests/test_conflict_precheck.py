import asyncio
from datetime import date, time
from typing import Dict, List, Tuple
from uuid import uuid4

import httpx
import pytest

from app.api.v1.lessons.schemas import ConflictCheckResult, LessonConflict
from app.client.api_client import LessonApiClient
from app.client.conflict_precheck import ConflictPrecheck
from app.core.enums import ConflictType
from app.core.exceptions import TransportError

CLASS_ID = uuid4()
DAY = date(2026, 3, 4)


def _result(label: str) -> ConflictCheckResult:
    conflict = LessonConflict(
        conflict_type=ConflictType.EXISTING_LESSON,
        conflicting_lesson_id=uuid4(),
        conflicting_class_id=CLASS_ID,
        scheduled_date=DAY,
        start_time=time(10, 0),
        end_time=time(11, 0),
        conflict_details=label,
    )
    return ConflictCheckResult(has_conflicts=True, conflicts=[conflict])


class FakeLessonClient:
    """Answers check_conflicts when the test releases the matching start time."""

    def __init__(self, gated: bool = False) -> None:
        self.calls: List[Tuple] = []
        self.gated = gated
        self.gates: Dict[time, asyncio.Event] = {}
        self.failures: Dict[time, Exception] = {}

    def release(self, start: time) -> None:
        self.gates.setdefault(start, asyncio.Event()).set()

    async def check_conflicts(self, class_id, scheduled_date, start_time, end_time, exclude_lesson_id=None):
        self.calls.append((class_id, scheduled_date, start_time, end_time, exclude_lesson_id))
        if self.gated:
            await self.gates.setdefault(start_time, asyncio.Event()).wait()
        if start_time in self.failures:
            raise self.failures[start_time]
        return _result(f"busy at {start_time:%H:%M}")


async def _until(predicate) -> None:
    for _ in range(100):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not reached")


@pytest.mark.asyncio
async def test_stale_response_is_dropped() -> None:
    client = FakeLessonClient(gated=True)
    precheck = ConflictPrecheck(client, debounce_ms=0)

    precheck.update(CLASS_ID, DAY, "09:00", "10:00")
    await _until(lambda: len(client.calls) == 1)
    precheck.update(CLASS_ID, DAY, "10:00", "11:00")
    await _until(lambda: len(client.calls) == 2)

    client.release(time(10, 0))
    await _until(lambda: not precheck.checking)
    assert precheck.conflicts[0].conflict_details == "busy at 10:00"

    client.release(time(9, 0))
    await precheck.wait()
    assert precheck.conflicts[0].conflict_details == "busy at 10:00"
    assert precheck.error is None


@pytest.mark.asyncio
async def test_debounce_sends_only_the_last_input() -> None:
    client = FakeLessonClient()
    precheck = ConflictPrecheck(client, debounce_ms=20)

    precheck.update(CLASS_ID, DAY, "09:00", "10:00")
    precheck.update(CLASS_ID, DAY, "09:30", "10:30")
    precheck.update(CLASS_ID, DAY, "10:00", "11:00")
    assert precheck.checking is True
    await precheck.wait()

    assert [call[2] for call in client.calls] == [time(10, 0)]
    assert precheck.has_conflicts is True
    assert precheck.checking is False


@pytest.mark.asyncio
async def test_identical_query_is_not_resent() -> None:
    client = FakeLessonClient()
    precheck = ConflictPrecheck(client, debounce_ms=0)

    precheck.update(CLASS_ID, DAY, "10:00", "11:00")
    await precheck.wait()
    precheck.update(CLASS_ID, DAY, "10:00:00", "11:00")
    await precheck.wait()

    assert len(client.calls) == 1


@pytest.mark.asyncio
async def test_incomplete_or_malformed_input_clears_state() -> None:
    client = FakeLessonClient()
    precheck = ConflictPrecheck(client, debounce_ms=0)
    precheck.update(CLASS_ID, DAY, "10:00", "11:00")
    await precheck.wait()
    assert precheck.has_conflicts

    precheck.update(CLASS_ID, DAY, "10:00", None)
    assert precheck.conflicts == []
    precheck.update(CLASS_ID, DAY, "11:00", "10:00")
    precheck.update(CLASS_ID, DAY, "25:00", "26:00")
    await precheck.wait()

    assert len(client.calls) == 1
    assert precheck.conflicts == []
    assert precheck.suggestions == []
    assert precheck.checking is False


@pytest.mark.asyncio
async def test_transport_error_is_not_reported_as_no_conflicts() -> None:
    client = FakeLessonClient()
    client.failures[time(10, 0)] = TransportError("Could not reach the lessons service")
    precheck = ConflictPrecheck(client, debounce_ms=0)

    precheck.update(CLASS_ID, DAY, "10:00", "11:00")
    await precheck.wait()

    assert precheck.error == "Could not reach the lessons service"
    assert precheck.conflicts == []
    assert precheck.checking is False
    assert len(client.calls) == 1

    del client.failures[time(10, 0)]
    precheck.update(CLASS_ID, DAY, "10:00", "11:00")
    await precheck.wait()
    assert len(client.calls) == 2
    assert precheck.error is None
    assert precheck.has_conflicts


@pytest.mark.asyncio
async def test_aclose_cancels_pending_check() -> None:
    client = FakeLessonClient()
    precheck = ConflictPrecheck(client, debounce_ms=1000)
    precheck.update(CLASS_ID, DAY, "10:00", "11:00")
    await precheck.aclose()
    assert client.calls == []


@pytest.mark.asyncio
async def test_malformed_response_ends_the_check_with_an_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>proxy error</html>")

    async with LessonApiClient(base_url="http://lessons.test", transport=httpx.MockTransport(handler)) as client:
        precheck = ConflictPrecheck(client, debounce_ms=0)
        precheck.update(CLASS_ID, DAY, "10:00", "11:00")
        await precheck.wait()

    assert precheck.checking is False
    assert precheck.error == "Malformed response from the lessons service"
    assert precheck.conflicts == []
    assert precheck.has_conflicts is False
