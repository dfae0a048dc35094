"""Async HTTP client for the lessons API, used by the console's interactive views."""

import logging
from dataclasses import dataclass
from datetime import date, time
from typing import Any, Dict, List, Optional, Union
from uuid import UUID

import httpx
from pydantic import BaseModel, TypeAdapter
from pydantic import ValidationError as SchemaError

from app.api.v1.lessons.schemas import (
    CancelLessonRequest,
    ConductLessonRequest,
    ConflictCheckResult,
    ConflictSuggestion,
    LessonConflict,
    LessonResponse,
    MakeupLessonRequest,
    NoShowRequest,
    RescheduleLessonRequest,
)
from app.core.config import settings
from app.core.enums import LessonStatus, LessonTimeWindow
from app.core.exceptions import (
    ConflictError,
    InvalidTransitionError,
    LessonLocked,
    NotFoundError,
    ServiceError,
    TransportError,
    ValidationError,
)
from app.core.time_range import format_time_24

logger = logging.getLogger(__name__)

LESSONS_PATH = "/api/v1/lessons"


@dataclass
class LessonListFilters:
    """Active filters of a lesson list view."""

    class_id: Optional[UUID] = None
    status: Optional[LessonStatus] = None
    time_window: LessonTimeWindow = LessonTimeWindow.ALL
    semester_id: Optional[UUID] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    def to_params(self) -> Dict[str, str]:
        params = {"timeWindow": self.time_window.value}
        if self.class_id:
            params["classId"] = str(self.class_id)
        if self.status:
            params["statusName"] = self.status.value
        if self.semester_id:
            params["semesterId"] = str(self.semester_id)
        if self.start_date:
            params["startDate"] = self.start_date.isoformat()
        if self.end_date:
            params["endDate"] = self.end_date.isoformat()
        return params


def _body(payload: BaseModel) -> Dict[str, Any]:
    return payload.model_dump(mode="json", by_alias=True, exclude_none=True)


def _time_param(t: Union[str, time]) -> str:
    return format_time_24(t) if isinstance(t, time) else t


def _parse(schema: Any, data: Any) -> Any:
    """Validate a response body; a body that does not match the schema is a transport failure."""
    try:
        return TypeAdapter(schema).validate_python(data)
    except SchemaError as e:
        logger.warning("unexpected response body for %s: %s", getattr(schema, "__name__", schema), e)
        raise TransportError("Malformed response from the lessons service") from e


def error_from_response(response: httpx.Response) -> ServiceError:
    """Map an error response of the API back to the typed error the server raised."""
    try:
        body = response.json()
    except ValueError:
        body = None
    detail = body.get("detail") if isinstance(body, dict) else None
    if isinstance(detail, dict):
        code = detail.get("code")
        message = detail.get("message") or response.reason_phrase
    else:
        code = None
        message = str(detail) if detail else response.reason_phrase

    status_code = response.status_code
    if status_code in (400, 422):
        return ValidationError(message)
    if status_code == 404:
        return NotFoundError(message)
    if status_code == 423:
        return LessonLocked(message)
    if status_code == 409 and code == ConflictError.code:
        return ConflictError(
            message,
            conflicts=_parse(List[LessonConflict], detail.get("conflicts", [])),
            suggestions=_parse(List[ConflictSuggestion], detail.get("suggestions", [])),
        )
    if status_code == 409 and code == InvalidTransitionError.code:
        return InvalidTransitionError(message)
    if status_code >= 500:
        return TransportError(f"Server error ({status_code}): {message}")
    return ServiceError(message, status_code)


class LessonApiClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self._client = httpx.AsyncClient(base_url=self.base_url, timeout=timeout, transport=transport)

    async def __aenter__(self) -> "LessonApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            res = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.warning("%s %s failed: %s", method, path, e)
            raise TransportError(f"Could not reach the lessons service: {e}") from e
        if res.is_error:
            raise error_from_response(res)
        if res.status_code == 204:
            return None
        try:
            return res.json()
        except ValueError as e:
            logger.warning("%s %s returned a non-JSON body", method, path)
            raise TransportError("Malformed response from the lessons service") from e

    async def check_conflicts(
        self,
        class_id: UUID,
        scheduled_date: date,
        start_time: Union[str, time],
        end_time: Union[str, time],
        exclude_lesson_id: Optional[UUID] = None,
    ) -> ConflictCheckResult:
        params = {
            "classId": str(class_id),
            "scheduledDate": scheduled_date.isoformat(),
            "startTime": _time_param(start_time),
            "endTime": _time_param(end_time),
        }
        if exclude_lesson_id:
            params["excludeLessonId"] = str(exclude_lesson_id)
        data = await self._request("GET", f"{LESSONS_PATH}/conflicts", params=params)
        return _parse(ConflictCheckResult, data)

    async def list_lessons(self, filters: Optional[LessonListFilters] = None) -> List[LessonResponse]:
        params = (filters or LessonListFilters()).to_params()
        data = await self._request("GET", LESSONS_PATH, params=params)
        return _parse(List[LessonResponse], data)

    async def get_lesson(self, lesson_id: UUID) -> LessonResponse:
        data = await self._request("GET", f"{LESSONS_PATH}/{lesson_id}")
        return _parse(LessonResponse, data)

    async def conduct(self, lesson_id: UUID, payload: Optional[ConductLessonRequest] = None) -> LessonResponse:
        data = await self._request(
            "POST", f"{LESSONS_PATH}/{lesson_id}/conduct", json=_body(payload or ConductLessonRequest())
        )
        return _parse(LessonResponse, data)

    async def cancel(self, lesson_id: UUID, payload: CancelLessonRequest) -> LessonResponse:
        data = await self._request("POST", f"{LESSONS_PATH}/{lesson_id}/cancel", json=_body(payload))
        return _parse(LessonResponse, data)

    async def no_show(self, lesson_id: UUID, payload: Optional[NoShowRequest] = None) -> LessonResponse:
        data = await self._request(
            "POST", f"{LESSONS_PATH}/{lesson_id}/no-show", json=_body(payload or NoShowRequest())
        )
        return _parse(LessonResponse, data)

    async def reschedule(self, lesson_id: UUID, payload: RescheduleLessonRequest) -> LessonResponse:
        data = await self._request("POST", f"{LESSONS_PATH}/{lesson_id}/reschedule", json=_body(payload))
        return _parse(LessonResponse, data)

    async def create_makeup(self, lesson_id: UUID, payload: MakeupLessonRequest) -> LessonResponse:
        data = await self._request("POST", f"{LESSONS_PATH}/{lesson_id}/makeup", json=_body(payload))
        return _parse(LessonResponse, data)
