from typing import Any, Dict, List, Optional

from fastapi import status


class ServiceError(Exception):
    """Base exception for service layer errors."""

    code = "service_error"

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    def to_detail(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message}


class ValidationError(ServiceError):
    """Malformed input: bad time range, missing cancellation reason, ..."""

    code = "validation_error"

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_400_BAD_REQUEST)


class NotFoundError(ServiceError):
    code = "not_found"

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_404_NOT_FOUND)


class InvalidTransitionError(ServiceError):
    """Lesson action not permitted from the lesson's current status."""

    code = "invalid_transition"

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_409_CONFLICT)


class LessonLocked(ServiceError):
    """Mutation attempted on a conducted lesson from a previous day."""

    code = "lesson_locked"

    def __init__(self, message: str = "Lesson is locked: conducted lessons cannot be edited after the lesson day") -> None:
        super().__init__(message, status.HTTP_423_LOCKED)


class ConflictError(ServiceError):
    """
    Overlap with other lessons. Non-fatal: the caller may pick a suggestion or
    repeat the request with force=true.
    """

    code = "conflict"

    def __init__(
        self,
        message: str,
        conflicts: Optional[List[Any]] = None,
        suggestions: Optional[List[Any]] = None,
    ) -> None:
        super().__init__(message, status.HTTP_409_CONFLICT)
        self.conflicts = conflicts or []
        self.suggestions = suggestions or []

    def to_detail(self) -> Dict[str, Any]:
        detail = super().to_detail()
        detail["conflicts"] = [_dump(c) for c in self.conflicts]
        detail["suggestions"] = [_dump(s) for s in self.suggestions]
        return detail


class TransportError(ServiceError):
    """Network or remote service failure. Recoverable; the user may retry."""

    code = "transport_error"

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_503_SERVICE_UNAVAILABLE)


def _dump(item: Any) -> Any:
    if hasattr(item, "model_dump"):
        return item.model_dump(mode="json", by_alias=True)
    return item
