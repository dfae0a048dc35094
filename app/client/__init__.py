from .api_client import LessonApiClient, LessonListFilters
from .conflict_precheck import ConflictPrecheck
from .quick_actions import ActionOutcome, QuickLessonActions

__all__ = [
    "ActionOutcome",
    "ConflictPrecheck",
    "LessonApiClient",
    "LessonListFilters",
    "QuickLessonActions",
]
