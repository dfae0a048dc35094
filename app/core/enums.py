from enum import Enum


class DayOfWeek(str, Enum):
    MONDAY = "Monday"
    TUESDAY = "Tuesday"
    WEDNESDAY = "Wednesday"
    THURSDAY = "Thursday"
    FRIDAY = "Friday"
    SATURDAY = "Saturday"
    SUNDAY = "Sunday"

    @property
    def index(self) -> int:
        """0=Monday .. 6=Sunday, same numbering as date.weekday()."""
        return list(DayOfWeek).index(self)

    @classmethod
    def from_index(cls, index: int) -> "DayOfWeek":
        return list(cls)[index]


class LessonStatus(str, Enum):
    SCHEDULED = "Scheduled"
    CONDUCTED = "Conducted"
    CANCELLED = "Cancelled"
    MAKE_UP = "Make Up"
    NO_SHOW = "No Show"


class LessonAction(str, Enum):
    CONDUCT = "conduct"
    CANCEL = "cancel"
    NO_SHOW = "no_show"
    RESCHEDULE = "reschedule"
    EDIT = "edit"
    DELETE = "delete"
    CREATE_MAKEUP = "create_makeup"


class GenerationSource(str, Enum):
    MANUAL = "manual"
    AUTOMATIC = "automatic"
    MAKEUP = "makeup"


class GenerationRangeType(str, Enum):
    UNTIL_MONTH_END = "UntilMonthEnd"
    UNTIL_SEMESTER_END = "UntilSemesterEnd"
    UNTIL_YEAR_END = "UntilYearEnd"
    CUSTOM = "Custom"


class ConflictType(str, Enum):
    EXISTING_LESSON = "existing_lesson"
    TEACHER_CONFLICT = "teacher_conflict"
    CLASSROOM_CONFLICT = "classroom_conflict"


class EditLock(str, Enum):
    NONE = "none"
    GRACE_PERIOD = "grace_period"
    LOCKED = "locked"


class LessonTimeWindow(str, Enum):
    WEEK = "week"
    MONTH = "month"
    ALL = "all"
