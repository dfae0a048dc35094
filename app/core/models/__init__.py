from app.core.models.academic_year import AcademicYear, PublicHoliday, Semester, TeachingBreak
from app.core.models.class_model import Classroom, SchoolClass
from app.core.models.schedule_slot import ScheduleSlot
from app.core.models.lesson import Lesson, LessonAuditLog

__all__ = [
    "AcademicYear",
    "Classroom",
    "Lesson",
    "LessonAuditLog",
    "PublicHoliday",
    "SchoolClass",
    "ScheduleSlot",
    "Semester",
    "TeachingBreak",
]
