"""Wall clock in the school's timezone. Lesson dates and times are school-local."""

from datetime import date, datetime, time
from zoneinfo import ZoneInfo

from app.core.config import settings


def school_tz() -> ZoneInfo:
    return ZoneInfo(settings.school_timezone)


def now() -> datetime:
    return datetime.now(school_tz())


def today() -> date:
    return now().date()


def lesson_datetime(scheduled_date: date, at: time) -> datetime:
    """Aware datetime for a lesson-local date and time."""
    return datetime.combine(scheduled_date, at, tzinfo=school_tz())


def localize(moment: datetime) -> datetime:
    """Treat naive datetimes as school-local; convert aware ones to school time."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=school_tz())
    return moment.astimezone(school_tz())
