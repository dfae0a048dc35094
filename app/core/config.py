from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str = Field("sqlite+aiosqlite:///./lessons.db", alias="DATABASE_URL")
    school_timezone: str = Field("UTC", alias="SCHOOL_TIMEZONE")
    log_level: str = Field("INFO", alias="LOG_LEVEL")

    # Lesson lifecycle
    conduct_grace_minutes: int = Field(15, alias="CONDUCT_GRACE_MINUTES")

    # Schedule slot suggestions (24-hour HH:MM)
    schedule_day_start: str = Field("08:00", alias="SCHEDULE_DAY_START")
    schedule_day_end: str = Field("21:00", alias="SCHEDULE_DAY_END")
    suggestion_step_minutes: int = Field(30, alias="SUGGESTION_STEP_MINUTES")
    max_suggestions: int = Field(5, alias="MAX_SUGGESTIONS")

    # Client side
    api_base_url: str = Field("http://localhost:8000", alias="API_BASE_URL")
    conflict_check_debounce_ms: int = Field(500, alias="CONFLICT_CHECK_DEBOUNCE_MS")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()
