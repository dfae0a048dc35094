from datetime import time
from typing import Union

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from app.core.time_range import format_time_24, parse_time_24


class ApiModel(BaseModel):
    """Base for wire schemas: camelCase JSON, snake_case attributes."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


def time_field(v: Union[str, time]) -> time:
    """Validator body for 24-hour time fields (HH:MM, HH:MM:SS truncated)."""
    return parse_time_24(v)


def time_out(t: time) -> str:
    """Output as 24-hour string HH:MM (e.g. 09:00, 09:45)."""
    return format_time_24(t)
