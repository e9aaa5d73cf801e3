from datetime import datetime, UTC
from typing import Optional

from pydantic import BaseModel, ConfigDict, StrictBool, StrictStr, field_validator
from pydantic.alias_generators import to_camel


def _non_empty(v: Optional[str]) -> str:
    if v is None or not v.strip():
        raise ValueError("text cannot be empty")
    return v.strip()


class TaskCreate(BaseModel):
    text: StrictStr

    @field_validator("text")
    @classmethod
    def text_not_empty(cls, v):
        return _non_empty(v)


class TaskUpdate(BaseModel):
    """Partial update; only the fields present in the request are applied."""

    text: Optional[StrictStr] = None
    completed: Optional[StrictBool] = None

    @field_validator("text")
    @classmethod
    def text_not_empty(cls, v):
        return _non_empty(v)

    @field_validator("completed")
    @classmethod
    def completed_not_null(cls, v):
        if v is None:
            raise ValueError("completed cannot be null")
        return v


class TaskOut(BaseModel):
    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)

    id: int
    text: str
    completed: bool
    author_id: str
    created_at: datetime
    updated_at: datetime

    @field_validator("created_at", "updated_at")
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        # SQLite hands back stored timestamps without their zone; they are always UTC
        return v if v.tzinfo is not None else v.replace(tzinfo=UTC)
