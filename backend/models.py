from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .utils import parse_instant

EventType = Literal["event", "course"]


class StoredDocument(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel,
                              populate_by_name=True,
                              str_strip_whitespace=True,
                              extra="ignore")

    id: str
    user_id: str
    created_at: datetime
    updated_at: datetime

    @field_validator("created_at", "updated_at", mode="before")
    @classmethod
    def _coerce_timestamp(cls, value: Any) -> datetime:
        return parse_instant(value)

    def to_public(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Event(StoredDocument):
    title: str = Field(min_length=1, max_length=200)
    start: datetime
    end: datetime
    all_day: bool = False
    type: EventType = "event"
    course_code: Optional[str] = Field(default=None, max_length=20)
    location: Optional[str] = Field(default=None, max_length=100)
    notes: Optional[str] = Field(default=None, max_length=1000)

    @field_validator("start", "end", mode="before")
    @classmethod
    def _coerce_instant(cls, value: Any) -> datetime:
        return parse_instant(value)

    @model_validator(mode="after")
    def _check_range(self) -> "Event":
        if self.end <= self.start:
            raise ValueError("End date must be after start date")
        return self


class Task(StoredDocument):
    title: str = Field(min_length=1, max_length=200)
    due: Optional[datetime] = None
    notes: Optional[str] = Field(default=None, max_length=1000)
    done: bool = False

    @field_validator("due", mode="before")
    @classmethod
    def _coerce_due(cls, value: Any) -> Optional[datetime]:
        if value is None:
            return None
        return parse_instant(value)


class _CamelInput(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel,
                              populate_by_name=True,
                              extra="ignore")

    def to_attrs(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class EventCreate(_CamelInput):
    title: str
    start: str
    end: str
    all_day: Optional[bool] = None
    type: Optional[EventType] = None
    course_code: Optional[str] = None
    location: Optional[str] = None
    notes: Optional[str] = None


class EventUpdate(_CamelInput):
    title: Optional[str] = None
    start: Optional[str] = None
    end: Optional[str] = None
    all_day: Optional[bool] = None
    type: Optional[EventType] = None
    course_code: Optional[str] = None
    location: Optional[str] = None
    notes: Optional[str] = None


class TaskCreate(_CamelInput):
    title: str
    due: Optional[str] = None
    notes: Optional[str] = None
    done: Optional[bool] = None


class TaskUpdate(_CamelInput):
    title: Optional[str] = None
    due: Optional[str] = None
    notes: Optional[str] = None
    done: Optional[bool] = None


class ChatbotRequest(BaseModel):
    message: Any = None
