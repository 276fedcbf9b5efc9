from __future__ import annotations

from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import (BaseModel, ConfigDict, Field, StrictBool, StrictFloat, TypeAdapter,
                      ValidationError, field_validator, model_validator)
from pydantic.alias_generators import to_camel

from ..utils import parse_instant
from .errors import SchemaViolation

IntentName = Literal[
    "add_event",
    "update_event",
    "delete_event",
    "delete_events",
    "get_events",
    "add_task",
    "update_task",
    "delete_task",
    "get_tasks",
    "control_pomodoro",
    "plan_schedule",
    "plan_tasks",
    "help",
]
EventType = Literal["event", "course"]


def _check_instant(value: Optional[str]) -> Optional[str]:
  if value is None:
    return None
  parse_instant(value)
  return value


def _check_range(start: Optional[str], end: Optional[str]) -> None:
  if start is None or end is None:
    return
  if parse_instant(end) <= parse_instant(start):
    raise ValueError("end must be after start")


class _Payload(BaseModel):
  """Wire fields are camelCase; extra keys from the model are dropped."""
  model_config = ConfigDict(extra="ignore",
                            alias_generator=to_camel,
                            populate_by_name=True,
                            str_strip_whitespace=True)

  def to_attrs(self) -> Dict[str, Any]:
    return self.model_dump(by_alias=True, exclude_none=True)


# ---------------------------------------------------------------------------
#  Event payloads
# ---------------------------------------------------------------------------

class EventPayload(_Payload):
  title: str = Field(min_length=1)
  start: str
  end: str
  all_day: StrictBool = False
  type: EventType = "event"
  course_code: Optional[str] = None
  location: Optional[str] = None
  notes: Optional[str] = None

  _instants = field_validator("start", "end")(_check_instant)

  @model_validator(mode="after")
  def _end_after_start(self) -> "EventPayload":
    _check_range(self.start, self.end)
    return self


class EventUpdates(_Payload):
  title: Optional[str] = Field(default=None, min_length=1)
  start: Optional[str] = None
  end: Optional[str] = None
  all_day: Optional[StrictBool] = None
  type: Optional[EventType] = None
  course_code: Optional[str] = None
  location: Optional[str] = None
  notes: Optional[str] = None

  _instants = field_validator("start", "end")(_check_instant)

  @model_validator(mode="after")
  def _end_after_start(self) -> "EventUpdates":
    _check_range(self.start, self.end)
    return self


class UpdateEventPayload(_Payload):
  id: str = Field(min_length=1)
  updates: EventUpdates


class IdPayload(_Payload):
  id: str = Field(min_length=1)


class EventFilter(_Payload):
  title_contains: Optional[str] = None
  from_: Optional[str] = Field(default=None, alias="from")
  to: Optional[str] = None

  _instants = field_validator("from_", "to")(_check_instant)

  def is_empty(self) -> bool:
    return not self.title_contains and self.from_ is None and self.to is None


class DeleteEventsPayload(_Payload):
  event_ids: Optional[List[str]] = None
  filter: Optional[EventFilter] = None
  confirm: Optional[StrictBool] = None


class EventRange(_Payload):
  start: Optional[str] = None
  end: Optional[str] = None

  _instants = field_validator("start", "end")(_check_instant)


class GetEventsPayload(_Payload):
  range: Optional[EventRange] = None


# ---------------------------------------------------------------------------
#  Task payloads
# ---------------------------------------------------------------------------

class TaskPayload(_Payload):
  title: str = Field(min_length=1)
  due: Optional[str] = None
  notes: Optional[str] = None

  _instants = field_validator("due")(_check_instant)


class TaskUpdates(_Payload):
  title: Optional[str] = Field(default=None, min_length=1)
  due: Optional[str] = None
  done: Optional[StrictBool] = None
  notes: Optional[str] = None

  _instants = field_validator("due")(_check_instant)


class UpdateTaskPayload(_Payload):
  id: str = Field(min_length=1)
  updates: TaskUpdates


class GetTasksPayload(_Payload):
  status: Optional[Literal["all", "open", "done"]] = None
  due_before: Optional[str] = None
  due_after: Optional[str] = None

  _instants = field_validator("due_before", "due_after")(_check_instant)


# ---------------------------------------------------------------------------
#  Pomodoro / bulk plans / help
# ---------------------------------------------------------------------------

class PomodoroPayload(_Payload):
  action: Literal["start", "stop", "reset"]
  duration_minutes: Optional[StrictFloat] = Field(default=None, ge=1, le=120)


class PlanSchedulePayload(_Payload):
  events: List[EventPayload]
  summary: Optional[str] = None


class PlanTasksPayload(_Payload):
  tasks: List[TaskPayload]
  summary: Optional[str] = None


class HelpPayload(_Payload):
  prompt: Optional[str] = None
  suggestions: Optional[List[str]] = None


# ---------------------------------------------------------------------------
#  Intent union
# ---------------------------------------------------------------------------

class _Intent(BaseModel):
  model_config = ConfigDict(extra="ignore")


class AddEventIntent(_Intent):
  intent: Literal["add_event"]
  payload: EventPayload


class UpdateEventIntent(_Intent):
  intent: Literal["update_event"]
  payload: UpdateEventPayload


class DeleteEventIntent(_Intent):
  intent: Literal["delete_event"]
  payload: IdPayload


class DeleteEventsIntent(_Intent):
  intent: Literal["delete_events"]
  payload: DeleteEventsPayload


class GetEventsIntent(_Intent):
  intent: Literal["get_events"]
  payload: Optional[GetEventsPayload] = None


class AddTaskIntent(_Intent):
  intent: Literal["add_task"]
  payload: TaskPayload


class UpdateTaskIntent(_Intent):
  intent: Literal["update_task"]
  payload: UpdateTaskPayload


class DeleteTaskIntent(_Intent):
  intent: Literal["delete_task"]
  payload: IdPayload


class GetTasksIntent(_Intent):
  intent: Literal["get_tasks"]
  payload: Optional[GetTasksPayload] = None


class ControlPomodoroIntent(_Intent):
  intent: Literal["control_pomodoro"]
  payload: PomodoroPayload


class PlanScheduleIntent(_Intent):
  intent: Literal["plan_schedule"]
  payload: PlanSchedulePayload


class PlanTasksIntent(_Intent):
  intent: Literal["plan_tasks"]
  payload: PlanTasksPayload


class HelpIntent(_Intent):
  intent: Literal["help"]
  payload: Optional[HelpPayload] = None


Intent = Annotated[
    Union[
        AddEventIntent,
        UpdateEventIntent,
        DeleteEventIntent,
        DeleteEventsIntent,
        GetEventsIntent,
        AddTaskIntent,
        UpdateTaskIntent,
        DeleteTaskIntent,
        GetTasksIntent,
        ControlPomodoroIntent,
        PlanScheduleIntent,
        PlanTasksIntent,
        HelpIntent,
    ],
    Field(discriminator="intent"),
]

_INTENT_ADAPTER: TypeAdapter[Intent] = TypeAdapter(Intent)


def _issues_from(exc: ValidationError) -> List[Dict[str, Any]]:
  issues: List[Dict[str, Any]] = []
  for err in exc.errors():
    issues.append({
        "loc": ".".join(str(part) for part in err.get("loc", ())),
        "msg": err.get("msg", ""),
        "type": err.get("type", ""),
    })
  return issues


def parse_intent(candidate: Any) -> Intent:
  """Validate a decoded model response against the intent catalogue.

  Returns the typed intent, or raises SchemaViolation listing every
  field-level mismatch together with the offending object.
  """
  try:
    return _INTENT_ADAPTER.validate_python(candidate)
  except ValidationError as exc:
    raise SchemaViolation(_issues_from(exc), raw=candidate) from exc
