from __future__ import annotations

import math
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError

from ..config import DEFAULT_POMODORO_MINUTES
from ..models import Event, Task
from ..state import AppStore, sort_events, sort_tasks
from ..utils import parse_instant
from .errors import BulkPlanFailed, EntityInvalid, EntityNotFound, SelectorMissing
from .schemas import (
    DeleteEventsPayload,
    EventPayload,
    GetEventsPayload,
    GetTasksPayload,
    HelpPayload,
    Intent,
    PomodoroPayload,
    TaskPayload,
)

DEFAULT_HELP_PROMPT = (
    "Need more details. Examples: Add Algorithms course Dec 5 10:00-12:00 room B201; "
    "Move calculus to tomorrow 8am; Delete physics lab Friday; What do I have next Tuesday?; "
    "Show open tasks due this week; Start a 25 minute Pomodoro; Mark calculus assignment as done."
)


def _optional_instant(value: Optional[str]) -> Optional[datetime]:
  return parse_instant(value) if value else None


def _store_issues(exc: ValidationError) -> List[Dict[str, Any]]:
  return [{
      "loc": ".".join(str(part) for part in err.get("loc", ())),
      "msg": err.get("msg", ""),
      "type": err.get("type", ""),
  } for err in exc.errors()]


async def _create_event(store: AppStore, user_id: str, payload: EventPayload) -> Event:
  try:
    return await store.events.create(user_id, payload.to_attrs())
  except ValidationError as exc:
    raise EntityInvalid("Invalid event", details=_store_issues(exc)) from exc


async def _create_task(store: AppStore, user_id: str, payload: TaskPayload) -> Task:
  try:
    return await store.tasks.create(user_id, payload.to_attrs())
  except ValidationError as exc:
    raise EntityInvalid("Invalid task", details=_store_issues(exc)) from exc


def _events_selector(payload: DeleteEventsPayload) -> Callable[[Event], bool]:
  if payload.event_ids:
    wanted = {str(item_id) for item_id in payload.event_ids}
    return lambda evt: evt.id in wanted

  selector = payload.filter
  if selector is None or selector.is_empty():
    raise SelectorMissing()
  needle = (selector.title_contains or "").casefold()
  lower = _optional_instant(selector.from_)
  upper = _optional_instant(selector.to)

  def matches(evt: Event) -> bool:
    if needle and needle not in evt.title.casefold():
      return False
    if lower is not None and evt.start < lower:
      return False
    if upper is not None and evt.start > upper:
      return False
    return True

  return matches


def _events_in_range(payload: Optional[GetEventsPayload]) -> Callable[[Event], bool]:
  rng = payload.range if payload else None
  lower = _optional_instant(rng.start) if rng else None
  upper = _optional_instant(rng.end) if rng else None
  return lambda evt: ((upper is None or evt.start <= upper) and
                      (lower is None or evt.end >= lower))


def _tasks_matching(payload: Optional[GetTasksPayload]) -> Callable[[Task], bool]:
  status = payload.status if payload else None
  due_after = _optional_instant(payload.due_after) if payload else None
  due_before = _optional_instant(payload.due_before) if payload else None

  def matches(task: Task) -> bool:
    if status == "open" and task.done:
      return False
    if status == "done" and not task.done:
      return False
    if due_after is not None or due_before is not None:
      if task.due is None:
        return False
      if due_after is not None and task.due < due_after:
        return False
      if due_before is not None and task.due > due_before:
        return False
    return True

  return matches


def _pomodoro_response(payload: PomodoroPayload) -> Dict[str, Any]:
  minutes = payload.duration_minutes
  command: Dict[str, Any] = {"action": payload.action}
  if minutes is not None:
    command["durationSeconds"] = int(math.floor(minutes * 60 + 0.5))

  if payload.action == "start":
    shown = minutes if minutes is not None else DEFAULT_POMODORO_MINUTES
    message = f"Starting a {shown:g}-minute focus session."
  elif payload.action == "stop":
    message = "Stopping the current Pomodoro session."
  else:
    message = "Resetting the Pomodoro timer."
  return {
      "ok": True,
      "action": "pomodoro",
      "message": message,
      "command": command,
  }


def _help_response(payload: Optional[HelpPayload]) -> Dict[str, Any]:
  prompt = payload.prompt if payload and payload.prompt else DEFAULT_HELP_PROMPT
  body: Dict[str, Any] = {"ok": True, "help": prompt}
  if payload and payload.suggestions is not None:
    body["suggestions"] = payload.suggestions
  return body


async def dispatch_intent(store: AppStore, user_id: str, intent: Intent) -> Dict[str, Any]:
  """Execute one validated intent for `user_id` and shape the response body.

  Every branch is terminal. Creates in a bulk plan run one at a time in
  payload order; a failure keeps the already-created prefix and raises
  BulkPlanFailed. New events are not checked for overlaps here.
  """
  name = intent.intent

  if name == "add_event":
    created = await _create_event(store, user_id, intent.payload)
    return {"ok": True, "action": "created", "event": created.to_public()}

  if name == "update_event":
    try:
      updated = await store.events.update_one(
          user_id, intent.payload.id, intent.payload.updates.to_attrs())
    except ValidationError as exc:
      raise EntityInvalid("Invalid event update", details=_store_issues(exc)) from exc
    if updated is None:
      raise EntityNotFound("Not found")
    return {"ok": True, "action": "updated", "event": updated.to_public()}

  if name == "delete_event":
    deleted = await store.events.delete_one(user_id, intent.payload.id)
    if deleted is None:
      raise EntityNotFound("Not found")
    return {"ok": True, "action": "deleted", "id": intent.payload.id}

  if name == "delete_events":
    selector = _events_selector(intent.payload)
    matched = sort_events(await store.events.find_many(user_id, selector))
    if not matched:
      return {"ok": True, "action": "delete_none", "count": 0, "events": []}
    count = await store.events.delete_many(user_id, [evt.id for evt in matched])
    return {
        "ok": True,
        "action": "events_deleted",
        "count": count,
        "events": [{"id": evt.id, "title": evt.title} for evt in matched],
    }

  if name == "get_events":
    events = await store.events.find_many(user_id, _events_in_range(intent.payload))
    return {
        "ok": True,
        "action": "list",
        "events": [evt.to_public() for evt in sort_events(events)],
    }

  if name == "add_task":
    task = await _create_task(store, user_id, intent.payload)
    return {"ok": True, "action": "task_created", "task": task.to_public()}

  if name == "update_task":
    try:
      task = await store.tasks.update_one(
          user_id, intent.payload.id, intent.payload.updates.to_attrs())
    except ValidationError as exc:
      raise EntityInvalid("Invalid task update", details=_store_issues(exc)) from exc
    if task is None:
      raise EntityNotFound("Task not found")
    return {"ok": True, "action": "task_updated", "task": task.to_public()}

  if name == "delete_task":
    deleted_task = await store.tasks.delete_one(user_id, intent.payload.id)
    if deleted_task is None:
      raise EntityNotFound("Task not found")
    return {"ok": True, "action": "task_deleted", "id": intent.payload.id}

  if name == "get_tasks":
    tasks = await store.tasks.find_many(user_id, _tasks_matching(intent.payload))
    return {
        "ok": True,
        "action": "tasks_list",
        "tasks": [task.to_public() for task in sort_tasks(tasks)],
    }

  if name == "control_pomodoro":
    return _pomodoro_response(intent.payload)

  if name == "plan_schedule":
    created_events: List[Event] = []
    for index, event_payload in enumerate(intent.payload.events):
      try:
        created_events.append(await _create_event(store, user_id, event_payload))
      except Exception as exc:
        print(f"[DISPATCH] plan_schedule stopped at events[{index}]: {exc}", flush=True)
        raise BulkPlanFailed(
            f"Failed to create event {index + 1} of {len(intent.payload.events)}: {exc}",
            created=[evt.id for evt in created_events],
            failed_index=index) from exc
    count = len(created_events)
    return {
        "ok": True,
        "action": "plan_created",
        "events": [evt.to_public() for evt in created_events],
        "summary": intent.payload.summary or f"Created {count} event(s) for your schedule.",
        "count": count,
    }

  if name == "plan_tasks":
    created_tasks: List[Task] = []
    for index, task_payload in enumerate(intent.payload.tasks):
      try:
        created_tasks.append(await _create_task(store, user_id, task_payload))
      except Exception as exc:
        print(f"[DISPATCH] plan_tasks stopped at tasks[{index}]: {exc}", flush=True)
        raise BulkPlanFailed(
            f"Failed to create task {index + 1} of {len(intent.payload.tasks)}: {exc}",
            created=[task.id for task in created_tasks],
            failed_index=index) from exc
    count = len(created_tasks)
    return {
        "ok": True,
        "action": "tasks_plan_created",
        "tasks": [task.to_public() for task in created_tasks],
        "summary": intent.payload.summary or f"Created {count} task(s) for your plan.",
        "count": count,
    }

  if name == "help":
    return _help_response(intent.payload)

  raise ValueError(f"Unhandled intent: {name}")
