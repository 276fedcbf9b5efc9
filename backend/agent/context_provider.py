from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, tzinfo
from typing import List, Optional

from ..config import ASSISTANT_TIMEZONE, CONTEXT_MAX_TASKS, CONTEXT_WINDOW_DAYS
from ..models import Event, Task
from ..state import AppStore, sort_events, sort_tasks
from ..utils import day_window, to_iso


@dataclass
class ContextSnapshot:
  """Near-term calendar and open tasks used to ground one assistant request."""
  now: datetime
  window_start: datetime
  window_end: datetime
  events: List[Event] = field(default_factory=list)
  tasks: List[Task] = field(default_factory=list)

  def render(self) -> str:
    lines = [
        f"Today is {to_iso(self.now)}. The user is in a generic timezone.",
        "",
        f"EXISTING EVENTS IN CALENDAR (next {(self.window_end - self.window_start).days} days):",
    ]
    if self.events:
      lines.extend(_event_line(evt) for evt in self.events)
    else:
      lines.append("- No events scheduled")
    lines.extend([
        "",
        "IMPORTANT: When creating new events, you MUST check the times above and avoid any overlaps. "
        "Find free time slots between existing events.",
        "",
        "Open tasks (ID | title | due ISO if any):",
    ])
    if self.tasks:
      lines.extend(_task_line(task) for task in self.tasks)
    else:
      lines.append("- no pending tasks")
    lines.extend([
        "",
        "Use only the documented intents. When modifying or deleting items, reference IDs from the list above. "
        "Ask for clarification via help intent if details are missing.",
    ])
    return "\n".join(lines)


def _event_line(evt: Event) -> str:
  location = evt.location or "no location"
  return f"- {evt.title} | {to_iso(evt.start)} to {to_iso(evt.end)} | {location} | ID: {evt.id}"


def _task_line(task: Task) -> str:
  due = to_iso(task.due) if task.due else "n/a"
  return f"- {task.id} | {task.title} | {due}"


async def build_context_snapshot(store: AppStore, user_id: str, now: datetime,
                                 tz: Optional[tzinfo] = None,
                                 window_days: int = CONTEXT_WINDOW_DAYS,
                                 max_tasks: int = CONTEXT_MAX_TASKS) -> ContextSnapshot:
  window_start, window_end = day_window(now, tz or ASSISTANT_TIMEZONE, window_days)

  events = await store.events.find_many(
      user_id, lambda evt: window_start <= evt.start <= window_end)
  open_tasks = await store.tasks.find_many(user_id, lambda task: not task.done)

  return ContextSnapshot(
      now=now,
      window_start=window_start,
      window_end=window_end,
      events=sort_events(events),
      tasks=sort_tasks(open_tasks)[:max_tasks],
  )
