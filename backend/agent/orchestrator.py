from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from ..state import AppStore
from ..utils import _log_debug, now_utc
from .context_provider import build_context_snapshot
from .dispatcher import dispatch_intent
from .errors import InputMissing
from .llm_provider import IntentCompletion
from .schemas import parse_intent


async def run_assistant(store: AppStore,
                        completion: IntentCompletion,
                        user_id: str,
                        message: Any,
                        now: Optional[datetime] = None) -> Dict[str, Any]:
  """message -> context -> completion (+1 repair) -> validation -> dispatch.

  Raises AssistantError subclasses; the route turns them into responses.
  """
  if not isinstance(message, str) or not message.strip():
    raise InputMissing()

  snapshot = await build_context_snapshot(store, user_id, now or now_utc())
  _log_debug(f"[CHATBOT] user={user_id} context events={len(snapshot.events)} "
             f"tasks={len(snapshot.tasks)}")

  result = await completion.request(message, snapshot.render())
  intent = parse_intent(result.data)
  _log_debug(f"[CHATBOT] user={user_id} intent={intent.intent} repaired={result.repaired}")

  return await dispatch_intent(store, user_id, intent)
