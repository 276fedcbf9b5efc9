from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from .agent import AssistantError, IntentCompletion, run_assistant
from .config import API_BASE, USER_ID_HEADER, get_llm_settings
from .models import ChatbotRequest, EventCreate, EventUpdate, TaskCreate, TaskUpdate
from .state import AppStore, get_store, sort_events
from .utils import now_utc, to_iso, try_parse_instant

router = APIRouter()
logger = logging.getLogger(__name__)

_completion: Optional[IntentCompletion] = None


def get_completion() -> IntentCompletion:
  global _completion
  if _completion is None:
    _completion = IntentCompletion(get_llm_settings())
  return _completion


def require_user_id(request: Request) -> str:
  """User id stamped on the request by the upstream auth layer."""
  user_id = (request.headers.get(USER_ID_HEADER) or "").strip()
  if not user_id:
    raise HTTPException(status_code=401, detail="No auth header")
  return user_id


def _validation_detail(exc: ValidationError) -> List[Dict[str, Any]]:
  return [{
      "loc": ".".join(str(part) for part in err.get("loc", ())),
      "msg": err.get("msg", ""),
  } for err in exc.errors()]


def _parse_query_instant(value: Optional[str], name: str):
  if value is None:
    return None
  parsed = try_parse_instant(value)
  if parsed is None:
    raise HTTPException(status_code=400, detail=f"Invalid {name} date format")
  return parsed


@router.get("/")
def root():
  return {
      "success": True,
      "message": "SmartStudy API is running",
      "timestamp": to_iso(now_utc()),
  }


@router.get(f"{API_BASE}/health")
def health():
  return {"success": True, "status": "healthy", "timestamp": to_iso(now_utc())}


# -------------------------
# 어시스턴트
# -------------------------
@router.post(f"{API_BASE}/chatbot")
async def chatbot(body: Optional[ChatbotRequest] = None,
                  user_id: str = Depends(require_user_id),
                  store: AppStore = Depends(get_store),
                  completion: IntentCompletion = Depends(get_completion)):
  try:
    message = body.message if body is not None else None
    return await run_assistant(store, completion, user_id, message)
  except AssistantError as exc:
    if exc.status_code >= 500:
      logger.warning("chatbot failed (%s): %s", exc.__class__.__name__, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_response())
  except Exception as exc:
    logger.exception("chatbot unhandled error")
    return JSONResponse(status_code=500, content={"ok": False, "error": str(exc)})


# -------------------------
# 이벤트
# -------------------------
@router.get(f"{API_BASE}/events")
async def list_events(start: Optional[str] = Query(default=None),
                      end: Optional[str] = Query(default=None),
                      user_id: str = Depends(require_user_id),
                      store: AppStore = Depends(get_store)):
  lower = _parse_query_instant(start, "start")
  upper = _parse_query_instant(end, "end")
  events = await store.events.find_many(
      user_id,
      lambda evt: (upper is None or evt.start <= upper) and (lower is None or evt.end >= lower))
  return [evt.to_public() for evt in sort_events(events)]


@router.post(f"{API_BASE}/events")
async def create_event(event_in: EventCreate,
                       user_id: str = Depends(require_user_id),
                       store: AppStore = Depends(get_store)):
  try:
    created = await store.events.create(user_id, event_in.to_attrs())
  except ValidationError as exc:
    raise HTTPException(status_code=400, detail=_validation_detail(exc)) from exc
  return created.to_public()


@router.put(f"{API_BASE}/events/{{event_id}}")
async def update_event(event_id: str,
                       payload: EventUpdate,
                       user_id: str = Depends(require_user_id),
                       store: AppStore = Depends(get_store)):
  try:
    updated = await store.events.update_one(user_id, event_id, payload.to_attrs())
  except ValidationError as exc:
    raise HTTPException(status_code=400, detail=_validation_detail(exc)) from exc
  if updated is None:
    raise HTTPException(status_code=404, detail="Not found")
  return updated.to_public()


@router.delete(f"{API_BASE}/events/{{event_id}}")
async def delete_event(event_id: str,
                       user_id: str = Depends(require_user_id),
                       store: AppStore = Depends(get_store)):
  deleted = await store.events.delete_one(user_id, event_id)
  if deleted is None:
    raise HTTPException(status_code=404, detail="Not found")
  return {"ok": True, "id": event_id}


# -------------------------
# 할 일
# -------------------------
@router.get(f"{API_BASE}/tasks")
async def list_tasks(user_id: str = Depends(require_user_id),
                     store: AppStore = Depends(get_store)):
  tasks = await store.tasks.find_many(user_id)
  tasks.sort(key=lambda task: task.created_at, reverse=True)
  return [task.to_public() for task in tasks]


@router.post(f"{API_BASE}/tasks")
async def create_task(task_in: TaskCreate,
                      user_id: str = Depends(require_user_id),
                      store: AppStore = Depends(get_store)):
  try:
    created = await store.tasks.create(user_id, task_in.to_attrs())
  except ValidationError as exc:
    raise HTTPException(status_code=400, detail=_validation_detail(exc)) from exc
  return created.to_public()


@router.put(f"{API_BASE}/tasks/{{task_id}}")
async def update_task(task_id: str,
                      payload: TaskUpdate,
                      user_id: str = Depends(require_user_id),
                      store: AppStore = Depends(get_store)):
  try:
    updated = await store.tasks.update_one(user_id, task_id, payload.to_attrs())
  except ValidationError as exc:
    raise HTTPException(status_code=400, detail=_validation_detail(exc)) from exc
  if updated is None:
    raise HTTPException(status_code=404, detail="Not found")
  return updated.to_public()


@router.delete(f"{API_BASE}/tasks/{{task_id}}")
async def delete_task(task_id: str,
                      user_id: str = Depends(require_user_id),
                      store: AppStore = Depends(get_store)):
  deleted = await store.tasks.delete_one(user_id, task_id)
  if deleted is None:
    raise HTTPException(status_code=404, detail="Not found")
  return {"ok": True, "id": task_id}
