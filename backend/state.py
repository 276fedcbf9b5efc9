from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Dict, Generic, Iterable, List, Optional, Type, TypeVar
import json
import pathlib
import uuid

from pydantic import ValidationError

from .config import DATA_FILE
from .models import Event, StoredDocument, Task
from .utils import _log_debug, now_utc

T = TypeVar("T", bound=StoredDocument)

# 저장 시 호출자가 덮어쓸 수 없는 필드
_PROTECTED_FIELDS = {"id": "id", "userId": "user_id", "createdAt": "created_at"}
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class DocumentStore(Generic[T]):
    """Owner-scoped document collection.

    Every operation takes the owner id; documents belonging to another owner
    are invisible. Writes go through the pydantic model, so a patch that
    breaks an entity invariant raises ``pydantic.ValidationError`` and leaves
    the stored document untouched.
    """

    def __init__(self, model: Type[T],
                 clock: Callable[[], datetime] = now_utc,
                 on_change: Optional[Callable[[], None]] = None):
        self.model = model
        self._clock = clock
        self._on_change = on_change
        self._docs: Dict[str, T] = {}

    def _owned(self, owner_id: str, item_id: str) -> Optional[T]:
        doc = self._docs.get(str(item_id))
        if doc is None or doc.user_id != owner_id:
            return None
        return doc

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change()

    async def find_many(self, owner_id: str,
                        predicate: Optional[Callable[[T], bool]] = None) -> List[T]:
        return [
            doc for doc in self._docs.values()
            if doc.user_id == owner_id and (predicate is None or predicate(doc))
        ]

    async def find_one(self, owner_id: str, item_id: str) -> Optional[T]:
        return self._owned(owner_id, item_id)

    async def create(self, owner_id: str, attrs: Dict[str, Any]) -> T:
        now = self._clock()
        doc = dict(attrs)
        doc.update({
            "id": uuid.uuid4().hex,
            "userId": owner_id,
            "createdAt": now,
            "updatedAt": now,
        })
        item = self.model.model_validate(doc)
        self._docs[item.id] = item
        self._changed()
        return item

    async def update_one(self, owner_id: str, item_id: str,
                         patch: Dict[str, Any]) -> Optional[T]:
        current = self._owned(owner_id, item_id)
        if current is None:
            return None
        merged = current.model_dump(by_alias=True)
        merged.update(patch)
        for alias, attr in _PROTECTED_FIELDS.items():
            merged[alias] = getattr(current, attr)
        merged["updatedAt"] = self._clock()
        item = self.model.model_validate(merged)
        self._docs[item.id] = item
        self._changed()
        return item

    async def delete_one(self, owner_id: str, item_id: str) -> Optional[T]:
        current = self._owned(owner_id, item_id)
        if current is None:
            return None
        del self._docs[current.id]
        self._changed()
        return current

    async def delete_many(self, owner_id: str, ids: Iterable[str]) -> int:
        count = 0
        for item_id in set(str(i) for i in ids):
            if self._owned(owner_id, item_id) is None:
                continue
            del self._docs[item_id]
            count += 1
        if count:
            self._changed()
        return count

    def dump(self) -> List[Dict[str, Any]]:
        return [doc.model_dump(mode="json", by_alias=True, exclude_none=True)
                for doc in self._docs.values()]

    def load(self, raw_items: Any) -> None:
        self._docs.clear()
        if not isinstance(raw_items, list):
            return
        for raw in raw_items:
            try:
                item = self.model.model_validate(raw)
            except ValidationError as exc:
                _log_debug(f"[STORE] skipped invalid {self.model.__name__}: {exc}")
                continue
            self._docs[item.id] = item


def sort_events(events: Iterable[Event]) -> List[Event]:
    return sorted(events, key=lambda e: (e.start, e.id))


def sort_tasks(tasks: Iterable[Task]) -> List[Task]:
    """Due ascending with undated tasks last, newest first among ties."""
    ordered = sorted(tasks, key=lambda t: t.id)
    ordered.sort(key=lambda t: t.created_at, reverse=True)
    ordered.sort(key=lambda t: (t.due is None, t.due or _EPOCH))
    return ordered


class AppStore:
    def __init__(self, data_file: Optional[pathlib.Path] = None,
                 clock: Callable[[], datetime] = now_utc):
        self.data_file = data_file
        self.events: DocumentStore[Event] = DocumentStore(Event, clock, self._save)
        self.tasks: DocumentStore[Task] = DocumentStore(Task, clock, self._save)
        self._load()

    def _save(self) -> None:
        if self.data_file is None:
            return
        payload = {
            "version": 1,
            "events": self.events.dump(),
            "tasks": self.tasks.dump(),
        }
        try:
            self.data_file.write_text(json.dumps(payload, ensure_ascii=False, indent=2),
                                      encoding="utf-8")
        except OSError as exc:
            print(f"[STORE] save failed: {exc}", flush=True)

    def _load(self) -> None:
        if self.data_file is None or not self.data_file.exists():
            return
        try:
            data = json.loads(self.data_file.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            print(f"[STORE] load failed: {exc}", flush=True)
            return
        if not isinstance(data, dict):
            return
        self.events.load(data.get("events"))
        self.tasks.load(data.get("tasks"))
        _log_debug(f"[STORE] loaded events={len(self.events.dump())} "
                   f"tasks={len(self.tasks.dump())} from {self.data_file}")


_store: Optional[AppStore] = None


def get_store() -> AppStore:
    global _store
    if _store is None:
        _store = AppStore(DATA_FILE)
    return _store
