"""
End-to-end pipeline runs with a scripted model.
"""

import asyncio
import json
from datetime import timedelta

import pytest

from backend.agent.errors import InputMissing, ResponseMalformed, SchemaViolation
from backend.agent.orchestrator import run_assistant
from tests.conftest import BASE_TIME


def _run(store, completion, message, user_id="u1"):
    return asyncio.run(run_assistant(store, completion, user_id, message, now=BASE_TIME))


class TestScenarios:

    def test_add_event_from_plain_request(self, store, make_completion):
        completion, client = make_completion(json.dumps({
            "intent": "add_event",
            "payload": {
                "title": "Algorithms lecture",
                "start": "2025-01-07T10:00:00Z",
                "end": "2025-01-07T12:00:00Z",
                "location": "B201",
            },
        }))
        body = _run(store, completion, "Add Algorithms lecture tomorrow 10-12 in B201")

        assert body["ok"] is True
        assert body["action"] == "created"
        assert body["event"]["location"] == "B201"
        assert len(client.completions.calls) == 1

    def test_context_lists_existing_items_by_id(self, store, make_completion):
        lab = asyncio.run(store.events.create("u1", {
            "title": "Physics lab",
            "start": (BASE_TIME + timedelta(days=1)).isoformat(),
            "end": (BASE_TIME + timedelta(days=1, hours=2)).isoformat(),
        }))
        essay = asyncio.run(store.tasks.create("u1", {"title": "Essay"}))
        completion, client = make_completion(json.dumps(
            {"intent": "delete_event", "payload": {"id": lab.id}}))

        body = _run(store, completion, "Delete the physics lab")

        context = client.completions.calls[0]["messages"][1]["content"]
        assert f"ID: {lab.id}" in context
        assert f"- {essay.id} | Essay | n/a" in context
        assert body == {"ok": True, "action": "deleted", "id": lab.id}

    def test_help_reply(self, store, make_completion):
        completion, _ = make_completion(json.dumps(
            {"intent": "help", "payload": {"prompt": "Which day should I add it to?"}}))
        body = _run(store, completion, "Add a meeting")
        assert body == {"ok": True, "help": "Which day should I add it to?"}
        assert asyncio.run(store.events.find_many("u1")) == []

    def test_bulk_task_plan(self, store, make_completion):
        completion, _ = make_completion(json.dumps({
            "intent": "plan_tasks",
            "payload": {
                "tasks": [
                    {"title": "Watch lecture 1", "due": "2025-01-07T18:00:00Z"},
                    {"title": "Exercise set 1", "due": "2025-01-08T18:00:00Z"},
                    {"title": "Review notes"},
                ],
                "summary": "Three steps to get started",
            },
        }))
        body = _run(store, completion, "Plan my tasks for learning linear algebra")

        assert body["action"] == "tasks_plan_created"
        assert body["count"] == 3
        assert [t["title"] for t in body["tasks"]] == [
            "Watch lecture 1", "Exercise set 1", "Review notes"]
        assert len(asyncio.run(store.tasks.find_many("u1"))) == 3

    def test_repaired_output_is_dispatched(self, store, make_completion):
        completion, client = make_completion(
            "Sure, starting a timer!",
            json.dumps({"intent": "control_pomodoro",
                        "payload": {"action": "start", "durationMinutes": 50}}),
        )
        body = _run(store, completion, "Start a 50 minute pomodoro")

        assert len(client.completions.calls) == 2
        assert body["command"] == {"action": "start", "durationSeconds": 3000}


class TestFailures:

    @pytest.mark.parametrize("message", ["", "   \n", None, 42])
    def test_blank_message_never_reaches_model(self, store, make_completion, message):
        completion, client = make_completion()
        with pytest.raises(InputMissing) as exc_info:
            _run(store, completion, message)
        assert exc_info.value.to_response() == {"ok": False, "error": "message required"}
        assert client.completions.calls == []

    def test_unrepairable_output(self, store, make_completion):
        completion, _ = make_completion("nope", "still nope")
        with pytest.raises(ResponseMalformed):
            _run(store, completion, "Add lecture")
        assert asyncio.run(store.events.find_many("u1")) == []

    def test_wrong_shape_has_no_side_effects(self, store, make_completion):
        completion, client = make_completion(json.dumps(
            {"intent": "add_event", "payload": {"title": "Lecture", "start": "tomorrow"}}))
        with pytest.raises(SchemaViolation) as exc_info:
            _run(store, completion, "Add lecture tomorrow")

        body = exc_info.value.to_response()
        assert body["error"] == "Invalid intent shape"
        assert body["raw"]["payload"]["start"] == "tomorrow"
        assert body["details"]
        assert len(client.completions.calls) == 1
        assert asyncio.run(store.events.find_many("u1")) == []
