"""
Completion layer: request shape, the single repair retry and upstream error
mapping.
"""

import asyncio

import httpx
import openai
import pytest

from backend.agent.errors import ResponseMalformed, UpstreamConfigInvalid, UpstreamUnavailable
from backend.agent.llm_provider import IntentCompletion, decode_json_text
from backend.config import LLMSettings

CONTEXT = "Today is 2025-01-06T08:00:00Z."
_REQUEST = httpx.Request("POST", "https://api.groq.test/openai/v1/chat/completions")


def _status_error(status, body, cls=openai.APIStatusError):
    response = httpx.Response(status, request=_REQUEST)
    return cls("upstream said no", response=response, body=body)


class TestDecodeJsonText:

    def test_strips_markdown_fence(self):
        assert decode_json_text('```json\n{"intent": "help"}\n```') == {"intent": "help"}

    @pytest.mark.parametrize("raw", ["", "   ", "Sure! Here you go", '{"intent": '])
    def test_rejects_non_json(self, raw):
        with pytest.raises(ValueError):
            decode_json_text(raw)


class TestRequest:

    def test_first_attempt_uses_deterministic_json_mode(self, make_completion):
        completion, client = make_completion('{"intent": "help", "payload": {}}')
        result = asyncio.run(completion.request("what can you do?", CONTEXT))

        assert result.data == {"intent": "help", "payload": {}}
        assert not result.repaired
        assert len(client.completions.calls) == 1
        call = client.completions.calls[0]
        assert call["model"] == "test-model"
        assert call["temperature"] == 0
        assert call["response_format"] == {"type": "json_object"}
        roles = [msg["role"] for msg in call["messages"]]
        assert roles == ["system", "system", "user"]
        assert call["messages"][1]["content"] == CONTEXT
        assert call["messages"][2]["content"] == "what can you do?"

    def test_valid_json_that_is_not_an_intent_is_not_retried(self, make_completion):
        completion, client = make_completion('{"foo": 1}')
        result = asyncio.run(completion.request("hi", CONTEXT))
        assert result.data == {"foo": 1}
        assert len(client.completions.calls) == 1

    def test_one_repair_attempt_after_malformed_output(self, make_completion):
        completion, client = make_completion(
            "Sure! I'll add that event for you.",
            '{"intent": "help", "payload": {"prompt": "Which day?"}}',
        )
        result = asyncio.run(completion.request("add lecture", CONTEXT))

        assert result.repaired
        assert result.data["payload"]["prompt"] == "Which day?"
        assert result.attempts[0] == "Sure! I'll add that event for you."
        repair_call = client.completions.calls[1]
        assert repair_call["temperature"] == 0
        assert repair_call["messages"][0]["content"].endswith("Return strictly valid JSON.")
        roles = [msg["role"] for msg in repair_call["messages"]]
        assert roles == ["system", "system", "user", "assistant", "user"]
        assert repair_call["messages"][3]["content"] == "Sure! I'll add that event for you."

    def test_second_malformed_output_fails_with_both_texts(self, make_completion):
        completion, client = make_completion("not json", "still not json")
        with pytest.raises(ResponseMalformed) as exc_info:
            asyncio.run(completion.request("add lecture", CONTEXT))

        assert len(client.completions.calls) == 2
        body = exc_info.value.to_response()
        assert exc_info.value.status_code == 400
        assert body["ok"] is False
        assert body["raw"] == "not json"
        assert body["repair"] == "still not json"

    def test_choice_without_message_goes_to_repair(self, make_completion):
        completion, client = make_completion(None, '{"intent": "help"}')
        result = asyncio.run(completion.request("hi", CONTEXT))

        assert result.data == {"intent": "help"}
        assert result.attempts == ["", '{"intent": "help"}']
        assert len(client.completions.calls) == 2

    def test_groq_json_validation_failure_goes_to_repair(self, make_completion):
        rejected = _status_error(
            400, {"code": "json_validate_failed", "failed_generation": "Event added!"},
            cls=openai.BadRequestError)
        completion, client = make_completion(rejected, '{"intent": "help"}')
        result = asyncio.run(completion.request("add lecture", CONTEXT))

        assert result.data == {"intent": "help"}
        assert result.attempts == ["Event added!", '{"intent": "help"}']
        assert len(client.completions.calls) == 2


class TestUpstreamErrors:

    def test_connection_failure_is_unavailable(self, make_completion):
        completion, client = make_completion(openai.APIConnectionError(request=_REQUEST))
        with pytest.raises(UpstreamUnavailable) as exc_info:
            asyncio.run(completion.request("hi", CONTEXT))
        assert exc_info.value.status_code == 502
        assert len(client.completions.calls) == 1

    def test_timeout_is_unavailable(self, make_completion):
        completion, _ = make_completion(openai.APITimeoutError(request=_REQUEST))
        with pytest.raises(UpstreamUnavailable):
            asyncio.run(completion.request("hi", CONTEXT))

    @pytest.mark.parametrize("code", ["model_decommissioned", "model_not_found"])
    def test_retired_model_is_config_error(self, make_completion, code):
        error = _status_error(400, {"code": code, "message": "model has been decommissioned"},
                              cls=openai.BadRequestError)
        completion, client = make_completion(error)
        with pytest.raises(UpstreamConfigInvalid) as exc_info:
            asyncio.run(completion.request("hi", CONTEXT))
        assert exc_info.value.status_code == 503
        assert "LLM_MODEL" in exc_info.value.message
        assert len(client.completions.calls) == 1

    def test_rejected_key_is_config_error(self, make_completion):
        error = _status_error(401, {"code": "invalid_api_key"}, cls=openai.AuthenticationError)
        completion, _ = make_completion(error)
        with pytest.raises(UpstreamConfigInvalid):
            asyncio.run(completion.request("hi", CONTEXT))

    def test_other_status_errors_are_unavailable(self, make_completion):
        error = _status_error(500, {"message": "internal"}, cls=openai.InternalServerError)
        completion, _ = make_completion(error)
        with pytest.raises(UpstreamUnavailable) as exc_info:
            asyncio.run(completion.request("hi", CONTEXT))
        assert exc_info.value.message == "internal"

    def test_missing_api_key_is_config_error(self):
        completion = IntentCompletion(LLMSettings(api_key=None, model="test-model"))
        with pytest.raises(UpstreamConfigInvalid):
            asyncio.run(completion.request("hi", CONTEXT))
