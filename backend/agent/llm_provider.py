from __future__ import annotations

import json
import re
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import openai

from ..config import LLMSettings
from ..llm import _debug_print, _extract_message_text, _usage_dict, create_async_client
from .errors import ResponseMalformed, UpstreamConfigInvalid, UpstreamUnavailable
from .intent_router import build_intent_messages, build_repair_messages

_MODEL_CONFIG_ERROR_CODES = {"model_decommissioned", "model_not_found"}
# Groq rejects non-JSON output under json_object mode and returns it here
_JSON_VALIDATE_FAILED = "json_validate_failed"


@dataclass
class CompletionResult:
  data: Any
  raw: str
  attempts: List[str] = field(default_factory=list)

  @property
  def repaired(self) -> bool:
    return len(self.attempts) > 1


def _clean_json_text(text: str) -> str:
  cleaned = (text or "").strip()
  if cleaned.startswith("```"):
    cleaned = re.sub(r"^```[a-zA-Z0-9_-]*\s*", "", cleaned).strip()
    cleaned = re.sub(r"\s*```$", "", cleaned).strip()
  return cleaned


def decode_json_text(raw: str) -> Any:
  """json.loads after stripping a Markdown fence. Raises ValueError."""
  cleaned = _clean_json_text(raw)
  if not cleaned:
    raise ValueError("empty model output")
  return json.loads(cleaned)


def _error_body(exc: openai.APIStatusError) -> Dict[str, Any]:
  body = getattr(exc, "body", None)
  return body if isinstance(body, dict) else {}


def _error_code(exc: openai.APIStatusError) -> Optional[str]:
  code = getattr(exc, "code", None) or _error_body(exc).get("code")
  return str(code) if code else None


def _error_message(exc: openai.APIError) -> str:
  body = _error_body(exc) if isinstance(exc, openai.APIStatusError) else {}
  message = body.get("message")
  if isinstance(message, str) and message.strip():
    return message.strip()
  return str(exc) or exc.__class__.__name__


class IntentCompletion:
  """Single-JSON-object completion against an OpenAI-compatible endpoint.

  Malformed output gets exactly one repair request; everything else
  (transport failures, model configuration errors) surfaces immediately.
  """

  def __init__(self, settings: LLMSettings, client: Any = None):
    self.settings = settings
    self._client = client

  def _get_client(self) -> Any:
    if self._client is None:
      try:
        self._client = create_async_client(self.settings)
      except RuntimeError as exc:
        raise UpstreamConfigInvalid(str(exc)) from exc
    return self._client

  async def _complete(self, messages: List[Dict[str, str]], kind: str) -> str:
    client = self._get_client()
    model = self.settings.model
    started = time.perf_counter()
    try:
      completion = await client.chat.completions.create(
          model=model,
          messages=messages,
          temperature=0,
          response_format={"type": "json_object"},
      )
    except openai.APIConnectionError as exc:
      print(f"[LLM ERROR] kind={kind} model={model} connection: {exc}", flush=True)
      raise UpstreamUnavailable(f"Language model service unreachable: {exc}") from exc
    except openai.AuthenticationError as exc:
      print(f"[LLM ERROR] kind={kind} model={model} auth rejected", flush=True)
      raise UpstreamConfigInvalid("The language model API key was rejected. Update LLM_API_KEY.") from exc
    except openai.APIStatusError as exc:
      code = _error_code(exc)
      if code in _MODEL_CONFIG_ERROR_CODES:
        print(f"[LLM ERROR] model {model} unavailable: {_error_message(exc)}", flush=True)
        raise UpstreamConfigInvalid() from exc
      if code == _JSON_VALIDATE_FAILED:
        failed = _error_body(exc).get("failed_generation")
        return failed if isinstance(failed, str) else ""
      print(f"[LLM ERROR] kind={kind} model={model} status={exc.status_code} code={code}", flush=True)
      raise UpstreamUnavailable(_error_message(exc)) from exc
    except openai.OpenAIError as exc:
      print(f"[LLM ERROR] kind={kind} model={model} error={exc}", flush=True)
      raise UpstreamUnavailable(str(exc)) from exc

    choices = getattr(completion, "choices", None) or []
    message = getattr(choices[0], "message", None) if choices else None
    content = getattr(message, "content", None)
    raw = _extract_message_text(content)
    _debug_print(kind,
                 messages[-1]["content"],
                 raw,
                 latency_ms=(time.perf_counter() - started) * 1000,
                 usage=_usage_dict(completion),
                 model_name=model)
    return raw

  async def request(self, message: str, context_text: str) -> CompletionResult:
    raw = await self._complete(build_intent_messages(context_text, message), "intent")
    try:
      return CompletionResult(data=decode_json_text(raw), raw=raw, attempts=[raw])
    except ValueError:
      print("[LLM] JSON parse error, retrying with repair prompt", flush=True)

    repair_raw = await self._complete(
        build_repair_messages(context_text, message, raw), "repair")
    try:
      data = decode_json_text(repair_raw)
    except ValueError as exc:
      print("[LLM] repair attempt still not valid JSON", flush=True)
      raise ResponseMalformed(raw=raw, repair=repair_raw) from exc
    return CompletionResult(data=data, raw=repair_raw, attempts=[raw, repair_raw])
