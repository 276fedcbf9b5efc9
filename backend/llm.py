from __future__ import annotations

from typing import Any, Dict, Optional

from openai import AsyncOpenAI

from .config import LLM_DEBUG, LLMSettings
from .utils import _log_debug


def create_async_client(settings: LLMSettings) -> AsyncOpenAI:
  """OpenAI-compatible client; base_url points it at Groq or another host."""
  if not settings.api_key:
    raise RuntimeError("LLM_API_KEY is not set")
  kwargs: Dict[str, Any] = {
      "api_key": settings.api_key,
      "timeout": settings.timeout_seconds,
      "max_retries": 0,
  }
  if settings.base_url:
    kwargs["base_url"] = settings.base_url
  return AsyncOpenAI(**kwargs)


# -------------------------
# LLM 호출 & 디버그
# -------------------------
def _debug_print(
    kind: str,
    input_text: str,
    raw_content: str,
    latency_ms: Optional[float] = None,
    usage: Optional[Dict[str, Any]] = None,
    model_name: str = "",
) -> None:
  if not LLM_DEBUG:
    return

  _log_debug(f"[LLM DEBUG] kind: {kind}")
  _log_debug(f"[LLM DEBUG] input_text: {input_text[:300]}")
  if model_name:
    _log_debug(f"[LLM DEBUG] model: {model_name}")
  if latency_ms is not None:
    _log_debug(f"[LLM DEBUG] latency_ms: {latency_ms:.1f} ms")
  if usage is not None:
    _log_debug(
        f"[LLM DEBUG] usage: prompt={usage.get('prompt')}, "
        f"completion={usage.get('completion')}, total={usage.get('total')}")
  _log_debug("[LLM RAW]")
  _log_debug(raw_content if raw_content else "(empty)")
  _log_debug("[LLM RAW END]")


def _usage_dict(completion: Any) -> Optional[Dict[str, Any]]:
  usage = getattr(completion, "usage", None)
  if usage is None:
    return None
  return {
      "prompt": getattr(usage, "prompt_tokens", None),
      "completion": getattr(usage, "completion_tokens", None),
      "total": getattr(usage, "total_tokens", None),
  }


def _extract_message_text(content: Any) -> str:
  if isinstance(content, str):
    return content.strip()
  if isinstance(content, list):
    chunks = []
    for item in content:
      if isinstance(item, dict):
        text_val = item.get("text")
        if isinstance(text_val, str) and text_val.strip():
          chunks.append(text_val.strip())
      elif isinstance(item, str) and item.strip():
        chunks.append(item.strip())
    return " ".join(chunks).strip()
  return ""
