from __future__ import annotations

import os
import pathlib
from dataclasses import dataclass
from typing import Optional
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

BASE_DIR = pathlib.Path(__file__).resolve().parent.parent
load_dotenv(BASE_DIR / ".env", override=False)

LLM_DEBUG = os.getenv("LLM_DEBUG", "0") == "1"

# -------------------------
# LLM 설정
# -------------------------
LLM_API_KEY = os.getenv("LLM_API_KEY") or os.getenv("OPENAI_API_KEY")
LLM_BASE_URL = os.getenv("LLM_BASE_URL", "").strip() or None
LLM_MODEL = os.getenv("LLM_MODEL", "llama-3.3-70b-versatile").strip()
LLM_TIMEOUT_SECONDS = float(os.getenv("LLM_TIMEOUT_SECONDS", "30"))

# -------------------------
# 어시스턴트 컨텍스트
# -------------------------
ASSISTANT_TIMEZONE = ZoneInfo(os.getenv("ASSISTANT_TIMEZONE", "UTC"))
CONTEXT_WINDOW_DAYS = int(os.getenv("CONTEXT_WINDOW_DAYS", "14"))
CONTEXT_MAX_TASKS = int(os.getenv("CONTEXT_MAX_TASKS", "6"))
DEFAULT_POMODORO_MINUTES = 25

# -------------------------
# 서버
# -------------------------
API_BASE = os.getenv("API_BASE", "/api").rstrip("/")
USER_ID_HEADER = "X-User-Id"
DATA_FILE: Optional[pathlib.Path] = (
    pathlib.Path(os.getenv("DATA_FILE")) if os.getenv("DATA_FILE") else None)

CORS_ALLOW_ORIGINS = os.getenv(
    "CORS_ALLOW_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173")
cors_origins: list[str] = [
    origin.strip() for origin in CORS_ALLOW_ORIGINS.split(",") if origin.strip()]
CORS_ORIGIN = os.getenv("CORS_ORIGIN", "").strip()
if CORS_ORIGIN and CORS_ORIGIN not in cors_origins:
    cors_origins.append(CORS_ORIGIN)


@dataclass(frozen=True)
class LLMSettings:
    api_key: Optional[str]
    model: str
    base_url: Optional[str] = None
    timeout_seconds: float = 30.0


def get_llm_settings() -> LLMSettings:
    return LLMSettings(
        api_key=LLM_API_KEY,
        model=LLM_MODEL,
        base_url=LLM_BASE_URL,
        timeout_seconds=LLM_TIMEOUT_SECONDS,
    )
