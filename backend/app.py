from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import API_BASE, LLM_MODEL, LLM_BASE_URL, LLM_API_KEY, cors_origins
from .routes import router


def create_app() -> FastAPI:
  app = FastAPI(title="SmartStudy Assistant API", version="1.0.0")
  app.add_middleware(
      CORSMiddleware,
      allow_origins=cors_origins,
      allow_credentials=True,
      allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
      allow_headers=["*"],
  )
  app.include_router(router)
  return app


app = create_app()

print(f"[APP] LLM key set: {bool(LLM_API_KEY)}, model: {LLM_MODEL}, "
      f"base_url: {LLM_BASE_URL or 'default'}, api_base: {API_BASE}", flush=True)
