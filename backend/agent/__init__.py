"""
Assistant intent pipeline
"""

from .context_provider import ContextSnapshot, build_context_snapshot
from .dispatcher import dispatch_intent
from .errors import AssistantError
from .llm_provider import IntentCompletion
from .orchestrator import run_assistant
from .schemas import Intent, parse_intent

__all__ = [
    "AssistantError",
    "ContextSnapshot",
    "Intent",
    "IntentCompletion",
    "build_context_snapshot",
    "dispatch_intent",
    "parse_intent",
    "run_assistant",
]
