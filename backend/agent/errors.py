from __future__ import annotations

from typing import Any, Dict, List, Optional


class AssistantError(Exception):
  """Base failure of the assistant pipeline.

  Each subclass knows its HTTP status and renders the `{ok: false, error}`
  body returned to the client, plus any diagnostic fields.
  """
  status_code = 500
  default_message = "Assistant error"

  def __init__(self, message: Optional[str] = None, **extra: Any):
    self.message = message or self.default_message
    self.extra = {k: v for k, v in extra.items() if v is not None}
    super().__init__(self.message)

  def to_response(self) -> Dict[str, Any]:
    body: Dict[str, Any] = {"ok": False, "error": self.message}
    body.update(self.extra)
    return body


class InputMissing(AssistantError):
  status_code = 400
  default_message = "message required"


class UpstreamUnavailable(AssistantError):
  status_code = 502
  default_message = "Language model service unavailable"


class UpstreamConfigInvalid(AssistantError):
  status_code = 503
  default_message = ("The configured language model is no longer available. "
                     "Update LLM_MODEL (e.g. llama-3.3-70b-versatile) and restart the server.")


class ResponseMalformed(AssistantError):
  status_code = 400
  default_message = "LLM JSON parse error"

  def __init__(self, raw: str, repair: str):
    super().__init__(raw=raw, repair=repair)
    self.raw = raw
    self.repair = repair


class SchemaViolation(AssistantError):
  status_code = 400
  default_message = "Invalid intent shape"

  def __init__(self, issues: List[Dict[str, Any]], raw: Any = None):
    super().__init__(details=issues)
    self.extra["raw"] = raw
    self.issues = issues
    self.raw = raw


class EntityNotFound(AssistantError):
  status_code = 404
  default_message = "Not found"


class SelectorMissing(AssistantError):
  status_code = 400
  default_message = "Provide eventIds or filter"

  def __init__(self, message: Optional[str] = None):
    super().__init__(message, action="error")


class EntityInvalid(AssistantError):
  status_code = 400
  default_message = "Invalid entity"


class BulkPlanFailed(AssistantError):
  status_code = 500
  default_message = "Bulk plan failed"

  def __init__(self, message: str, created: List[str], failed_index: int):
    super().__init__(message, details={
        "created": created,
        "failedIndex": failed_index,
    })
    self.created = created
    self.failed_index = failed_index
