from __future__ import annotations

from typing import Any


class DomainError(Exception):
  status_code = 400
  code = "error"

  def __init__(self, message: str) -> None:
    super().__init__(message)
    self.message = message

  def detail(self) -> dict[str, Any]:
    return {"code": self.code, "message": self.message}


class NotFound(DomainError):
  """Entity is absent or lives in another organization; the two are indistinguishable."""

  status_code = 404
  code = "not_found"


class Forbidden(DomainError):
  status_code = 403
  code = "forbidden"

  def __init__(self, operation: str, rule: str) -> None:
    super().__init__(f"Not allowed to {operation}: {rule}")
    self.operation = operation
    self.rule = rule

  def detail(self) -> dict[str, Any]:
    return {**super().detail(), "operation": self.operation, "rule": self.rule}


class InvalidAssignment(DomainError):
  status_code = 400
  code = "invalid_assignment"


class ValidationError(DomainError):
  status_code = 422
  code = "validation_error"


class DependencyFailure(DomainError):
  """An external collaborator (email, LLM) failed. Never fatal to a mutation."""

  status_code = 502
  code = "dependency_failure"

  def __init__(self, dependency: str, message: str) -> None:
    super().__init__(f"{dependency}: {message}")
    self.dependency = dependency
