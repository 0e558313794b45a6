"""Error taxonomy shared by every command.

Validation and precondition errors are raised before anything is mutated.
External tool errors carry whatever partial state the tool reported so the
caller can checkpoint it before surfacing the failure.
"""
from __future__ import annotations

from typing import Any, Optional


class BootloaderError(Exception):
  pass


class ValidationError(BootloaderError):
  pass


class PreconditionError(BootloaderError):
  pass


class StateNotFoundError(BootloaderError):
  pass


class StateVersionError(BootloaderError):
  pass


class StateLockedError(BootloaderError):
  pass


class ExternalToolError(BootloaderError):
  def __init__(self, message: str, *, tool: str, output: str = "", partial: Any = None) -> None:
    super().__init__(message)
    self.tool = tool
    self.output = output
    self.partial = partial

  def __str__(self) -> str:
    message = super().__str__()
    if self.output:
      return f"{message}\n{self.output.rstrip()}"
    return message


class OutputMissingError(BootloaderError):
  def __init__(self, name: str, *, partial: Optional[Any] = None) -> None:
    super().__init__(
      f"Output '{name}' was not reported by terraform; the template and terraform version may not match."
    )
    self.name = name
    self.partial = partial


class MigrationAbortedError(BootloaderError):
  pass


class DirectorAPIError(BootloaderError):
  pass
