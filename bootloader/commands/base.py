from __future__ import annotations

from typing import Any, Callable, Mapping

from bootloader.errors import DirectorAPIError, ExternalToolError, MigrationAbortedError, OutputMissingError, PreconditionError
from bootloader.state import State


class Command:
  """A bbl subcommand: cheap validation first, then the mutating pipeline."""

  needs_state = True
  mutates_state = True

  def check_fast_fails(self, flags: Mapping[str, Any], state: State) -> None:
    pass

  def execute(self, flags: Mapping[str, Any], state: State) -> None:
    raise NotImplementedError


def run_step(store, state: State, attribute: str, step: Callable[[], Any]) -> Any:
  """Run one pipeline step and checkpoint its result.

  When the step fails, whatever partial result the failing component
  reported is written to `attribute` and persisted before re-raising.
  """
  try:
    value = step()
  except (ExternalToolError, OutputMissingError) as exc:
    if exc.partial is not None:
      setattr(state, attribute, exc.partial)
    record_error(store, state, exc)
    raise
  setattr(state, attribute, value)
  store.save(state)
  return value


def record_error(store, state: State, exc: Exception) -> None:
  state.latest_error = str(exc)
  store.save(state)


def update_cloud_config(store, cloud_config, state: State) -> None:
  try:
    cloud_config.update(state)
  except DirectorAPIError as exc:
    record_error(store, state, exc)
    raise


def run_recorded(store, state: State, step: Callable[[], Any]) -> Any:
  """Run a step with no partial result of its own, keeping its failure in latest_error."""
  try:
    return step()
  except (ExternalToolError, MigrationAbortedError) as exc:
    record_error(store, state, exc)
    raise


def require_migrated(state: State) -> None:
  if state.stack is not None:
    raise PreconditionError(
      f"This environment is still managed by CloudFormation stack '{state.stack.name}'; "
      "run bbl up to migrate it to terraform first."
    )
