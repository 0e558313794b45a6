from __future__ import annotations

from typing import Any, Mapping

from bootloader.commands.base import Command, require_migrated, run_recorded, run_step
from bootloader.errors import PreconditionError
from bootloader.state import State


class Rotate(Command):
  """Replace the environment keypair and push it to every VM that uses it."""

  def __init__(self, store, keypairs, terraform, directors, logger) -> None:
    self._store = store
    self._keypairs = keypairs
    self._terraform = terraform
    self._directors = directors
    self._logger = logger

  def check_fast_fails(self, flags: Mapping[str, Any], state: State) -> None:
    if not self._keypairs.has_keypair_step(state):
      raise PreconditionError(f"{state.iaas} environments do not have a keypair to rotate.")
    if state.key_pair.is_empty():
      raise PreconditionError("This environment has no keypair yet; run bbl up first.")
    require_migrated(state)
    if not state.no_director:
      self._directors.validate(state)

  def execute(self, flags: Mapping[str, Any], state: State) -> None:
    self._logger.step("rotating keypair")
    state.key_pair = run_recorded(self._store, state, lambda: self._keypairs.rotate(state))
    # Force both converge steps; the new key must reach the director VM.
    state.infra.fingerprint = ""
    state.director.fingerprint = ""
    self._store.save(state)

    run_step(self._store, state, "infra", lambda: self._terraform.apply(state))
    if state.no_director:
      return

    outputs = self._terraform.outputs(state)
    run_step(self._store, state, "director", lambda: self._directors.deploy(state, outputs))
