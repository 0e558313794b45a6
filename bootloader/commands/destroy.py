from __future__ import annotations

from typing import Any, Mapping

from bootloader.commands.base import Command, run_recorded, run_step
from bootloader.state import KeyPair, State
from bootloader.validation import CredentialValidator


class Destroy(Command):
  """Tear the environment down in reverse order of `up`."""

  def __init__(self, store, keypairs, migrator, terraform, directors, stacks, logger, validator=None) -> None:
    self._store = store
    self._keypairs = keypairs
    self._migrator = migrator
    self._terraform = terraform
    self._directors = directors
    self._stacks = stacks
    self._logger = logger
    self._validator = validator or CredentialValidator()

  def check_fast_fails(self, flags: Mapping[str, Any], state: State) -> None:
    self._validator.validate(state)
    if not state.no_director and not state.director.is_empty():
      self._directors.validate(state)

  def execute(self, flags: Mapping[str, Any], state: State) -> None:
    if not flags.get("no_confirm"):
      if not self._logger.prompt(f"Are you sure you want to delete infrastructure for {state.env_id}? This operation cannot be undone!"):
        self._logger.println("exiting")
        return

    if state.stack is not None:
      # Director and infra teardown both work from terraform outputs.
      state = run_recorded(self._store, state, lambda: self._migrator.migrate(state))
      self._store.save(state)

    if not state.director.is_empty():
      outputs = self._terraform.outputs(state)
      run_step(self._store, state, "director", lambda: self._directors.delete(state, outputs))

    if state.jumpbox.is_deployed():
      outputs = self._terraform.outputs(state)
      run_step(self._store, state, "jumpbox", lambda: self._directors.delete_jumpbox(state, outputs))

    if not state.infra.is_empty():
      run_step(self._store, state, "infra", lambda: self._terraform.destroy(state))

    if state.migrated_stack:
      run_recorded(self._store, state, lambda: self._stacks.delete(state, state.migrated_stack))
      state.migrated_stack = ""
      self._store.save(state)

    if not state.key_pair.is_empty() and self._keypairs.has_keypair_step(state):
      self._logger.step("deleting keypair")
      run_recorded(self._store, state, lambda: self._keypairs.delete(state))
      state.key_pair = KeyPair()
      self._store.save(state)

    self._store.delete()
    self._logger.step("finished destroying infrastructure")

