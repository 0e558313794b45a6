"""`bbl up`: create or converge an environment.

Every step checkpoints the state document before the next one starts, so a
failed run can simply be repeated.
"""
from __future__ import annotations

from typing import Any, Mapping, Optional

from bootloader.commands.base import Command, run_recorded, run_step, update_cloud_config
from bootloader.config import apply_up_options
from bootloader.envid import EnvIDGenerator, validate_env_id
from bootloader.state import State
from bootloader.validation import CredentialValidator
from bootloader.zones import availability_zones


def _region(state: State) -> str:
  return getattr(state, state.iaas).region


class Up(Command):
  needs_state = False

  def __init__(
    self,
    store,
    keypairs,
    migrator,
    terraform,
    directors,
    cloud_config,
    logger,
    env_ids: Optional[EnvIDGenerator] = None,
    validator: Optional[CredentialValidator] = None,
  ) -> None:
    self._store = store
    self._keypairs = keypairs
    self._migrator = migrator
    self._terraform = terraform
    self._directors = directors
    self._cloud_config = cloud_config
    self._logger = logger
    self._env_ids = env_ids or EnvIDGenerator()
    self._validator = validator or CredentialValidator()

  def check_fast_fails(self, flags: Mapping[str, Any], state: State) -> None:
    candidate = apply_up_options(state.copy(), flags)
    self._validator.validate(candidate)
    if flags.get("name") and not state.env_id:
      validate_env_id(flags["name"])
    availability_zones(candidate.iaas, _region(candidate))
    if not candidate.no_director:
      self._directors.validate(candidate)

  def execute(self, flags: Mapping[str, Any], state: State) -> None:
    state = apply_up_options(state, flags)
    if not state.env_id:
      state.env_id = flags.get("name") or self._env_ids.generate()
      self._logger.step(f"created environment {state.env_id}")
    self._store.save(state)

    if self._keypairs.has_keypair_step(state):
      state.key_pair = run_recorded(self._store, state, lambda: self._keypairs.ensure(state))
      self._store.save(state)

    if state.stack is not None:
      state = run_recorded(self._store, state, lambda: self._migrator.migrate(state))
      self._store.save(state)

    run_step(self._store, state, "infra", lambda: self._terraform.apply(state))

    if state.no_director:
      self._logger.step("skipping director deployment (--no-director)")
      return

    outputs = self._terraform.outputs(state)
    if state.jumpbox.enabled:
      run_step(self._store, state, "jumpbox", lambda: self._directors.deploy_jumpbox(state, outputs))
    run_step(self._store, state, "director", lambda: self._directors.deploy(state, outputs))
    update_cloud_config(self._store, self._cloud_config, state)
