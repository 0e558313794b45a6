"""Read-only commands that print a value from the state document."""
from __future__ import annotations

import os
import tempfile
from typing import Any, Callable, Dict, Mapping

from bootloader import __version__
from bootloader.commands.base import Command
from bootloader.director import jumpbox_private_key, jumpbox_proxy_url
from bootloader.errors import PreconditionError
from bootloader.state import State
from bootloader.validation import validate_director_property

DIRECTOR_PORT = 25555


def not_found(property_name: str) -> PreconditionError:
  return PreconditionError(
    f"Could not retrieve {property_name}, please make sure you are targeting the proper state dir."
  )


class StateQuery(Command):
  mutates_state = False

  def __init__(self, logger, property_name: str, getter: Callable[[State], str]) -> None:
    self._logger = logger
    self.property_name = property_name
    self._getter = getter

  def check_fast_fails(self, flags: Mapping[str, Any], state: State) -> None:
    validate_director_property(state, self.property_name)

  def execute(self, flags: Mapping[str, Any], state: State) -> None:
    value = self._getter(state)
    if not value:
      raise not_found(self.property_name)
    self._logger.println(value)


class DirectorAddress:
  """Resolves the director URL, also for environments bbl only built infrastructure for."""

  def __init__(self, terraform, stacks=None) -> None:
    self._terraform = terraform
    self._stacks = stacks

  def __call__(self, state: State) -> str:
    if not state.no_director:
      return state.director.address
    ip = self._external_ip(state)
    return f"https://{ip}:{DIRECTOR_PORT}" if ip else ""

  def _external_ip(self, state: State) -> str:
    if state.stack is not None:
      ip = state.stack.outputs.get("BOSHEIP", "")
      if not ip and self._stacks is not None:
        ip = self._stacks.describe(state, state.stack.name).outputs.get("BOSHEIP", "")
      return ip
    return self._terraform.outputs(state).get("external_ip", "")


def ssh_key(state: State) -> str:
  return jumpbox_private_key(state) or state.key_pair.private_key


class LatestError(Command):
  mutates_state = False

  def __init__(self, logger) -> None:
    self._logger = logger

  def execute(self, flags: Mapping[str, Any], state: State) -> None:
    self._logger.println(state.latest_error)


class PrintEnv(Command):
  mutates_state = False

  def __init__(self, logger, terraform, stacks=None) -> None:
    self._logger = logger
    self._address = DirectorAddress(terraform, stacks)

  def check_fast_fails(self, flags: Mapping[str, Any], state: State) -> None:
    validate_director_property(state, "director credentials")

  def execute(self, flags: Mapping[str, Any], state: State) -> None:
    director = state.director
    address = self._address(state)
    if not address:
      raise not_found("director address")
    self._logger.println(f"export BOSH_CLIENT={director.username}")
    self._logger.println(f"export BOSH_CLIENT_SECRET={director.password}")
    self._logger.println(f"export BOSH_CA_CERT='{director.ssl_ca}'")
    self._logger.println(f"export BOSH_ENVIRONMENT={address}")
    if state.jumpbox.is_deployed():
      self._logger.println(f"export BOSH_ALL_PROXY={jumpbox_proxy_url(state, self._write_key(state))}")

  def _write_key(self, state: State) -> str:
    handle, path = tempfile.mkstemp(prefix="bbl-jumpbox-", suffix=".key")
    with os.fdopen(handle, "w", encoding="utf-8") as stream:
      stream.write(jumpbox_private_key(state))
    os.chmod(path, 0o600)
    return path


class CloudConfig(Command):
  mutates_state = False

  def __init__(self, logger, cloud_config) -> None:
    self._logger = logger
    self._cloud_config = cloud_config

  def check_fast_fails(self, flags: Mapping[str, Any], state: State) -> None:
    validate_director_property(state, "cloud config")

  def execute(self, flags: Mapping[str, Any], state: State) -> None:
    self._logger.println(self._cloud_config.generate(state).rstrip("\n"))


class BOSHDeploymentVars(Command):
  mutates_state = False

  def __init__(self, logger, terraform, directors) -> None:
    self._logger = logger
    self._terraform = terraform
    self._directors = directors

  def check_fast_fails(self, flags: Mapping[str, Any], state: State) -> None:
    validate_director_property(state, "bosh deployment vars")
    if state.infra.is_empty():
      raise not_found("bosh deployment vars")

  def execute(self, flags: Mapping[str, Any], state: State) -> None:
    outputs = self._terraform.outputs(state)
    self._logger.println(self._directors.deployment_vars(state, outputs).rstrip("\n"))


class Version(Command):
  needs_state = False
  mutates_state = False

  def __init__(self, logger) -> None:
    self._logger = logger

  def execute(self, flags: Mapping[str, Any], state: State) -> None:
    self._logger.println(f"bbl {__version__}")


def state_queries(logger, terraform, stacks=None) -> Dict[str, Command]:
  return {
    "env-id": StateQuery(logger, "environment id", lambda state: state.env_id),
    "jumpbox-address": StateQuery(logger, "jumpbox address", lambda state: state.jumpbox.url),
    "director-address": StateQuery(logger, "director address", DirectorAddress(terraform, stacks)),
    "director-username": StateQuery(logger, "director username", lambda state: state.director.username),
    "director-password": StateQuery(logger, "director password", lambda state: state.director.password),
    "director-ca-cert": StateQuery(logger, "director ca cert", lambda state: state.director.ssl_ca),
    "ssh-key": StateQuery(logger, "ssh key", ssh_key),
  }
