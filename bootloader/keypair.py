"""SSH keypair used to reach the director.

AWS registers the public half as an EC2 key pair; GCP publishes it in the
project-wide ssh-keys metadata. Azure has no keypair step.
"""
from __future__ import annotations

import contextlib
import json
import os
import shutil
import tempfile
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Optional, Tuple

from botocore.exceptions import ClientError

from bootloader.aws import aws_errors, error_code
from bootloader.errors import ExternalToolError, ValidationError
from bootloader.state import IAAS, KeyPair, State

GCP_SSH_USER = "vcap"


class SSHKeyGenerator:
  def __init__(self, runner) -> None:
    self._runner = runner

  def generate(self, comment: str) -> Tuple[str, str]:
    scratch = Path(tempfile.mkdtemp(prefix="bbl-keypair-"))
    try:
      key_path = scratch / "id_rsa"
      result = self._runner.run(
        ["-t", "rsa", "-b", "2048", "-m", "PEM", "-N", "", "-C", comment, "-f", str(key_path)]
      )
      if result.returncode != 0:
        raise ExternalToolError("ssh-keygen failed to generate a keypair.", tool="ssh-keygen", output=result.output)
      private_key = key_path.read_text(encoding="utf-8")
      public_key = key_path.with_suffix(".pub").read_text(encoding="utf-8").strip()
      return private_key, public_key
    finally:
      shutil.rmtree(scratch, ignore_errors=True)


def _key_pair_name(env_id: str) -> str:
  return f"keypair-{env_id}"


class AWSKeyPairManager:
  def __init__(self, client_factory: Callable[[State], object], generator: SSHKeyGenerator, logger) -> None:
    self._client_factory = client_factory
    self._generator = generator
    self._logger = logger

  def create(self, state: State) -> KeyPair:
    name = _key_pair_name(state.env_id)
    client = self._client_factory(state)
    with aws_errors(f"create keypair {name}"):
      if self._exists(client, name):
        # Registered by an earlier run whose private key never made it to disk.
        self._logger.step(f"replacing unreachable keypair {name}")
        client.delete_key_pair(KeyName=name)
      return self._import(client, name)

  def rotate(self, state: State) -> KeyPair:
    name = state.key_pair.name or _key_pair_name(state.env_id)
    client = self._client_factory(state)
    with aws_errors(f"rotate keypair {name}"):
      if self._exists(client, name):
        client.delete_key_pair(KeyName=name)
      return self._import(client, name)

  def delete(self, state: State) -> None:
    name = state.key_pair.name or _key_pair_name(state.env_id)
    client = self._client_factory(state)
    self._logger.step(f"deleting keypair {name}")
    with aws_errors(f"delete keypair {name}"):
      try:
        client.delete_key_pair(KeyName=name)
      except ClientError as exc:
        if error_code(exc) != "InvalidKeyPair.NotFound":
          raise

  def _import(self, client, name: str) -> KeyPair:
    self._logger.step(f"creating keypair {name}")
    private_key, public_key = self._generator.generate(name)
    client.import_key_pair(KeyName=name, PublicKeyMaterial=public_key.encode("utf-8"))
    return KeyPair(name=name, public_key=public_key, private_key=private_key)

  def _exists(self, client, name: str) -> bool:
    try:
      response = client.describe_key_pairs(KeyNames=[name])
    except ClientError as exc:
      if error_code(exc) == "InvalidKeyPair.NotFound":
        return False
      raise
    return bool(response.get("KeyPairs"))


class GCPKeyPairManager:
  def __init__(self, gcloud, generator: SSHKeyGenerator, logger) -> None:
    self._gcloud = gcloud
    self._generator = generator
    self._logger = logger

  def create(self, state: State) -> KeyPair:
    self._logger.step("creating keypair")
    name = _key_pair_name(state.env_id)
    private_key, public_key = self._generator.generate(GCP_SSH_USER)
    self._write_entries(state, self._without(self._read_entries(state), public_key) + [f"{GCP_SSH_USER}:{public_key}"])
    return KeyPair(name=name, public_key=public_key, private_key=private_key)

  def rotate(self, state: State) -> KeyPair:
    entries = self._without(self._read_entries(state), state.key_pair.public_key)
    private_key, public_key = self._generator.generate(GCP_SSH_USER)
    self._write_entries(state, entries + [f"{GCP_SSH_USER}:{public_key}"])
    return KeyPair(name=state.key_pair.name or _key_pair_name(state.env_id), public_key=public_key, private_key=private_key)

  def delete(self, state: State) -> None:
    self._logger.step("deleting keypair")
    entries = self._read_entries(state)
    remaining = self._without(entries, state.key_pair.public_key)
    if remaining != entries:
      self._write_entries(state, remaining)

  def _without(self, entries: List[str], public_key: str) -> List[str]:
    if not public_key:
      return list(entries)
    return [entry for entry in entries if entry.split(":", 1)[-1].strip() != public_key.strip()]

  def _read_entries(self, state: State) -> List[str]:
    with gcloud_environment(state.gcp.service_account_key) as env:
      result = self._gcloud.run(
        ["compute", "project-info", "describe", "--project", state.gcp.project_id, "--format", "json"],
        env=env,
      )
    if result.returncode != 0:
      raise ExternalToolError("Failed to read GCP project metadata.", tool="gcloud", output=result.output)
    payload = json.loads(result.stdout or "{}")
    items = (payload.get("commonInstanceMetadata") or {}).get("items") or []
    for item in items:
      if item.get("key") == "ssh-keys":
        return [line for line in str(item.get("value", "")).splitlines() if line.strip()]
    return []

  def _write_entries(self, state: State, entries: List[str]) -> None:
    scratch = Path(tempfile.mkdtemp(prefix="bbl-gcp-metadata-"))
    try:
      ssh_keys = scratch / "ssh-keys"
      ssh_keys.write_text("\n".join(entries) + "\n", encoding="utf-8")
      with gcloud_environment(state.gcp.service_account_key) as env:
        result = self._gcloud.run(
          [
            "compute", "project-info", "add-metadata",
            "--project", state.gcp.project_id,
            "--metadata-from-file", f"ssh-keys={ssh_keys}",
          ],
          env=env,
        )
    finally:
      shutil.rmtree(scratch, ignore_errors=True)
    if result.returncode != 0:
      raise ExternalToolError("Failed to update GCP project ssh-keys metadata.", tool="gcloud", output=result.output)


@contextlib.contextmanager
def gcloud_environment(service_account_key: str) -> Iterator[Dict[str, str]]:
  """Authenticate gcloud with the service account key without touching the user's gcloud config."""
  env = dict(os.environ)
  scratch = Path(tempfile.mkdtemp(prefix="bbl-gcloud-"))
  try:
    if service_account_key:
      key_path = scratch / "credentials.json"
      key_path.write_text(service_account_key, encoding="utf-8")
      env["CLOUDSDK_AUTH_CREDENTIAL_FILE_OVERRIDE"] = str(key_path)
    yield env
  finally:
    shutil.rmtree(scratch, ignore_errors=True)


class KeyPairManager:
  def __init__(self, aws: Optional[AWSKeyPairManager] = None, gcp: Optional[GCPKeyPairManager] = None) -> None:
    self._managers = {IAAS.AWS: aws, IAAS.GCP: gcp}

  def has_keypair_step(self, state: State) -> bool:
    return state.iaas in (IAAS.AWS.value, IAAS.GCP.value)

  def ensure(self, state: State) -> KeyPair:
    if not state.key_pair.is_empty():
      return state.key_pair
    if not self.has_keypair_step(state):
      return state.key_pair
    return self._manager(state).create(state)

  def rotate(self, state: State) -> KeyPair:
    if not self.has_keypair_step(state):
      raise ValidationError(f"Keypair rotation is not supported on {state.iaas or 'this iaas'}.")
    return self._manager(state).rotate(state)

  def delete(self, state: State) -> None:
    if state.key_pair.is_empty() or not self.has_keypair_step(state):
      return
    self._manager(state).delete(state)

  def _manager(self, state: State):
    manager = self._managers.get(IAAS(state.iaas))
    if manager is None:
      raise ValidationError(f"No keypair manager is configured for {state.iaas}.")
    return manager
