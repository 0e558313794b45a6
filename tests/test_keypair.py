import json
from pathlib import Path

import pytest
from botocore.exceptions import ClientError

from bootloader.errors import ExternalToolError, ValidationError
from bootloader.keypair import AWSKeyPairManager, GCPKeyPairManager, KeyPairManager
from bootloader.runner import CommandResult
from bootloader.state import KeyPair, State
from tests.fakes import FakeKeyPairBackend, FakeLogger, gcp_state


class CountingGenerator:
  def __init__(self) -> None:
    self.calls = 0

  def generate(self, comment: str):
    self.calls += 1
    return f"PRIVATE-{self.calls}", f"ssh-rsa PUBLIC-{self.calls} {comment}"


class FakeEC2:
  def __init__(self, existing=()) -> None:
    self.keys = set(existing)
    self.imported = []
    self.deleted = []

  def describe_key_pairs(self, KeyNames):
    found = [name for name in KeyNames if name in self.keys]
    if not found:
      raise ClientError({"Error": {"Code": "InvalidKeyPair.NotFound", "Message": "nope"}}, "DescribeKeyPairs")
    return {"KeyPairs": [{"KeyName": name} for name in found]}

  def delete_key_pair(self, KeyName):
    self.deleted.append(KeyName)
    self.keys.discard(KeyName)

  def import_key_pair(self, KeyName, PublicKeyMaterial):
    self.imported.append((KeyName, PublicKeyMaterial))
    self.keys.add(KeyName)


class MetadataGcloud:
  """Fake gcloud holding project ssh-keys metadata in memory."""

  def __init__(self, entries=()) -> None:
    self.entries = list(entries)
    self.writes = 0

  def run(self, args, *, cwd=None, env=None):
    if "describe" in args:
      payload = {"commonInstanceMetadata": {"items": [{"key": "ssh-keys", "value": "\n".join(self.entries)}]}}
      return CommandResult(0, json.dumps(payload), "")
    source = args[args.index("--metadata-from-file") + 1].split("=", 1)[1]
    self.entries = [line for line in Path(source).read_text().splitlines() if line]
    self.writes += 1
    return CommandResult(0, "", "")


def test_ensure_with_a_populated_keypair_never_generates():
  backend = FakeKeyPairBackend()
  manager = KeyPairManager(aws=backend, gcp=backend)
  existing = KeyPair(name="keypair-e", public_key="ssh-rsa OLD", private_key="OLD")
  state = gcp_state(key_pair=existing)

  assert manager.ensure(state) is existing
  assert backend.created == 0


def test_rotate_always_generates():
  backend = FakeKeyPairBackend()
  manager = KeyPairManager(aws=backend, gcp=backend)
  state = gcp_state(key_pair=KeyPair(name="keypair-e", public_key="ssh-rsa OLD", private_key="OLD"))

  rotated = manager.rotate(state)

  assert backend.rotated == 1
  assert rotated.private_key != "OLD"


def test_azure_has_no_keypair_step():
  manager = KeyPairManager(aws=FakeKeyPairBackend(), gcp=FakeKeyPairBackend())
  state = State(iaas="azure", env_id="e")

  assert not manager.has_keypair_step(state)
  assert manager.ensure(state).is_empty()
  with pytest.raises(ValidationError):
    manager.rotate(state)


def test_aws_create_replaces_a_key_left_by_a_partial_run():
  ec2 = FakeEC2(existing={"keypair-env"})
  generator = CountingGenerator()
  manager = AWSKeyPairManager(lambda state: ec2, generator, FakeLogger())

  key_pair = manager.create(State(iaas="aws", env_id="env"))

  assert ec2.deleted == ["keypair-env"]
  assert ec2.imported[0][0] == "keypair-env"
  assert key_pair.private_key == "PRIVATE-1"
  assert key_pair.name == "keypair-env"


def test_aws_create_imports_when_nothing_is_registered():
  ec2 = FakeEC2()
  manager = AWSKeyPairManager(lambda state: ec2, CountingGenerator(), FakeLogger())

  manager.create(State(iaas="aws", env_id="env"))

  assert ec2.deleted == []
  assert [name for name, _ in ec2.imported] == ["keypair-env"]


def test_aws_delete_tolerates_a_missing_key():
  class MissingEC2(FakeEC2):
    def delete_key_pair(self, KeyName):
      raise ClientError({"Error": {"Code": "InvalidKeyPair.NotFound", "Message": "gone"}}, "DeleteKeyPair")

  manager = AWSKeyPairManager(lambda state: MissingEC2(), CountingGenerator(), FakeLogger())

  manager.delete(State(iaas="aws", env_id="env", key_pair=KeyPair(name="keypair-env", public_key="p")))


def test_aws_api_failures_surface_as_tool_errors():
  class DeniedEC2(FakeEC2):
    def import_key_pair(self, KeyName, PublicKeyMaterial):
      raise ClientError({"Error": {"Code": "UnauthorizedOperation", "Message": "denied"}}, "ImportKeyPair")

  manager = AWSKeyPairManager(lambda state: DeniedEC2(), CountingGenerator(), FakeLogger())

  with pytest.raises(ExternalToolError) as excinfo:
    manager.create(State(iaas="aws", env_id="env"))

  assert excinfo.value.tool == "aws"
  assert str(excinfo.value).startswith("Failed to create keypair keypair-env.")
  assert "UnauthorizedOperation" in str(excinfo.value)


def test_gcp_rotate_replaces_only_the_environment_entry():
  gcloud = MetadataGcloud(entries=["alice:ssh-rsa ALICE", "vcap:ssh-rsa OLD"])
  manager = GCPKeyPairManager(gcloud, CountingGenerator(), FakeLogger())
  state = gcp_state(key_pair=KeyPair(name="keypair-e", public_key="ssh-rsa OLD", private_key="OLD"))

  rotated = manager.rotate(state)

  assert gcloud.entries == ["alice:ssh-rsa ALICE", f"vcap:{rotated.public_key}"]


def test_gcp_delete_removes_the_entry():
  gcloud = MetadataGcloud(entries=["alice:ssh-rsa ALICE", "vcap:ssh-rsa OLD"])
  manager = GCPKeyPairManager(gcloud, CountingGenerator(), FakeLogger())

  manager.delete(gcp_state(key_pair=KeyPair(name="k", public_key="ssh-rsa OLD", private_key="OLD")))

  assert gcloud.entries == ["alice:ssh-rsa ALICE"]
