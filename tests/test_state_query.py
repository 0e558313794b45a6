import pytest

from bootloader.commands import LatestError, PrintEnv, state_queries
from bootloader.errors import PreconditionError
from bootloader.state import Director, InfraState, Jumpbox, LegacyStack
from bootloader.terraform import Manager
from tests.fakes import FakeLogger, FakeStackManager, FakeTerraformExecutor, gcp_state


def query(name, state, terraform=None, stacks=None):
  logger = FakeLogger()
  command = state_queries(logger, terraform or Manager(FakeTerraformExecutor(), FakeLogger()), stacks)[name]
  command.check_fast_fails({}, state)
  command.execute({}, state)
  return logger.lines[-1]


def test_director_properties_come_from_state():
  state = gcp_state(director=Director(address="https://10.0.0.6:25555", username="admin", password="pw", ssl_ca="CA"))

  assert query("director-address", state) == "https://10.0.0.6:25555"
  assert query("director-username", state) == "admin"
  assert query("director-password", state) == "pw"
  assert query("director-ca-cert", state) == "CA"
  assert query("env-id", state) == "bbl-env-test"


def test_empty_value_asks_to_check_the_state_dir():
  with pytest.raises(PreconditionError) as excinfo:
    query("director-password", gcp_state())

  assert str(excinfo.value) == (
    "Could not retrieve director password, please make sure you are targeting the proper state dir."
  )


def test_director_credentials_are_refused_without_a_director():
  state = gcp_state(no_director=True, director=Director(password="stale"))

  with pytest.raises(PreconditionError) as excinfo:
    query("director-password", state)

  assert str(excinfo.value) == "bbl does not manage this director."


def test_no_director_address_is_derived_from_terraform_outputs():
  executor = FakeTerraformExecutor()
  terraform = Manager(executor, FakeLogger())
  state = gcp_state(no_director=True)
  # Only the blob is kept; outputs are recomputed on demand.
  state.infra = InfraState(state=terraform.apply(state).state)

  assert query("director-address", state, terraform) == "https://35.1.2.3:25555"


def test_no_director_address_uses_the_legacy_stack_eip():
  state = gcp_state(no_director=True, iaas="aws", stack=LegacyStack(name="stack-env", outputs={"BOSHEIP": "52.0.0.1"}))

  assert query("director-address", state) == "https://52.0.0.1:25555"


def test_no_director_address_asks_cloudformation_when_outputs_were_not_saved():
  class Description:
    outputs = {"BOSHEIP": "52.0.0.9"}

  state = gcp_state(no_director=True, iaas="aws", stack=LegacyStack(name="stack-env"))

  assert query("director-address", state, stacks=FakeStackManager(Description())) == "https://52.0.0.9:25555"


def test_ssh_key_prefers_the_jumpbox_key():
  state = gcp_state(jumpbox=Jumpbox(enabled=True, variables={"jumpbox_ssh": {"private_key": "JUMPBOX"}}))
  state.key_pair.private_key = "DIRECTOR"

  assert query("ssh-key", state) == "JUMPBOX"


def test_print_env_exports_director_credentials():
  logger = FakeLogger()
  state = gcp_state(director=Director(address="https://10.0.0.6:25555", username="admin", password="pw", ssl_ca="CA"))
  command = PrintEnv(logger, Manager(FakeTerraformExecutor(), FakeLogger()))

  command.check_fast_fails({}, state)
  command.execute({}, state)

  assert logger.lines == [
    "export BOSH_CLIENT=admin",
    "export BOSH_CLIENT_SECRET=pw",
    "export BOSH_CA_CERT='CA'",
    "export BOSH_ENVIRONMENT=https://10.0.0.6:25555",
  ]


def test_print_env_adds_the_jumpbox_proxy(tmp_path):
  logger = FakeLogger()
  state = gcp_state(
    director=Director(address="https://10.0.0.6:25555", username="admin", password="pw"),
    jumpbox=Jumpbox(enabled=True, url="35.1.2.4:22", state={"vm": 1}, variables={"jumpbox_ssh": {"private_key": "JB"}}),
  )

  PrintEnv(logger, Manager(FakeTerraformExecutor(), FakeLogger())).execute({}, state)

  proxy = logger.lines[-1]
  assert proxy.startswith("export BOSH_ALL_PROXY=ssh+socks5://jumpbox@35.1.2.4:22?private-key=")
  key_path = proxy.split("private-key=", 1)[1]
  with open(key_path, encoding="utf-8") as handle:
    assert handle.read() == "JB"


def test_latest_error_prints_the_recorded_failure():
  logger = FakeLogger()

  LatestError(logger).execute({}, gcp_state(latest_error="terraform apply failed."))

  assert logger.lines == ["terraform apply failed."]
