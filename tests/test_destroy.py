import pytest

from bootloader.commands import Destroy
from bootloader.errors import ExternalToolError
from bootloader.stack import Migrator
from tests.fakes import Environment, gcp_flags
from tests.test_migration import legacy_description, legacy_state
from tests.test_up import run_up


def make_destroy(env):
  migrator = Migrator(env.stacks, env.terraform, env.logger)
  return Destroy(env.store, env.keypairs, migrator, env.terraform, env.directors, env.stacks, env.logger)


def run_destroy(env, flags=None):
  flags = flags or {}
  command = make_destroy(env)
  state = env.store.load()
  command.check_fast_fails(flags, state)
  command.execute(flags, state)


def test_destroy_tears_down_in_reverse_order(tmp_path):
  env = Environment(tmp_path)
  run_up(env, gcp_flags(name="lake-env"))
  before = len(env.store.saves)

  run_destroy(env, {"no_confirm": True})

  director_gone, infra_gone, keypair_gone = env.store.saves[before:]
  assert director_gone.director.is_empty()
  assert not director_gone.infra.is_empty()
  assert infra_gone.infra.is_empty()
  assert not infra_gone.key_pair.is_empty()
  assert keypair_gone.key_pair.is_empty()
  assert env.gcp_keys.deleted == 1
  assert len(env.bosh.deletes) == 1
  assert env.terraform_executor.destroys == 1
  assert not env.store.exists()


def test_declined_prompt_changes_nothing(tmp_path):
  env = Environment(tmp_path, answer=False)
  run_up(env, gcp_flags(name="lake-env"))
  before = len(env.store.saves)

  run_destroy(env)

  assert env.logger.prompts
  assert "exiting" in env.logger.lines
  assert len(env.store.saves) == before
  assert env.store.exists()
  assert env.bosh.deletes == []


def test_failed_infrastructure_destroy_keeps_the_state_for_a_retry(tmp_path):
  env = Environment(tmp_path)
  run_up(env, gcp_flags(name="lake-env"))
  env.terraform_executor.fail_destroy = True

  with pytest.raises(ExternalToolError):
    run_destroy(env, {"no_confirm": True})

  interrupted = env.store.load()
  assert interrupted.director.is_empty()
  assert not interrupted.infra.is_empty()
  assert interrupted.latest_error

  env.terraform_executor.fail_destroy = False
  run_destroy(env, {"no_confirm": True})

  assert len(env.bosh.deletes) == 1
  assert not env.store.exists()


def test_failed_director_delete_persists_the_partial(tmp_path):
  env = Environment(tmp_path)
  run_up(env, gcp_flags(name="lake-env"))
  password = env.store.load().director.password
  env.bosh.fail_delete = True

  with pytest.raises(ExternalToolError):
    run_destroy(env, {"no_confirm": True})

  interrupted = env.store.load()
  assert interrupted.director.state == {"half": True}
  assert interrupted.director.password == password
  assert env.terraform_executor.destroys == 0


def test_no_director_environment_skips_the_director(tmp_path):
  env = Environment(tmp_path)
  run_up(env, gcp_flags(name="lake-env", no_director=True))

  run_destroy(env, {"no_confirm": True})

  assert env.bosh.deletes == []
  assert env.terraform_executor.destroys == 1
  assert not env.store.exists()


def test_legacy_environment_is_migrated_then_its_stack_deleted(tmp_path):
  env = Environment(tmp_path)
  env.stacks.description = legacy_description()
  env.stacks.fail_delete = True
  env.store.save(legacy_state(no_director=True))

  with pytest.raises(ExternalToolError):
    run_destroy(env, {"no_confirm": True})

  interrupted = env.store.load()
  assert interrupted.latest_error.startswith("Failed to delete stack stack-env.")
  assert interrupted.stack is None
  assert interrupted.migrated_stack == "stack-env"
  assert interrupted.infra.is_empty()
  assert not interrupted.key_pair.is_empty()

  env.stacks.fail_delete = False
  run_destroy(env, {"no_confirm": True})

  assert env.stacks.deleted == ["stack-env"]
  assert env.terraform_executor.destroys == 1
  assert env.aws_keys.deleted == 1
  assert not env.store.exists()


def test_failed_keypair_delete_is_recorded(tmp_path):
  env = Environment(tmp_path)
  run_up(env, gcp_flags(name="lake-env"))
  env.gcp_keys.fail = True

  with pytest.raises(ExternalToolError):
    run_destroy(env, {"no_confirm": True})

  interrupted = env.store.load()
  assert interrupted.latest_error.startswith("Failed to update GCP project ssh-keys metadata.")
  assert interrupted.infra.is_empty()
  assert not interrupted.key_pair.is_empty()

  env.gcp_keys.fail = False
  run_destroy(env, {"no_confirm": True})

  assert env.gcp_keys.deleted == 1
  assert not env.store.exists()
