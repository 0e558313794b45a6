import pytest

from bootloader.errors import PreconditionError, ValidationError
from bootloader.state import AWSCredentials, State
from bootloader.store import Store
from bootloader.validation import CredentialValidator, StateValidator, validate_director_property


def test_every_missing_credential_is_reported_at_once():
  state = State(iaas="aws", aws=AWSCredentials(region="us-east-1"))

  with pytest.raises(ValidationError) as excinfo:
    CredentialValidator().validate(state)

  message = str(excinfo.value)
  assert "AWS access key ID" in message
  assert "AWS secret access key" in message
  assert "AWS region" not in message


def test_missing_iaas_is_a_validation_error():
  assert CredentialValidator().missing(State()) == ["--iaas (one of: aws, gcp, azure)"]


def test_complete_azure_credentials_pass():
  state = State(iaas="azure")
  state.azure.subscription_id = "sub"
  state.azure.tenant_id = "tenant"
  state.azure.client_id = "client"
  state.azure.client_secret = "secret"
  state.azure.region = "eastus"

  CredentialValidator().validate(state)


def test_state_validator_requires_a_document(tmp_path):
  with pytest.raises(ValidationError) as excinfo:
    StateValidator(Store(tmp_path)).validate()

  assert "bbl-state.json not found" in str(excinfo.value)


def test_director_properties_are_refused_without_a_director():
  state = State(iaas="gcp", env_id="e", no_director=True)

  with pytest.raises(PreconditionError) as excinfo:
    validate_director_property(state, "director password")

  assert str(excinfo.value) == "bbl does not manage this director."
  validate_director_property(state, "director address")
  validate_director_property(state, "environment id")
