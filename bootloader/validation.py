from __future__ import annotations

from typing import Dict, List, Tuple

from bootloader.errors import PreconditionError, ValidationError
from bootloader.state import IAAS, State
from bootloader.store import STATE_FILE

REQUIRED_CREDENTIALS: Dict[IAAS, Tuple[Tuple[str, str], ...]] = {
  IAAS.AWS: (
    ("access_key_id", "AWS access key ID"),
    ("secret_access_key", "AWS secret access key"),
    ("region", "AWS region"),
  ),
  IAAS.GCP: (
    ("service_account_key", "GCP service account key"),
    ("project_id", "GCP project ID"),
    ("region", "GCP region"),
    ("zone", "GCP zone"),
  ),
  IAAS.AZURE: (
    ("subscription_id", "Azure subscription ID"),
    ("tenant_id", "Azure tenant ID"),
    ("client_id", "Azure client ID"),
    ("client_secret", "Azure client secret"),
    ("region", "Azure region"),
  ),
}

# Properties that stay answerable when bbl only manages the infrastructure.
NO_DIRECTOR_PROPERTIES = ("director address", "environment id")


class CredentialValidator:
  def missing(self, state: State) -> List[str]:
    try:
      iaas = IAAS(state.iaas)
    except ValueError:
      return ["--iaas (one of: aws, gcp, azure)"]
    credentials = getattr(state, iaas.value)
    return [
      label
      for attribute, label in REQUIRED_CREDENTIALS[iaas]
      if not getattr(credentials, attribute, "")
    ]

  def validate(self, state: State) -> None:
    missing = self.missing(state)
    if missing:
      lines = "\n".join(f"  - {label}" for label in missing)
      raise ValidationError(f"Missing required credentials:\n{lines}")


class StateValidator:
  def __init__(self, store) -> None:
    self._store = store

  def validate(self) -> None:
    if not self._store.exists():
      raise ValidationError(
        f"{STATE_FILE} not found in {self._store.state_dir}, ensure you're running this command "
        "in the proper state directory or create a new environment with bbl up"
      )


def validate_director_property(state: State, property_name: str) -> None:
  if state.no_director and property_name not in NO_DIRECTOR_PROPERTIES:
    raise PreconditionError("bbl does not manage this director.")
