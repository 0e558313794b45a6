"""Option resolution: command-line flag, then environment, then config file.

Anything still unset falls back to what the state document already holds.
The optional YAML config file may `extends` other files; mappings are deep
merged and any other value in a later file replaces the earlier one.
"""
from __future__ import annotations

import copy
import json
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Set, Tuple

import yaml

from bootloader.errors import ValidationError
from bootloader.state import IAAS, State

# option -> (environment variable, path inside the config file)
OPTIONS: Dict[str, Tuple[str, Tuple[str, ...]]] = {
  "state_dir": ("BBL_STATE_DIRECTORY", ("state_dir",)),
  "iaas": ("BBL_IAAS", ("iaas",)),
  "name": ("BBL_ENV_NAME", ("name",)),
  "aws_access_key_id": ("BBL_AWS_ACCESS_KEY_ID", ("aws", "access_key_id")),
  "aws_secret_access_key": ("BBL_AWS_SECRET_ACCESS_KEY", ("aws", "secret_access_key")),
  "aws_region": ("BBL_AWS_REGION", ("aws", "region")),
  "gcp_service_account_key": ("BBL_GCP_SERVICE_ACCOUNT_KEY", ("gcp", "service_account_key")),
  "gcp_project_id": ("BBL_GCP_PROJECT_ID", ("gcp", "project_id")),
  "gcp_region": ("BBL_GCP_REGION", ("gcp", "region")),
  "gcp_zone": ("BBL_GCP_ZONE", ("gcp", "zone")),
  "azure_subscription_id": ("BBL_AZURE_SUBSCRIPTION_ID", ("azure", "subscription_id")),
  "azure_tenant_id": ("BBL_AZURE_TENANT_ID", ("azure", "tenant_id")),
  "azure_client_id": ("BBL_AZURE_CLIENT_ID", ("azure", "client_id")),
  "azure_client_secret": ("BBL_AZURE_CLIENT_SECRET", ("azure", "client_secret")),
  "azure_region": ("BBL_AZURE_REGION", ("azure", "region")),
  "terraform_binary": ("BBL_TERRAFORM_BINARY", ("binaries", "terraform")),
  "bosh_binary": ("BBL_BOSH_BINARY", ("binaries", "bosh")),
  "gcloud_binary": ("BBL_GCLOUD_BINARY", ("binaries", "gcloud")),
  "ssh_keygen_binary": ("BBL_SSH_KEYGEN_BINARY", ("binaries", "ssh_keygen")),
  "bosh_deployment_dir": ("BBL_BOSH_DEPLOYMENT_DIR", ("bosh_deployment_dir",)),
  "jumpbox_deployment_dir": ("BBL_JUMPBOX_DEPLOYMENT_DIR", ("jumpbox_deployment_dir",)),
}

DEFAULTS: Dict[str, Any] = {
  "state_dir": ".",
  "terraform_binary": "terraform",
  "bosh_binary": "bosh",
  "gcloud_binary": "gcloud",
  "ssh_keygen_binary": "ssh-keygen",
}

CREDENTIAL_OPTIONS = {
  IAAS.AWS: ("access_key_id", "secret_access_key", "region"),
  IAAS.GCP: ("service_account_key", "project_id", "region", "zone"),
  IAAS.AZURE: ("subscription_id", "tenant_id", "client_id", "client_secret", "region"),
}


def deep_merge(base: Any, override: Any) -> Any:
  if isinstance(base, dict) and isinstance(override, dict):
    result = copy.deepcopy(base)
    for key, value in override.items():
      if key in result:
        result[key] = deep_merge(result[key], value)
      else:
        result[key] = copy.deepcopy(value)
    return result
  return copy.deepcopy(override)


def load_config_file(path: Path, seen: Optional[Set[Path]] = None) -> Dict[str, Any]:
  if seen is None:
    seen = set()

  resolved_path = path.resolve()
  if resolved_path in seen:
    raise ValidationError(f"Cyclic 'extends' reference detected at {path}.")
  if not path.is_file():
    raise ValidationError(f"Config file '{path}' was not found.")
  seen.add(resolved_path)

  with path.open("r", encoding="utf-8") as handle:
    try:
      loaded = yaml.safe_load(handle) or {}
    except yaml.YAMLError as exc:
      raise ValidationError(f"Config file {path} is not valid YAML: {exc}") from exc

  if not isinstance(loaded, dict):
    raise ValidationError(f"Config file {path} must parse to a mapping.")

  extends_value = loaded.pop("extends", None)
  merged: Dict[str, Any] = {}

  if extends_value:
    if isinstance(extends_value, str):
      extends_list = [extends_value]
    elif isinstance(extends_value, list) and all(isinstance(item, str) for item in extends_value):
      extends_list = extends_value
    else:
      raise ValidationError(f"Config file {path}: 'extends' must be a string or list of strings when specified.")

    for entry in extends_list:
      merged = deep_merge(merged, load_config_file(path.parent / entry, seen))

  merged = deep_merge(merged, loaded)
  seen.remove(resolved_path)
  return merged


def _config_value(config: Mapping[str, Any], path: Tuple[str, ...]) -> Any:
  node: Any = config
  for part in path:
    if not isinstance(node, Mapping) or part not in node:
      return None
    node = node[part]
  return node


def resolve_options(
  flags: Mapping[str, Any],
  environ: Optional[Mapping[str, str]] = None,
  config: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
  """Merge every known option; unknown flags pass through untouched."""
  environ = os.environ if environ is None else environ
  config = config or {}
  resolved: Dict[str, Any] = {key: value for key, value in flags.items() if key not in OPTIONS}
  for option, (variable, path) in OPTIONS.items():
    value = flags.get(option)
    if value in (None, ""):
      value = environ.get(variable)
    if value in (None, ""):
      value = _config_value(config, path)
    if value in (None, ""):
      value = DEFAULTS.get(option)
    resolved[option] = value
  return resolved


def read_service_account_key(value: str) -> Dict[str, Any]:
  """Accept either a path to the key file or the JSON itself."""
  text = value
  candidate = Path(value).expanduser()
  if not value.lstrip().startswith("{"):
    if not candidate.is_file():
      raise ValidationError(f"GCP service account key file '{value}' was not found.")
    text = candidate.read_text(encoding="utf-8")
  try:
    parsed = json.loads(text)
  except ValueError as exc:
    raise ValidationError(f"GCP service account key is not valid JSON: {exc}") from exc
  if not isinstance(parsed, dict):
    raise ValidationError("GCP service account key must be a JSON object.")
  return parsed


def apply_up_options(state: State, options: Mapping[str, Any]) -> State:
  """Fold resolved `up` options into the state; existing environments keep their iaas and name."""
  iaas = options.get("iaas") or state.iaas
  if state.iaas and iaas != state.iaas:
    raise ValidationError(f"The iaas of an existing environment cannot be changed from {state.iaas} to {iaas}.")
  try:
    selected = IAAS(iaas)
  except ValueError:
    raise ValidationError(f"--iaas must be one of: {', '.join(item.value for item in IAAS)}.") from None
  state.iaas = selected.value

  name = options.get("name")
  if name and state.env_id and name != state.env_id:
    raise ValidationError(f"The name of an existing environment cannot be changed from {state.env_id} to {name}.")

  credentials = getattr(state, selected.value)
  for field_name in CREDENTIAL_OPTIONS[selected]:
    value = options.get(f"{selected.value}_{field_name}")
    if value:
      setattr(credentials, field_name, value)

  if selected is IAAS.GCP and options.get("gcp_service_account_key"):
    key = read_service_account_key(options["gcp_service_account_key"])
    state.gcp.service_account_key = json.dumps(key)
    if not state.gcp.project_id:
      state.gcp.project_id = key.get("project_id", "")

  if options.get("no_director"):
    if not state.director.is_empty():
      raise ValidationError("Director already exists, you must re-create your environment to use \"--no-director\".")
    state.no_director = True

  if options.get("jumpbox") and not state.jumpbox.enabled:
    if not state.infra.is_empty():
      raise ValidationError("A jumpbox can only be added when the environment is created.")
    state.jumpbox.enabled = True
  return state
