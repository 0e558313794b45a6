from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from typing import Any, Dict

from bootloader.state import State
from bootloader.zones import availability_zones

CREDENTIALS_FILE = "credentials.json"
CERTIFICATE_FILE = "lb_cert.pem"
PRIVATE_KEY_FILE = "lb_key.pem"
CHAIN_FILE = "lb_chain.pem"


@dataclass
class TerraformInput:
  template: str
  variables: Dict[str, Any]
  files: Dict[str, str] = field(default_factory=dict)

  def fingerprint(self) -> str:
    payload = json.dumps(
      {"template": self.template, "variables": self.variables, "files": self.files},
      sort_keys=True,
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def _lb_files(state: State) -> Dict[str, str]:
  files: Dict[str, str] = {}
  if state.lb.cert:
    files[CERTIFICATE_FILE] = state.lb.cert
  if state.lb.key:
    files[PRIVATE_KEY_FILE] = state.lb.key
  if state.lb.chain:
    files[CHAIN_FILE] = state.lb.chain
  return files


class GCPInputGenerator:
  def generate(self, state: State) -> Dict[str, Any]:
    variables: Dict[str, Any] = {
      "project_id": state.gcp.project_id,
      "region": state.gcp.region,
      "zone": state.gcp.zone,
      "env_id": state.env_id,
      "credentials": CREDENTIALS_FILE,
    }
    if state.lb.type == "cf":
      variables["ssl_certificate"] = CERTIFICATE_FILE
      variables["ssl_certificate_private_key"] = PRIVATE_KEY_FILE
    return variables

  def files(self, state: State) -> Dict[str, str]:
    files = {CREDENTIALS_FILE: state.gcp.service_account_key}
    if state.lb.type == "cf":
      files.update(_lb_files(state))
    return files


class AWSInputGenerator:
  def generate(self, state: State) -> Dict[str, Any]:
    zones = availability_zones("aws", state.aws.region)
    variables: Dict[str, Any] = {
      "access_key": state.aws.access_key_id,
      "secret_key": state.aws.secret_access_key,
      "region": state.aws.region,
      "env_id": state.env_id,
      "key_pair_name": state.key_pair.name,
      "bosh_availability_zone": zones[0],
      "availability_zones": zones,
    }
    if state.lb.type:
      variables["ssl_certificate"] = CERTIFICATE_FILE
      variables["ssl_certificate_private_key"] = PRIVATE_KEY_FILE
      variables["ssl_certificate_chain"] = CHAIN_FILE if state.lb.chain else ""
      variables["ssl_certificate_name_prefix"] = f"{state.env_id}-{state.lb.type}"[:30]
    return variables

  def files(self, state: State) -> Dict[str, str]:
    return _lb_files(state) if state.lb.type else {}


def azure_storage_account_name(env_id: str) -> str:
  alphanumeric = "".join(character for character in env_id.lower() if character.isalnum())
  suffix = hashlib.sha1(env_id.encode("utf-8")).hexdigest()[:4]
  return f"{alphanumeric[:20]}{suffix}"


class AzureInputGenerator:
  def generate(self, state: State) -> Dict[str, Any]:
    return {
      "subscription_id": state.azure.subscription_id,
      "tenant_id": state.azure.tenant_id,
      "client_id": state.azure.client_id,
      "client_secret": state.azure.client_secret,
      "region": state.azure.region,
      "env_id": state.env_id,
      "storage_account_name": azure_storage_account_name(state.env_id),
    }

  def files(self, state: State) -> Dict[str, str]:
    return {}
