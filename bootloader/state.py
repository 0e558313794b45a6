"""The environment state document.

A single State is the source of truth for resuming, querying and reversing
every operation. It is persisted as JSON by bootloader.store.
"""
from __future__ import annotations

import copy
from dataclasses import asdict, dataclass, field, fields
from enum import Enum
from typing import Any, Dict, Optional

CURRENT_VERSION = 3


class IAAS(str, Enum):
  AWS = "aws"
  GCP = "gcp"
  AZURE = "azure"


def parse_iaas(value: str) -> IAAS:
  try:
    return IAAS(value)
  except ValueError:
    allowed = ", ".join(item.value for item in IAAS)
    raise ValueError(f"Unknown iaas '{value}'; expected one of: {allowed}.") from None


@dataclass
class AWSCredentials:
  access_key_id: str = ""
  secret_access_key: str = ""
  region: str = ""


@dataclass
class GCPCredentials:
  service_account_key: str = ""
  project_id: str = ""
  region: str = ""
  zone: str = ""


@dataclass
class AzureCredentials:
  subscription_id: str = ""
  tenant_id: str = ""
  client_id: str = ""
  client_secret: str = ""
  region: str = ""


@dataclass
class KeyPair:
  name: str = ""
  public_key: str = ""
  private_key: str = ""

  def is_empty(self) -> bool:
    return not self.public_key and not self.private_key


@dataclass
class InfraState:
  state: str = ""
  outputs: Dict[str, Any] = field(default_factory=dict)
  fingerprint: str = ""

  def is_empty(self) -> bool:
    return not self.state


@dataclass
class LegacyStack:
  name: str = ""
  lb_type: str = ""
  certificate_name: str = ""
  outputs: Dict[str, str] = field(default_factory=dict)


@dataclass
class Director:
  name: str = ""
  address: str = ""
  username: str = ""
  password: str = ""
  ssl_ca: str = ""
  ssl_certificate: str = ""
  ssl_private_key: str = ""
  manifest: str = ""
  state: Dict[str, Any] = field(default_factory=dict)
  credentials: Dict[str, Any] = field(default_factory=dict)
  fingerprint: str = ""

  def is_empty(self) -> bool:
    return not self.password and not self.state


@dataclass
class Jumpbox:
  enabled: bool = False
  url: str = ""
  manifest: str = ""
  state: Dict[str, Any] = field(default_factory=dict)
  variables: Dict[str, Any] = field(default_factory=dict)
  fingerprint: str = ""

  def is_deployed(self) -> bool:
    return bool(self.state)


@dataclass
class LB:
  type: str = ""
  cert: str = ""
  key: str = ""
  chain: str = ""
  domain: str = ""

  def is_empty(self) -> bool:
    return not self.type


@dataclass
class State:
  version: int = CURRENT_VERSION
  iaas: str = ""
  env_id: str = ""
  no_director: bool = False
  aws: AWSCredentials = field(default_factory=AWSCredentials)
  gcp: GCPCredentials = field(default_factory=GCPCredentials)
  azure: AzureCredentials = field(default_factory=AzureCredentials)
  key_pair: KeyPair = field(default_factory=KeyPair)
  infra: InfraState = field(default_factory=InfraState)
  stack: Optional[LegacyStack] = None
  migrated_stack: str = ""
  director: Director = field(default_factory=Director)
  jumpbox: Jumpbox = field(default_factory=Jumpbox)
  lb: LB = field(default_factory=LB)
  latest_error: str = ""

  def is_empty(self) -> bool:
    return not self.iaas and not self.env_id

  def copy(self) -> "State":
    return copy.deepcopy(self)

  def to_dict(self) -> Dict[str, Any]:
    return asdict(self)

  @classmethod
  def from_dict(cls, data: Dict[str, Any]) -> "State":
    stack_data = data.get("stack")
    return cls(
      version=int(data.get("version", CURRENT_VERSION)),
      iaas=data.get("iaas", "") or "",
      env_id=data.get("env_id", "") or "",
      no_director=bool(data.get("no_director", False)),
      aws=_build(AWSCredentials, data.get("aws")),
      gcp=_build(GCPCredentials, data.get("gcp")),
      azure=_build(AzureCredentials, data.get("azure")),
      key_pair=_build(KeyPair, data.get("key_pair")),
      infra=_build(InfraState, data.get("infra")),
      stack=_build(LegacyStack, stack_data) if stack_data else None,
      migrated_stack=data.get("migrated_stack", "") or "",
      director=_build(Director, data.get("director")),
      jumpbox=_build(Jumpbox, data.get("jumpbox")),
      lb=_build(LB, data.get("lb")),
      latest_error=data.get("latest_error", "") or "",
    )


def _build(cls, data: Optional[Dict[str, Any]]):
  if not data:
    return cls()
  known = {item.name for item in fields(cls)}
  return cls(**{key: copy.deepcopy(value) for key, value in data.items() if key in known})
