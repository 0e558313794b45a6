"""Cloud config generation and upload.

Generation is a pure function of the terraform outputs, the region's zone
table and the load balancer type, so re-running it is always safe.
"""
from __future__ import annotations

import ipaddress
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import yaml

from bootloader.errors import ValidationError
from bootloader.state import IAAS, State
from bootloader.terraform.templates import BOSH_SUBNET_CIDR
from bootloader.zones import availability_zones

NETWORK_NAME = "private"
COMPILATION_WORKERS = 5

# Mapped to a machine type per iaas in MACHINE_TYPES.
VM_SIZES = ("minimal", "small", "small-highmem", "default", "large", "extra-large")

MACHINE_TYPES = {
  IAAS.GCP: {
    "minimal": "n1-standard-1",
    "small": "n1-standard-2",
    "small-highmem": "n1-highmem-2",
    "default": "n1-standard-2",
    "large": "n1-standard-4",
    "extra-large": "n1-standard-8",
    "compilation": "n1-highcpu-8",
  },
  IAAS.AWS: {
    "minimal": "t2.micro",
    "small": "m4.large",
    "small-highmem": "r4.large",
    "default": "m4.large",
    "large": "m4.xlarge",
    "extra-large": "m4.2xlarge",
    "compilation": "c4.xlarge",
  },
  IAAS.AZURE: {
    "minimal": "Standard_F1",
    "small": "Standard_F2",
    "small-highmem": "Standard_E2_v3",
    "default": "Standard_DS2_v2",
    "large": "Standard_DS3_v2",
    "extra-large": "Standard_DS4_v2",
    "compilation": "Standard_F4",
  },
}

DISK_SIZES_GB = (1, 5, 10, 50, 100, 500, 1000)


@dataclass
class CloudConfigInput:
  azs: List[str]
  outputs: Dict[str, Any] = field(default_factory=dict)
  lb_type: str = ""


def _az_name(index: int) -> str:
  return f"z{index + 1}"


def _subnet(cidr: str, az_names: List[str], cloud_properties: Dict[str, Any], reserved_hosts: int = 3) -> Dict[str, Any]:
  try:
    network = ipaddress.ip_network(cidr)
  except ValueError:
    raise ValidationError(f"Subnet range '{cidr}' reported by terraform is not a valid CIDR.") from None
  hosts = list(network.hosts())
  return {
    "range": str(network),
    "gateway": str(hosts[0]),
    "azs": az_names,
    "reserved": [f"{hosts[1]}-{hosts[reserved_hosts - 1]}", str(hosts[-1])],
    "static": [f"{hosts[-65]}-{hosts[-2]}"],
    "cloud_properties": cloud_properties,
  }


class CloudConfigGenerator:
  iaas: IAAS

  def generate(self, config_input: CloudConfigInput) -> Dict[str, Any]:
    return {
      "azs": self.azs(config_input),
      "vm_types": self.vm_types(),
      "disk_types": self.disk_types(),
      "compilation": self.compilation(config_input),
      "networks": [{"name": NETWORK_NAME, "type": "manual", "subnets": self.subnets(config_input)}],
      "vm_extensions": self.vm_extensions(config_input),
    }

  def azs(self, config_input: CloudConfigInput) -> List[Dict[str, Any]]:
    return [
      {"name": _az_name(index), "cloud_properties": self.az_properties(zone)}
      for index, zone in enumerate(config_input.azs)
    ]

  def vm_types(self) -> List[Dict[str, Any]]:
    return [
      {"name": name, "cloud_properties": self.machine_properties(MACHINE_TYPES[self.iaas][name])}
      for name in VM_SIZES
    ]

  def disk_types(self) -> List[Dict[str, Any]]:
    return [
      {"name": f"{size}GB", "disk_size": size * 1024, "cloud_properties": self.disk_properties()}
      for size in DISK_SIZES_GB
    ]

  def compilation(self, config_input: CloudConfigInput) -> Dict[str, Any]:
    return {
      "workers": COMPILATION_WORKERS,
      "network": NETWORK_NAME,
      "az": _az_name(0),
      "reuse_compilation_vms": True,
      "cloud_properties": self.machine_properties(MACHINE_TYPES[self.iaas]["compilation"]),
    }

  def vm_extensions(self, config_input: CloudConfigInput) -> List[Dict[str, Any]]:
    extensions = [
      {"name": "5GB_ephemeral_disk", "cloud_properties": self.ephemeral_disk_properties(5)},
      {"name": "10GB_ephemeral_disk", "cloud_properties": self.ephemeral_disk_properties(10)},
      {"name": "50GB_ephemeral_disk", "cloud_properties": self.ephemeral_disk_properties(50)},
    ]
    extensions.extend(self.lb_extensions(config_input))
    return extensions

  def az_properties(self, zone: str) -> Dict[str, Any]:
    raise NotImplementedError

  def machine_properties(self, machine_type: str) -> Dict[str, Any]:
    raise NotImplementedError

  def disk_properties(self) -> Dict[str, Any]:
    return {}

  def ephemeral_disk_properties(self, size_gb: int) -> Dict[str, Any]:
    raise NotImplementedError

  def subnets(self, config_input: CloudConfigInput) -> List[Dict[str, Any]]:
    raise NotImplementedError

  def lb_extensions(self, config_input: CloudConfigInput) -> List[Dict[str, Any]]:
    return []


class GCPCloudConfigGenerator(CloudConfigGenerator):
  iaas = IAAS.GCP

  def az_properties(self, zone: str) -> Dict[str, Any]:
    return {"zone": zone}

  def machine_properties(self, machine_type: str) -> Dict[str, Any]:
    return {"machine_type": machine_type, "root_disk_size_gb": 10, "root_disk_type": "pd-ssd"}

  def disk_properties(self) -> Dict[str, Any]:
    return {"type": "pd-ssd"}

  def ephemeral_disk_properties(self, size_gb: int) -> Dict[str, Any]:
    return {"root_disk_size_gb": size_gb, "root_disk_type": "pd-ssd"}

  def subnets(self, config_input: CloudConfigInput) -> List[Dict[str, Any]]:
    outputs = config_input.outputs
    properties = {
      "ephemeral_external_ip": True,
      "network_name": outputs["network_name"],
      "subnetwork_name": outputs["subnetwork_name"],
      "tags": [outputs["internal_tag_name"]],
    }
    # One /20 per zone, carved out of the 10.0.0.0/16 subnetwork.
    return [
      _subnet(f"10.0.{16 * (index + 1)}.0/20", [_az_name(index)], properties)
      for index in range(len(config_input.azs))
    ]

  def lb_extensions(self, config_input: CloudConfigInput) -> List[Dict[str, Any]]:
    outputs = config_input.outputs
    if config_input.lb_type == "concourse":
      return [{"name": "lb", "cloud_properties": {"target_pool": outputs["concourse_target_pool"]}}]
    if config_input.lb_type == "cf":
      return [
        {
          "name": "cf-router-network-properties",
          "cloud_properties": {
            "backend_service": outputs["router_backend_service"],
            "target_pool": outputs["ws_target_pool"],
            "tags": [outputs["router_backend_service"]],
          },
        },
        {"name": "diego-ssh-proxy-network-properties", "cloud_properties": {"target_pool": outputs["ssh_proxy_target_pool"]}},
        {"name": "cf-tcp-router-network-properties", "cloud_properties": {"target_pool": outputs["tcp_router_target_pool"]}},
      ]
    return []


class AWSCloudConfigGenerator(CloudConfigGenerator):
  iaas = IAAS.AWS

  def az_properties(self, zone: str) -> Dict[str, Any]:
    return {"availability_zone": zone}

  def machine_properties(self, machine_type: str) -> Dict[str, Any]:
    return {"instance_type": machine_type, "ephemeral_disk": {"size": 10240, "type": "gp2"}}

  def disk_properties(self) -> Dict[str, Any]:
    return {"type": "gp2"}

  def ephemeral_disk_properties(self, size_gb: int) -> Dict[str, Any]:
    return {"ephemeral_disk": {"size": size_gb * 1024, "type": "gp2"}}

  def subnets(self, config_input: CloudConfigInput) -> List[Dict[str, Any]]:
    outputs = config_input.outputs
    ids = outputs["internal_subnet_ids"]
    cidrs = outputs["internal_subnet_cidrs"]
    if len(ids) < len(config_input.azs) or len(cidrs) < len(config_input.azs):
      raise ValidationError("Terraform reported fewer internal subnets than availability zones.")
    return [
      _subnet(
        cidrs[index],
        [_az_name(index)],
        {"subnet": ids[index], "security_groups": [outputs["internal_security_group"]]},
      )
      for index in range(len(config_input.azs))
    ]

  def lb_extensions(self, config_input: CloudConfigInput) -> List[Dict[str, Any]]:
    outputs = config_input.outputs
    internal = outputs["internal_security_group"]
    if config_input.lb_type == "concourse":
      return [{
        "name": "lb",
        "cloud_properties": {
          "elbs": [outputs["concourse_lb_name"]],
          "security_groups": [outputs["concourse_lb_internal_security_group"], internal],
        },
      }]
    if config_input.lb_type == "cf":
      return [
        {
          "name": "cf-router-network-properties",
          "cloud_properties": {
            "elbs": [outputs["cf_router_lb_name"]],
            "security_groups": [outputs["cf_router_lb_internal_security_group"], internal],
          },
        },
        {
          "name": "diego-ssh-proxy-network-properties",
          "cloud_properties": {
            "elbs": [outputs["cf_ssh_lb_name"]],
            "security_groups": [outputs["cf_ssh_lb_internal_security_group"], internal],
          },
        },
      ]
    return []


class AzureCloudConfigGenerator(CloudConfigGenerator):
  iaas = IAAS.AZURE

  def az_properties(self, zone: str) -> Dict[str, Any]:
    return {"availability_zone": zone}

  def machine_properties(self, machine_type: str) -> Dict[str, Any]:
    return {"instance_type": machine_type, "root_disk": {"size": 10240}}

  def disk_properties(self) -> Dict[str, Any]:
    return {"storage_account_type": "Premium_LRS"}

  def ephemeral_disk_properties(self, size_gb: int) -> Dict[str, Any]:
    return {"ephemeral_disk": {"size": size_gb * 1024}}

  def subnets(self, config_input: CloudConfigInput) -> List[Dict[str, Any]]:
    outputs = config_input.outputs
    # Workloads share the director's subnet; keep the low addresses for bbl.
    return [
      _subnet(
        BOSH_SUBNET_CIDR,
        [_az_name(index) for index in range(len(config_input.azs))],
        {
          "virtual_network_name": outputs["bosh_network_name"],
          "subnet_name": outputs["bosh_subnet_name"],
          "security_group": outputs["bosh_default_security_group"],
        },
        reserved_hosts=10,
      )
    ]


def default_generators() -> Dict[IAAS, CloudConfigGenerator]:
  return {
    IAAS.GCP: GCPCloudConfigGenerator(),
    IAAS.AWS: AWSCloudConfigGenerator(),
    IAAS.AZURE: AzureCloudConfigGenerator(),
  }


def _region(state: State) -> str:
  if state.iaas == IAAS.AWS.value:
    return state.aws.region
  if state.iaas == IAAS.GCP.value:
    return state.gcp.region
  return state.azure.region


class CloudConfigManager:
  def __init__(
    self,
    terraform_manager,
    client_provider,
    logger,
    generators: Optional[Dict[IAAS, CloudConfigGenerator]] = None,
  ) -> None:
    self._terraform = terraform_manager
    self._clients = client_provider
    self._logger = logger
    self._generators = generators or default_generators()

  def generate(self, state: State) -> str:
    iaas = IAAS(state.iaas)
    config_input = CloudConfigInput(
      azs=availability_zones(iaas.value, _region(state)),
      outputs=self._terraform.outputs(state),
      lb_type=state.lb.type,
    )
    document = self._generators[iaas].generate(config_input)
    return yaml.safe_dump(document, default_flow_style=False, sort_keys=False)

  def update(self, state: State) -> None:
    self._logger.step("generating cloud config")
    manifest = self.generate(state)
    self._logger.step("applying cloud config")
    self._clients.client(state).update_cloud_config(manifest.encode("utf-8"))
