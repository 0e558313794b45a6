from __future__ import annotations

from typing import Dict, List, Tuple

BASE_OUTPUTS: Dict[str, Tuple[str, ...]] = {
  "gcp": (
    "external_ip",
    "network_name",
    "subnetwork_name",
    "bosh_open_tag_name",
    "internal_tag_name",
    "director_address",
  ),
  "aws": (
    "external_ip",
    "director_address",
    "vpc_id",
    "bosh_subnet_id",
    "bosh_subnet_availability_zone",
    "bosh_security_group",
    "internal_security_group",
    "internal_subnet_ids",
    "internal_subnet_cidrs",
  ),
  "azure": (
    "external_ip",
    "director_address",
    "bosh_network_name",
    "bosh_subnet_name",
    "bosh_resource_group_name",
    "bosh_storage_account_name",
    "bosh_default_security_group",
  ),
}

LB_OUTPUTS: Dict[Tuple[str, str], Tuple[str, ...]] = {
  ("gcp", "concourse"): ("concourse_target_pool", "concourse_lb_ip"),
  ("gcp", "cf"): (
    "router_backend_service",
    "router_lb_ip",
    "ssh_proxy_target_pool",
    "ssh_proxy_lb_ip",
    "tcp_router_target_pool",
    "tcp_router_lb_ip",
    "ws_target_pool",
    "ws_lb_ip",
  ),
  ("aws", "concourse"): (
    "concourse_lb_name",
    "concourse_lb_url",
    "concourse_lb_internal_security_group",
  ),
  ("aws", "cf"): (
    "cf_router_lb_name",
    "cf_router_lb_url",
    "cf_router_lb_internal_security_group",
    "cf_ssh_lb_name",
    "cf_ssh_lb_url",
    "cf_ssh_lb_internal_security_group",
  ),
}

JUMPBOX_OUTPUTS = ("jumpbox_url",)


def expected_outputs(iaas: str, lb_type: str = "", jumpbox: bool = False) -> List[str]:
  names = list(BASE_OUTPUTS.get(iaas, ()))
  if lb_type:
    names.extend(LB_OUTPUTS.get((iaas, lb_type), ()))
  if jumpbox:
    names.extend(JUMPBOX_OUTPUTS)
  return names


def lb_types(iaas: str) -> List[str]:
  return sorted(lb_type for provider, lb_type in LB_OUTPUTS if provider == iaas)
