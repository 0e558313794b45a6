"""Legacy CloudFormation stacks and their one-shot migration to terraform.

An environment created before terraform support carries a `stack` entry in
its state. The first `up` against it imports every stack resource into a
fresh terraform state and only commits when a follow-up plan is empty.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from botocore.exceptions import ClientError

from bootloader.aws import aws_errors, error_code
from bootloader.errors import ExternalToolError, MigrationAbortedError
from bootloader.state import IAAS, LB, InfraState, State

# CloudFormation logical id -> terraform address in the AWS template.
RESOURCE_ADDRESSES: Dict[str, str] = {
  "VPC": "aws_vpc.vpc",
  "VPCGatewayInternetGateway": "aws_internet_gateway.ig",
  "BOSHSubnet": "aws_subnet.bosh_subnet",
  "BOSHRouteTable": "aws_route_table.bosh_route_table",
  "BOSHEIP": "aws_eip.bosh_eip",
  "NATSecurityGroup": "aws_security_group.nat_security_group",
  "NATInstance": "aws_instance.nat",
  "NATEIP": "aws_eip.nat_eip",
  "BOSHSecurityGroup": "aws_security_group.bosh_security_group",
  "InternalSecurityGroup": "aws_security_group.internal_security_group",
  "InternalRouteTable": "aws_route_table.internal_route_table",
  "ConcourseSecurityGroup": "aws_security_group.concourse_lb_security_group",
  "ConcourseInternalSecurityGroup": "aws_security_group.concourse_lb_internal_security_group",
  "ConcourseLoadBalancer": "aws_elb.concourse_lb",
  "CFRouterSecurityGroup": "aws_security_group.cf_router_lb_security_group",
  "CFRouterInternalSecurityGroup": "aws_security_group.cf_router_lb_internal_security_group",
  "CFRouterLoadBalancer": "aws_elb.cf_router_lb",
  "CFSSHProxySecurityGroup": "aws_security_group.cf_ssh_lb_security_group",
  "CFSSHProxyInternalSecurityGroup": "aws_security_group.cf_ssh_lb_internal_security_group",
  "CFSSHProxyLoadBalancer": "aws_elb.cf_ssh_lb",
}

INTERNAL_SUBNET = re.compile(r"^InternalSubnet(\d+)$")
INTERNAL_SUBNET_ASSOCIATION = re.compile(r"^InternalSubnet(\d+)RouteTableAssociation$")

# Expressed inline on their parent resource in the terraform template.
INLINE_TYPES = frozenset({
  "AWS::EC2::VPCGatewayAttachment",
  "AWS::EC2::Route",
  "AWS::EC2::SecurityGroupIngress",
  "AWS::EC2::SecurityGroupEgress",
})

EIP_TYPE = "AWS::EC2::EIP"
LB_CERTIFICATE_ADDRESS = "aws_iam_server_certificate.lb_cert"


@dataclass
class StackResource:
  logical_id: str
  physical_id: str
  resource_type: str


@dataclass
class StackDescription:
  name: str
  status: str = ""
  outputs: Dict[str, str] = field(default_factory=dict)
  resources: Dict[str, StackResource] = field(default_factory=dict)


def _stack_missing(exc: ClientError) -> bool:
  # CloudFormation reports an unknown stack as a generic ValidationError.
  return error_code(exc) == "ValidationError" and "does not exist" in exc.response["Error"].get("Message", "")


class StackManager:
  def __init__(self, client_factory: Callable[[State, str], object], logger) -> None:
    self._client_factory = client_factory
    self._logger = logger

  def describe(self, state: State, name: str) -> StackDescription:
    client = self._client_factory(state, "cloudformation")
    with aws_errors(f"describe stack {name}"):
      try:
        stacks = client.describe_stacks(StackName=name).get("Stacks") or []
      except ClientError as exc:
        if not _stack_missing(exc):
          raise
        stacks = []
      if not stacks:
        raise MigrationAbortedError(f"Stack '{name}' was not found.")
      stack = stacks[0]
      resources: Dict[str, StackResource] = {}
      for item in client.describe_stack_resources(StackName=name).get("StackResources") or []:
        resources[item["LogicalResourceId"]] = StackResource(
          logical_id=item["LogicalResourceId"],
          physical_id=item.get("PhysicalResourceId", ""),
          resource_type=item.get("ResourceType", ""),
        )
    outputs = {
      item["OutputKey"]: item.get("OutputValue", "")
      for item in stack.get("Outputs") or []
    }
    return StackDescription(name=name, status=stack.get("StackStatus", ""), outputs=outputs, resources=resources)

  def delete(self, state: State, name: str) -> None:
    self._logger.step(f"deleting stack {name}")
    client = self._client_factory(state, "cloudformation")
    with aws_errors(f"delete stack {name}"):
      try:
        client.delete_stack(StackName=name)
      except ClientError as exc:
        if not _stack_missing(exc):
          raise
        return
      client.get_waiter("stack_delete_complete").wait(StackName=name)

  def eip_allocation_id(self, state: State, public_ip: str) -> str:
    client = self._client_factory(state, "ec2")
    with aws_errors(f"look up elastic IP {public_ip}"):
      addresses = client.describe_addresses(PublicIps=[public_ip]).get("Addresses") or []
    if not addresses or not addresses[0].get("AllocationId"):
      raise MigrationAbortedError(f"No VPC allocation was found for elastic IP {public_ip}.")
    return addresses[0]["AllocationId"]

  def certificate(self, state: State, name: str) -> Tuple[str, str]:
    client = self._client_factory(state, "iam")
    with aws_errors(f"read server certificate {name}"):
      certificate = client.get_server_certificate(ServerCertificateName=name)["ServerCertificate"]
    return certificate.get("CertificateBody", ""), certificate.get("CertificateChain", "")


class Migrator:
  def __init__(self, stack_manager: StackManager, terraform_manager, logger) -> None:
    self._stacks = stack_manager
    self._terraform = terraform_manager
    self._logger = logger

  def migrate(self, state: State) -> State:
    if state.stack is None:
      return state
    name = state.stack.name
    if state.iaas != IAAS.AWS.value:
      raise MigrationAbortedError(f"Stack '{name}' can only be migrated on aws, not {state.iaas}.")

    self._logger.step(f"migrating stack {name} to terraform")
    description = self._stacks.describe(state, name)
    candidate = state.copy()
    candidate.stack = None
    # Resources now belong to terraform; destroy removes the stack record.
    candidate.migrated_stack = name
    candidate.infra = InfraState()
    candidate.lb = self._load_balancer(state)
    bindings = self.bindings(state, description)

    try:
      blob = self._terraform.import_resources(candidate, bindings)
      changes = self._terraform.planned_changes(candidate, blob)
    except ExternalToolError as exc:
      # Imports only record existing resources; nothing to checkpoint.
      exc.partial = None
      raise

    if changes:
      raise MigrationAbortedError(
        f"Migration of stack '{name}' aborted: terraform plans {changes} change(s) against the imported "
        "resources. The stack is still in place; investigate the drift and run bbl up again."
      )

    candidate.infra = self._terraform.infra_state_for(candidate, blob)
    self._logger.step(f"migrated stack {name}")
    return candidate

  def bindings(self, state: State, description: StackDescription) -> List[Tuple[str, str]]:
    resources = description.resources
    bindings: List[Tuple[str, str]] = []
    unmapped: List[str] = []
    for logical_id in sorted(resources):
      resource = resources[logical_id]
      if resource.resource_type in INLINE_TYPES:
        continue
      address = self._address(logical_id)
      if address is None:
        unmapped.append(f"{logical_id} ({resource.resource_type})")
        continue
      bindings.append((address, self._import_id(state, resource, resources)))

    if unmapped:
      raise MigrationAbortedError(
        f"Stack '{description.name}' contains resources bbl cannot map to terraform: {', '.join(unmapped)}."
      )
    if state.stack is not None and state.stack.certificate_name:
      bindings.append((LB_CERTIFICATE_ADDRESS, state.stack.certificate_name))
    return bindings

  def _address(self, logical_id: str) -> Optional[str]:
    if logical_id in RESOURCE_ADDRESSES:
      return RESOURCE_ADDRESSES[logical_id]
    if logical_id == "BOSHSubnetRouteTableAssociation":
      return "aws_route_table_association.bosh_subnet_route_table_association"
    match = INTERNAL_SUBNET.match(logical_id)
    if match:
      return f"aws_subnet.internal_subnets[{int(match.group(1)) - 1}]"
    match = INTERNAL_SUBNET_ASSOCIATION.match(logical_id)
    if match:
      return f"aws_route_table_association.internal_subnet_route_table_associations[{int(match.group(1)) - 1}]"
    return None

  def _import_id(self, state: State, resource: StackResource, resources: Dict[str, StackResource]) -> str:
    if resource.resource_type == EIP_TYPE:
      return self._stacks.eip_allocation_id(state, resource.physical_id)
    if resource.logical_id == "BOSHSubnetRouteTableAssociation":
      return _association_id(resources, "BOSHSubnet", "BOSHRouteTable")
    match = INTERNAL_SUBNET_ASSOCIATION.match(resource.logical_id)
    if match:
      return _association_id(resources, f"InternalSubnet{match.group(1)}", "InternalRouteTable")
    return resource.physical_id

  def _load_balancer(self, state: State) -> LB:
    stack = state.stack
    if stack is None or not stack.lb_type:
      return LB()
    lb = LB(type=stack.lb_type, cert=state.lb.cert, key=state.lb.key, chain=state.lb.chain, domain=state.lb.domain)
    if not lb.key:
      raise MigrationAbortedError(
        f"Stack '{stack.name}' has a {stack.lb_type} load balancer but its certificate private key is not in "
        "the state file, so the listener certificate cannot be carried over."
      )
    if not lb.cert and stack.certificate_name:
      lb.cert, lb.chain = self._stacks.certificate(state, stack.certificate_name)
    return lb


def _association_id(resources: Dict[str, StackResource], subnet: str, route_table: str) -> str:
  try:
    return f"{resources[subnet].physical_id}/{resources[route_table].physical_id}"
  except KeyError as exc:
    raise MigrationAbortedError(f"Stack resource {exc.args[0]} is missing; cannot import its route table association.") from None
