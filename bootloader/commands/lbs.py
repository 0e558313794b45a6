from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

from bootloader.commands.base import Command, require_migrated, run_step, update_cloud_config
from bootloader.errors import PreconditionError, ValidationError
from bootloader.state import IAAS, LB, State
from bootloader.terraform.outputs import lb_types

CERTIFICATE_MARKER = "-----BEGIN CERTIFICATE-----"
PRIVATE_KEY_MARKER = "PRIVATE KEY-----"


def _needs_certificate(iaas: str, lb_type: str) -> bool:
  # GCP concourse is a plain TCP target pool.
  return not (iaas == IAAS.GCP.value and lb_type == "concourse")


def _read_pem(path: Optional[str], label: str, marker: str) -> str:
  if not path:
    return ""
  target = Path(path).expanduser()
  if not target.is_file():
    raise ValidationError(f"{label} file '{path}' was not found.")
  contents = target.read_text(encoding="utf-8")
  if marker not in contents:
    raise ValidationError(f"{label} file '{path}' is not PEM encoded.")
  return contents


def load_balancer_from_flags(flags: Mapping[str, Any], lb_type: str, iaas: str) -> LB:
  lb = LB(
    type=lb_type,
    cert=_read_pem(flags.get("cert"), "Certificate", CERTIFICATE_MARKER),
    key=_read_pem(flags.get("key"), "Private key", PRIVATE_KEY_MARKER),
    chain=_read_pem(flags.get("chain"), "Certificate chain", CERTIFICATE_MARKER),
    domain=flags.get("domain") or "",
  )
  if _needs_certificate(iaas, lb_type):
    missing = [flag for flag, value in (("--cert", lb.cert), ("--key", lb.key)) if not value]
    if missing:
      raise ValidationError(f"{lb_type} load balancers require {' and '.join(missing)}.")
  return lb


def _validate_type(state: State, lb_type: str) -> None:
  supported = lb_types(state.iaas)
  if not supported:
    raise ValidationError(f"{state.iaas} does not support load balancers.")
  if lb_type not in supported:
    raise ValidationError(f"--type must be one of: {', '.join(supported)}.")


class _LBCommand(Command):
  def __init__(self, store, terraform, cloud_config, logger) -> None:
    self._store = store
    self._terraform = terraform
    self._cloud_config = cloud_config
    self._logger = logger

  def check_fast_fails(self, flags: Mapping[str, Any], state: State) -> None:
    # A legacy stack still owns the network until up migrates it.
    require_migrated(state)

  def _converge(self, state: State, lb: LB) -> None:
    # The new lb is only committed once terraform has applied it.
    candidate = state.copy()
    candidate.lb = lb
    run_step(self._store, state, "infra", lambda: self._terraform.apply(candidate))
    state.lb = lb
    self._store.save(state)
    if not state.no_director:
      update_cloud_config(self._store, self._cloud_config, state)


class CreateLBs(_LBCommand):
  def check_fast_fails(self, flags: Mapping[str, Any], state: State) -> None:
    super().check_fast_fails(flags, state)
    lb_type = flags.get("type") or ""
    _validate_type(state, lb_type)
    if not state.lb.is_empty() and state.lb.type != lb_type and not flags.get("skip_if_exists"):
      raise ValidationError(
        f"bbl already has a {state.lb.type} load balancer attached, please remove the previous load balancer "
        "before attaching a new one."
      )
    if not (flags.get("skip_if_exists") and not state.lb.is_empty()):
      load_balancer_from_flags(flags, lb_type, state.iaas)

  def execute(self, flags: Mapping[str, Any], state: State) -> None:
    if flags.get("skip_if_exists") and not state.lb.is_empty():
      self._logger.println(f"lb type \"{state.lb.type}\" exists, skipping...")
      return
    lb = load_balancer_from_flags(flags, flags["type"], state.iaas)
    self._logger.step(f"creating {lb.type} load balancer")
    self._converge(state, lb)


class UpdateLBs(_LBCommand):
  def check_fast_fails(self, flags: Mapping[str, Any], state: State) -> None:
    super().check_fast_fails(flags, state)
    if state.lb.is_empty():
      raise PreconditionError("No load balancer has been found for this bbl environment.")
    load_balancer_from_flags(flags, state.lb.type, state.iaas)

  def execute(self, flags: Mapping[str, Any], state: State) -> None:
    lb = load_balancer_from_flags(flags, state.lb.type, state.iaas)
    if not lb.domain:
      lb.domain = state.lb.domain
    if lb == state.lb:
      self._logger.println("no updates are to be performed")
      return
    self._logger.step(f"updating {lb.type} load balancer")
    self._converge(state, lb)


class DeleteLBs(_LBCommand):
  def execute(self, flags: Mapping[str, Any], state: State) -> None:
    if state.lb.is_empty():
      self._logger.println("no load balancers found, skipping...")
      return
    self._logger.step(f"deleting {state.lb.type} load balancer")
    self._converge(state, LB())


LB_DESCRIPTIONS: Dict[Tuple[IAAS, str], List[Tuple[str, str, str]]] = {
  (IAAS.GCP, "concourse"): [("Concourse LB", "concourse_target_pool", "concourse_lb_ip")],
  (IAAS.GCP, "cf"): [
    ("CF Router LB", "router_backend_service", "router_lb_ip"),
    ("CF SSH Proxy LB", "ssh_proxy_target_pool", "ssh_proxy_lb_ip"),
    ("CF TCP Router LB", "tcp_router_target_pool", "tcp_router_lb_ip"),
    ("CF WebSocket LB", "ws_target_pool", "ws_lb_ip"),
  ],
  (IAAS.AWS, "concourse"): [("Concourse LB", "concourse_lb_name", "concourse_lb_url")],
  (IAAS.AWS, "cf"): [
    ("CF Router LB", "cf_router_lb_name", "cf_router_lb_url"),
    ("CF SSH Proxy LB", "cf_ssh_lb_name", "cf_ssh_lb_url"),
  ],
}


class LBs(Command):
  mutates_state = False

  def __init__(self, terraform, logger) -> None:
    self._terraform = terraform
    self._logger = logger

  def check_fast_fails(self, flags: Mapping[str, Any], state: State) -> None:
    if state.lb.is_empty():
      raise PreconditionError("no lbs found")

  def execute(self, flags: Mapping[str, Any], state: State) -> None:
    outputs = self._terraform.outputs(state)
    for label, name_key, address_key in LB_DESCRIPTIONS[(IAAS(state.iaas), state.lb.type)]:
      self._logger.println(f"{label}: {outputs.get(name_key, '')} ({outputs.get(address_key, '')})")
