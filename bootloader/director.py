"""Deploying the BOSH director (and optional jumpbox) with `bosh create-env`.

The manager is stateless between calls: everything needed to reconcile a
previous deployment (create-env state, vars store, generated credentials)
comes in through State and goes back out through the returned Director.
"""
from __future__ import annotations

import hashlib
import json
import os
import secrets
import shutil
import string
import tempfile
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from bootloader.errors import ExternalToolError, ValidationError
from bootloader.state import IAAS, Director, Jumpbox, State
from bootloader.terraform.templates import (
  BOSH_SUBNET_CIDR,
  BOSH_SUBNET_GATEWAY,
  DIRECTOR_INTERNAL_IP,
  JUMPBOX_INTERNAL_IP,
)

DIRECTOR_USERNAME = "admin"
PRIVATE_KEY_FILE = "bosh.pem"
JUMPBOX_KEY_FILE = "jumpbox.pem"
CREDENTIALS_FILE = "credentials.json"

EXTERNAL_IP_OPS_FILES = {
  IAAS.AWS: "external-ip-with-registry-not-recommended.yml",
  IAAS.GCP: "external-ip-not-recommended.yml",
  IAAS.AZURE: "external-ip-not-recommended.yml",
}


class StringGenerator:
  alphabet = string.ascii_lowercase + string.digits

  def generate(self, prefix: str, length: int) -> str:
    return prefix + "".join(secrets.choice(self.alphabet) for _ in range(length))


@dataclass
class DeployInput:
  deployment: str
  manifest: str
  ops_files: List[str]
  variables: Dict[str, Any]
  files: Dict[str, str] = field(default_factory=dict)
  state: Dict[str, Any] = field(default_factory=dict)
  credentials: Dict[str, Any] = field(default_factory=dict)
  proxy: str = ""

  def fingerprint(self) -> str:
    payload = json.dumps(
      {
        "deployment": self.deployment,
        "manifest": self.manifest,
        "ops_files": self.ops_files,
        "variables": self.variables,
        "files": self.files,
      },
      sort_keys=True,
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


@dataclass
class DeployOutput:
  manifest: str = ""
  state: Dict[str, Any] = field(default_factory=dict)
  credentials: Dict[str, Any] = field(default_factory=dict)


class BoshExecutor:
  def __init__(self, runner, deployment_dirs: Dict[str, Optional[Path]]) -> None:
    self._runner = runner
    self._deployment_dirs = deployment_dirs

  def validate(self, deployment: str) -> None:
    directory = self._deployment_dirs.get(deployment)
    if directory is None or not Path(directory).is_dir():
      raise ValidationError(
        f"The {deployment}-deployment directory was not found ({directory or 'not set'}). "
        f"Set --{deployment}-deployment-dir or BBL_{deployment.upper()}_DEPLOYMENT_DIR."
      )
    self._runner.resolve()

  def create_env(self, deploy_input: DeployInput) -> DeployOutput:
    return self._run_env("create-env", deploy_input)

  def delete_env(self, deploy_input: DeployInput) -> DeployOutput:
    return self._run_env("delete-env", deploy_input)

  def interpolate(self, deploy_input: DeployInput) -> DeployOutput:
    workdir = self._workspace(deploy_input)
    try:
      manifest = self._interpolate(workdir, deploy_input)
      return DeployOutput(manifest=manifest, state=deploy_input.state, credentials=_read_yaml(workdir / "vars-store.yml"))
    finally:
      shutil.rmtree(workdir, ignore_errors=True)

  def _run_env(self, command: str, deploy_input: DeployInput) -> DeployOutput:
    workdir = self._workspace(deploy_input)
    try:
      manifest = self._interpolate(workdir, deploy_input)
      (workdir / "manifest.yml").write_text(manifest, encoding="utf-8")
      env = None
      if deploy_input.proxy:
        env = dict(os.environ, BOSH_ALL_PROXY=deploy_input.proxy.format(workdir=workdir))
      result = self._runner.run(
        [
          command, "manifest.yml",
          "--state", "state.json",
          "--vars-store", "vars-store.yml",
          "--vars-file", "vars.yml",
        ],
        cwd=workdir,
        env=env,
      )
      output = DeployOutput(
        manifest=manifest,
        state=_read_json(workdir / "state.json"),
        credentials=_read_yaml(workdir / "vars-store.yml"),
      )
      if result.returncode != 0:
        raise ExternalToolError(
          f"bosh {command} for {deploy_input.deployment} failed.",
          tool="bosh",
          output=result.output,
          partial=output,
        )
      return output
    finally:
      shutil.rmtree(workdir, ignore_errors=True)

  def _interpolate(self, workdir: Path, deploy_input: DeployInput) -> str:
    base = Path(self._deployment_dirs[deploy_input.deployment])
    args = ["interpolate", str(base / deploy_input.manifest)]
    for ops_file in deploy_input.ops_files:
      args.extend(["-o", str(base / ops_file)])
    args.extend(["--vars-store", "vars-store.yml", "--vars-file", "vars.yml"])
    result = self._runner.run(args, cwd=workdir)
    if result.returncode != 0:
      raise ExternalToolError(
        f"bosh interpolate for {deploy_input.deployment} failed.",
        tool="bosh",
        output=result.output,
        partial=DeployOutput(state=deploy_input.state, credentials=deploy_input.credentials),
      )
    return result.stdout

  def _workspace(self, deploy_input: DeployInput) -> Path:
    workdir = Path(tempfile.mkdtemp(prefix=f"bbl-{deploy_input.deployment}-"))
    (workdir / "vars.yml").write_text(yaml.safe_dump(deploy_input.variables, default_flow_style=False), encoding="utf-8")
    if deploy_input.credentials:
      (workdir / "vars-store.yml").write_text(yaml.safe_dump(deploy_input.credentials, default_flow_style=False), encoding="utf-8")
    if deploy_input.state:
      (workdir / "state.json").write_text(json.dumps(deploy_input.state), encoding="utf-8")
    for name, contents in deploy_input.files.items():
      path = workdir / name
      path.write_text(contents, encoding="utf-8")
      path.chmod(0o600)
    return workdir


def _read_json(path: Path) -> Dict[str, Any]:
  if not path.is_file():
    return {}
  return json.loads(path.read_text(encoding="utf-8") or "{}")


def _read_yaml(path: Path) -> Dict[str, Any]:
  if not path.is_file():
    return {}
  return yaml.safe_load(path.read_text(encoding="utf-8")) or {}


def iaas_variables(state: State, outputs: Dict[str, Any]) -> Dict[str, Any]:
  iaas = IAAS(state.iaas)
  if iaas is IAAS.GCP:
    return {
      "zone": state.gcp.zone,
      "network": outputs["network_name"],
      "subnetwork": outputs["subnetwork_name"],
      "tags": [outputs["bosh_open_tag_name"], outputs["internal_tag_name"]],
      "project_id": state.gcp.project_id,
      "gcp_credentials_json": state.gcp.service_account_key,
    }
  if iaas is IAAS.AWS:
    return {
      "access_key_id": state.aws.access_key_id,
      "secret_access_key": state.aws.secret_access_key,
      "region": state.aws.region,
      "az": outputs["bosh_subnet_availability_zone"],
      "default_key_name": state.key_pair.name,
      "default_security_groups": [outputs["bosh_security_group"]],
      "private_key": PRIVATE_KEY_FILE,
      "subnet_id": outputs["bosh_subnet_id"],
    }
  return {
    "vnet_name": outputs["bosh_network_name"],
    "subnet_name": outputs["bosh_subnet_name"],
    "subscription_id": state.azure.subscription_id,
    "tenant_id": state.azure.tenant_id,
    "client_id": state.azure.client_id,
    "client_secret": state.azure.client_secret,
    "resource_group_name": outputs["bosh_resource_group_name"],
    "storage_account_name": outputs["bosh_storage_account_name"],
    "default_security_group": outputs["bosh_default_security_group"],
  }


def _host(url: str) -> str:
  return url.rsplit(":", 1)[0] if ":" in url else url


class DirectorManager:
  def __init__(self, executor: BoshExecutor, string_generator: StringGenerator, logger) -> None:
    self._executor = executor
    self._strings = string_generator
    self._logger = logger

  def validate(self, state: State) -> None:
    self._executor.validate("bosh")
    if state.jumpbox.enabled:
      self._executor.validate("jumpbox")

  def build_input(self, state: State, outputs: Dict[str, Any]) -> DeployInput:
    iaas = IAAS(state.iaas)
    password = state.director.password or self._strings.generate("p-", 31)
    variables: Dict[str, Any] = {
      "director_name": f"bosh-{state.env_id}",
      "admin_password": password,
      "internal_cidr": BOSH_SUBNET_CIDR,
      "internal_gw": BOSH_SUBNET_GATEWAY,
      "internal_ip": DIRECTOR_INTERNAL_IP,
    }
    variables.update(iaas_variables(state, outputs))
    ops_files = [f"{iaas.value}/cpi.yml"]
    if not state.jumpbox.enabled:
      ops_files.append(EXTERNAL_IP_OPS_FILES[iaas])
      variables["external_ip"] = outputs["external_ip"]
    files = self._files(state)
    proxy = self._proxy(state)
    if proxy:
      files[JUMPBOX_KEY_FILE] = jumpbox_private_key(state)
    return DeployInput(
      deployment="bosh",
      manifest="bosh.yml",
      ops_files=ops_files,
      variables=variables,
      files=files,
      state=dict(state.director.state),
      credentials=dict(state.director.credentials),
      proxy=proxy,
    )

  def build_jumpbox_input(self, state: State, outputs: Dict[str, Any]) -> DeployInput:
    iaas = IAAS(state.iaas)
    variables: Dict[str, Any] = {
      "internal_cidr": BOSH_SUBNET_CIDR,
      "internal_gw": BOSH_SUBNET_GATEWAY,
      "internal_ip": JUMPBOX_INTERNAL_IP,
      "external_ip": _host(outputs["jumpbox_url"]),
    }
    variables.update(iaas_variables(state, outputs))
    return DeployInput(
      deployment="jumpbox",
      manifest="jumpbox.yml",
      ops_files=[f"{iaas.value}/cpi.yml"],
      variables=variables,
      files=self._files(state),
      state=dict(state.jumpbox.state),
      credentials=dict(state.jumpbox.variables),
    )

  def deploy(self, state: State, outputs: Dict[str, Any]) -> Director:
    deploy_input = self.build_input(state, outputs)
    fingerprint = deploy_input.fingerprint()
    if state.director.state and state.director.fingerprint == fingerprint:
      self._logger.step("bosh director is up to date")
      return state.director

    self._logger.step("deploying bosh director")
    try:
      output = self._executor.create_env(deploy_input)
    except ExternalToolError as exc:
      exc.partial = self._director(state, deploy_input, outputs, exc.partial or DeployOutput(), "")
      raise
    self._logger.step("deployed bosh director")
    return self._director(state, deploy_input, outputs, output, fingerprint)

  def deploy_jumpbox(self, state: State, outputs: Dict[str, Any]) -> Jumpbox:
    deploy_input = self.build_jumpbox_input(state, outputs)
    fingerprint = deploy_input.fingerprint()
    if state.jumpbox.state and state.jumpbox.fingerprint == fingerprint:
      self._logger.step("jumpbox is up to date")
      return state.jumpbox

    self._logger.step("deploying jumpbox")
    try:
      output = self._executor.create_env(deploy_input)
    except ExternalToolError as exc:
      exc.partial = self._jumpbox(outputs, exc.partial or DeployOutput(), "")
      raise
    return self._jumpbox(outputs, output, fingerprint)

  def delete(self, state: State, outputs: Dict[str, Any]) -> Director:
    if state.director.is_empty():
      return Director()
    self._logger.step("destroying bosh director")
    deploy_input = self.build_input(state, outputs)
    try:
      self._executor.delete_env(deploy_input)
    except ExternalToolError as exc:
      director = replace(state.director)
      if isinstance(exc.partial, DeployOutput) and exc.partial.state:
        director.state = exc.partial.state
      exc.partial = director
      raise
    return Director()

  def delete_jumpbox(self, state: State, outputs: Dict[str, Any]) -> Jumpbox:
    if not state.jumpbox.is_deployed():
      return Jumpbox()
    self._logger.step("destroying jumpbox")
    deploy_input = self.build_jumpbox_input(state, outputs)
    try:
      self._executor.delete_env(deploy_input)
    except ExternalToolError as exc:
      jumpbox = replace(state.jumpbox)
      if isinstance(exc.partial, DeployOutput) and exc.partial.state:
        jumpbox.state = exc.partial.state
      exc.partial = jumpbox
      raise
    return Jumpbox()

  def deployment_vars(self, state: State, outputs: Dict[str, Any]) -> str:
    variables = dict(self.build_input(state, outputs).variables)
    variables["admin_password"] = state.director.password or variables["admin_password"]
    return yaml.safe_dump(variables, default_flow_style=False)

  def _director(
    self,
    state: State,
    deploy_input: DeployInput,
    outputs: Dict[str, Any],
    output: DeployOutput,
    fingerprint: str,
  ) -> Director:
    previous = state.director
    ssl = (output.credentials or {}).get("director_ssl") or {}
    return Director(
      name=previous.name or deploy_input.variables["director_name"],
      address=outputs.get("director_address", previous.address),
      username=previous.username or DIRECTOR_USERNAME,
      password=previous.password or deploy_input.variables["admin_password"],
      ssl_ca=previous.ssl_ca or ssl.get("ca", ""),
      ssl_certificate=previous.ssl_certificate or ssl.get("certificate", ""),
      ssl_private_key=previous.ssl_private_key or ssl.get("private_key", ""),
      manifest=output.manifest or previous.manifest,
      state=output.state or previous.state,
      credentials=output.credentials or previous.credentials,
      fingerprint=fingerprint,
    )

  def _jumpbox(self, outputs: Dict[str, Any], output: DeployOutput, fingerprint: str) -> Jumpbox:
    return Jumpbox(
      enabled=True,
      url=outputs.get("jumpbox_url", ""),
      manifest=output.manifest,
      state=output.state,
      variables=output.credentials,
      fingerprint=fingerprint,
    )

  def _files(self, state: State) -> Dict[str, str]:
    files: Dict[str, str] = {}
    if state.iaas == IAAS.AWS.value and state.key_pair.private_key:
      files[PRIVATE_KEY_FILE] = state.key_pair.private_key
    return files

  def _proxy(self, state: State) -> str:
    if not state.jumpbox.enabled or not state.jumpbox.url:
      return ""
    # Expanded by the executor once the key is written into its workspace.
    return jumpbox_proxy_url(state, "{workdir}/" + JUMPBOX_KEY_FILE)


def jumpbox_private_key(state: State) -> str:
  return ((state.jumpbox.variables or {}).get("jumpbox_ssh") or {}).get("private_key", "")


def jumpbox_proxy_url(state: State, private_key_path: str) -> str:
  return f"ssh+socks5://jumpbox@{state.jumpbox.url}?private-key={private_key_path}"
