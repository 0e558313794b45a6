"""Drives the terraform binary in a throwaway working directory.

The previous state blob is written as the local backend's state file so
terraform plans a minimal diff. Whatever state file terraform leaves behind
is read back even when the command fails, and handed to the caller through
ExternalToolError.partial.
"""
from __future__ import annotations

import json
import re
import shutil
import tempfile
from pathlib import Path
from typing import Any, Dict, Iterable, Tuple

from bootloader.errors import ExternalToolError
from bootloader.terraform.inputs import TerraformInput

TEMPLATE_FILE = "bbl-template.tf"
VARS_FILE = "bbl.tfvars.json"
STATE_FILE = "terraform.tfstate"

PLAN_SUMMARY = re.compile(r"Plan: (\d+) to add, (\d+) to change, (\d+) to destroy")


class Executor:
  def __init__(self, runner) -> None:
    self._runner = runner

  def apply(self, tf_input: TerraformInput, prior_state: str) -> str:
    with _Workspace(tf_input, prior_state) as workdir:
      self._init(workdir, prior_state)
      self._run(
        workdir,
        ["apply", "-input=false", "-auto-approve", "-no-color", f"-var-file={VARS_FILE}"],
        "terraform apply failed.",
        prior_state,
      )
      return _read_state(workdir, prior_state)

  def destroy(self, tf_input: TerraformInput, prior_state: str) -> str:
    with _Workspace(tf_input, prior_state) as workdir:
      self._init(workdir, prior_state)
      self._run(
        workdir,
        ["destroy", "-input=false", "-auto-approve", "-no-color", f"-var-file={VARS_FILE}"],
        "terraform destroy failed.",
        prior_state,
      )
      return _read_state(workdir, prior_state)

  def import_resources(self, tf_input: TerraformInput, bindings: Iterable[Tuple[str, str]], prior_state: str = "") -> str:
    with _Workspace(tf_input, prior_state) as workdir:
      self._init(workdir, prior_state)
      for address, resource_id in bindings:
        self._run(
          workdir,
          ["import", "-input=false", "-no-color", f"-var-file={VARS_FILE}", address, resource_id],
          f"terraform import of {address} ({resource_id}) failed.",
          prior_state,
        )
      return _read_state(workdir, prior_state)

  def plan(self, tf_input: TerraformInput, state_blob: str) -> int:
    """Return the number of resources terraform would add, change or destroy."""
    with _Workspace(tf_input, state_blob) as workdir:
      self._init(workdir, state_blob)
      result = self._runner.run(
        ["plan", "-input=false", "-no-color", "-detailed-exitcode", f"-var-file={VARS_FILE}"],
        cwd=workdir,
      )
      if result.returncode == 0:
        return 0
      if result.returncode != 2:
        raise ExternalToolError("terraform plan failed.", tool="terraform", output=result.output, partial=state_blob)
      match = PLAN_SUMMARY.search(result.stdout)
      if match is None:
        return 1
      return sum(int(count) for count in match.groups())

  def outputs(self, state_blob: str) -> Dict[str, Any]:
    workdir = Path(tempfile.mkdtemp(prefix="bbl-terraform-"))
    try:
      (workdir / STATE_FILE).write_text(state_blob, encoding="utf-8")
      result = self._runner.run(["output", "-json", f"-state={STATE_FILE}"], cwd=workdir)
    finally:
      shutil.rmtree(workdir, ignore_errors=True)
    if result.returncode != 0:
      raise ExternalToolError("terraform output failed.", tool="terraform", output=result.output)
    payload = json.loads(result.stdout or "{}")
    resolved: Dict[str, Any] = {}
    for key, value in payload.items():
      if isinstance(value, dict) and "value" in value:
        resolved[key] = value["value"]
      else:
        resolved[key] = value
    return resolved

  def _init(self, workdir: Path, prior_state: str) -> None:
    self._run(workdir, ["init", "-input=false", "-no-color"], "terraform init failed.", prior_state)

  def _run(self, workdir: Path, args, message: str, prior_state: str) -> None:
    result = self._runner.run(args, cwd=workdir)
    if result.returncode != 0:
      raise ExternalToolError(
        message,
        tool="terraform",
        output=result.output,
        partial=_read_state(workdir, prior_state),
      )


class _Workspace:
  def __init__(self, tf_input: TerraformInput, prior_state: str) -> None:
    self._input = tf_input
    self._prior_state = prior_state
    self._dir = None

  def __enter__(self) -> Path:
    self._dir = Path(tempfile.mkdtemp(prefix="bbl-terraform-"))
    (self._dir / TEMPLATE_FILE).write_text(self._input.template, encoding="utf-8")
    (self._dir / VARS_FILE).write_text(json.dumps(self._input.variables, indent=2), encoding="utf-8")
    for name, contents in self._input.files.items():
      path = self._dir / name
      path.write_text(contents, encoding="utf-8")
      path.chmod(0o600)
    if self._prior_state:
      (self._dir / STATE_FILE).write_text(self._prior_state, encoding="utf-8")
    return self._dir

  def __exit__(self, *exc_info) -> None:
    shutil.rmtree(self._dir, ignore_errors=True)


def _read_state(workdir: Path, fallback: str) -> str:
  path = workdir / STATE_FILE
  if path.is_file():
    return path.read_text(encoding="utf-8")
  return fallback
