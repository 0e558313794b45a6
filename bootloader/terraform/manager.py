from __future__ import annotations

from typing import Any, Dict, Iterable, Optional, Tuple

from bootloader.errors import ExternalToolError, OutputMissingError, ValidationError
from bootloader.state import IAAS, InfraState, State
from bootloader.terraform.inputs import (
  AWSInputGenerator,
  AzureInputGenerator,
  GCPInputGenerator,
  TerraformInput,
)
from bootloader.terraform.outputs import expected_outputs
from bootloader.terraform.templates import (
  AWSTemplateGenerator,
  AzureTemplateGenerator,
  GCPTemplateGenerator,
  TemplateInput,
)


def default_template_generators() -> Dict[IAAS, Any]:
  return {
    IAAS.AWS: AWSTemplateGenerator(),
    IAAS.GCP: GCPTemplateGenerator(),
    IAAS.AZURE: AzureTemplateGenerator(),
  }


def default_input_generators() -> Dict[IAAS, Any]:
  return {
    IAAS.AWS: AWSInputGenerator(),
    IAAS.GCP: GCPInputGenerator(),
    IAAS.AZURE: AzureInputGenerator(),
  }


class Manager:
  def __init__(
    self,
    executor,
    logger,
    template_generators: Optional[Dict[IAAS, Any]] = None,
    input_generators: Optional[Dict[IAAS, Any]] = None,
  ) -> None:
    self._executor = executor
    self._logger = logger
    self._templates = template_generators or default_template_generators()
    self._inputs = input_generators or default_input_generators()

  def build_input(self, state: State) -> TerraformInput:
    iaas = _iaas(state)
    template = self._templates[iaas].generate(
      TemplateInput(lb_type=state.lb.type, jumpbox=state.jumpbox.enabled)
    )
    generator = self._inputs[iaas]
    return TerraformInput(template=template, variables=generator.generate(state), files=generator.files(state))

  def apply(self, state: State) -> InfraState:
    tf_input = self.build_input(state)
    fingerprint = tf_input.fingerprint()
    if not state.infra.is_empty() and state.infra.fingerprint == fingerprint and state.infra.outputs:
      self._logger.step("infrastructure is up to date")
      return state.infra

    self._logger.step("applying infrastructure")
    try:
      blob = self._executor.apply(tf_input, state.infra.state)
    except ExternalToolError as exc:
      exc.partial = InfraState(state=exc.partial or state.infra.state)
      raise
    return InfraState(state=blob, outputs=self._expected_outputs(state, blob), fingerprint=fingerprint)

  def destroy(self, state: State) -> InfraState:
    if state.infra.is_empty():
      return InfraState()
    self._logger.step("destroying infrastructure")
    tf_input = self.build_input(state)
    try:
      self._executor.destroy(tf_input, state.infra.state)
    except ExternalToolError as exc:
      exc.partial = InfraState(state=exc.partial or state.infra.state)
      raise
    return InfraState()

  def outputs(self, state: State) -> Dict[str, Any]:
    if state.infra.outputs:
      return dict(state.infra.outputs)
    if state.infra.is_empty():
      return {}
    return self._expected_outputs(state, state.infra.state)

  def import_resources(self, state: State, bindings: Iterable[Tuple[str, str]]) -> str:
    return self._executor.import_resources(self.build_input(state), bindings, state.infra.state)

  def planned_changes(self, state: State, blob: str) -> int:
    return self._executor.plan(self.build_input(state), blob)

  def infra_state_for(self, state: State, blob: str) -> InfraState:
    return InfraState(
      state=blob,
      outputs=self._expected_outputs(state, blob),
      fingerprint=self.build_input(state).fingerprint(),
    )

  def _expected_outputs(self, state: State, blob: str) -> Dict[str, Any]:
    try:
      reported = self._executor.outputs(blob)
    except ExternalToolError as exc:
      exc.partial = InfraState(state=blob)
      raise
    selected: Dict[str, Any] = {}
    for name in expected_outputs(state.iaas, state.lb.type, state.jumpbox.enabled):
      if name not in reported:
        raise OutputMissingError(name, partial=InfraState(state=blob))
      selected[name] = reported[name]
    return selected


def _iaas(state: State) -> IAAS:
  try:
    return IAAS(state.iaas)
  except ValueError:
    raise ValidationError(f"Unknown iaas '{state.iaas}'.") from None
