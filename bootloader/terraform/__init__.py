from bootloader.terraform.executor import Executor
from bootloader.terraform.inputs import TerraformInput
from bootloader.terraform.manager import Manager
from bootloader.terraform.outputs import expected_outputs, lb_types
from bootloader.terraform.templates import TemplateInput

__all__ = [
  "Executor",
  "Manager",
  "TemplateInput",
  "TerraformInput",
  "expected_outputs",
  "lb_types",
]
