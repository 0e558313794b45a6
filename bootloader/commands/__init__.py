from bootloader.commands.base import Command
from bootloader.commands.destroy import Destroy
from bootloader.commands.lbs import LBs, CreateLBs, DeleteLBs, UpdateLBs
from bootloader.commands.rotate import Rotate
from bootloader.commands.state_query import (
  BOSHDeploymentVars,
  CloudConfig,
  LatestError,
  PrintEnv,
  StateQuery,
  Version,
  state_queries,
)
from bootloader.commands.up import Up

__all__ = [
  "BOSHDeploymentVars",
  "CloudConfig",
  "Command",
  "CreateLBs",
  "DeleteLBs",
  "Destroy",
  "LBs",
  "LatestError",
  "PrintEnv",
  "Rotate",
  "StateQuery",
  "UpdateLBs",
  "Up",
  "Version",
  "state_queries",
]
