#!/usr/bin/env python3
"""bbl: stand up a BOSH director and its infrastructure on AWS, GCP or Azure."""
from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from bootloader import __version__
from bootloader.application import App
from bootloader.aws import AWSClientProvider
from bootloader.cloudconfig import CloudConfigManager
from bootloader.commands import (
  BOSHDeploymentVars,
  CloudConfig,
  CreateLBs,
  DeleteLBs,
  Destroy,
  LatestError,
  LBs,
  PrintEnv,
  Rotate,
  UpdateLBs,
  Up,
  Version,
  state_queries,
)
from bootloader.config import load_config_file, resolve_options
from bootloader.director import BoshExecutor, DirectorManager, StringGenerator
from bootloader.director_client import DirectorClientProvider
from bootloader.errors import BootloaderError
from bootloader.keypair import AWSKeyPairManager, GCPKeyPairManager, KeyPairManager, SSHKeyGenerator
from bootloader.runner import CommandRunner
from bootloader.stack import Migrator, StackManager
from bootloader.state import IAAS
from bootloader.store import Store
from bootloader.terraform import Executor, Manager
from bootloader.ui import ColorMode, Logger, build_console_palette

QUERY_COMMANDS = (
  ("env-id", "Prints environment ID"),
  ("jumpbox-address", "Prints address of the jumpbox"),
  ("director-address", "Prints BOSH director address"),
  ("director-username", "Prints BOSH director username"),
  ("director-password", "Prints BOSH director password"),
  ("director-ca-cert", "Prints BOSH director CA certificate"),
  ("ssh-key", "Prints SSH private key for the jumpbox or director VM"),
  ("print-env", "Prints BOSH environment variables for the director"),
  ("latest-error", "Prints the output of the most recent failed external command"),
  ("cloud-config", "Prints suggested cloud config for the environment"),
  ("bosh-deployment-vars", "Prints the variables passed to bosh create-env"),
  ("lbs", "Prints attached load balancer(s)"),
)


def _path(value: Optional[str]) -> Optional[Path]:
  return Path(value).expanduser() if value else None


def build_app(options: Mapping[str, Any], logger: Logger) -> App:
  debug = bool(options.get("debug"))
  store = Store(Path(options["state_dir"]).expanduser())

  def runner(option: str) -> CommandRunner:
    return CommandRunner(options[option], logger=logger, debug=debug)

  bosh = runner("bosh_binary")
  key_generator = SSHKeyGenerator(runner("ssh_keygen_binary"))

  def aws_client(state, service):
    return AWSClientProvider(state.aws).client(service)

  keypairs = KeyPairManager(
    aws=AWSKeyPairManager(lambda state: aws_client(state, "ec2"), key_generator, logger),
    gcp=GCPKeyPairManager(runner("gcloud_binary"), key_generator, logger),
  )
  terraform = Manager(Executor(runner("terraform_binary")), logger)
  stacks = StackManager(aws_client, logger)
  migrator = Migrator(stacks, terraform, logger)
  directors = DirectorManager(
    BoshExecutor(
      bosh,
      {
        "bosh": _path(options.get("bosh_deployment_dir")),
        "jumpbox": _path(options.get("jumpbox_deployment_dir")),
      },
    ),
    StringGenerator(),
    logger,
  )
  cloud_config = CloudConfigManager(terraform, DirectorClientProvider(bosh), logger)

  commands: Dict[str, Any] = {
    "version": Version(logger),
    "up": Up(store, keypairs, migrator, terraform, directors, cloud_config, logger),
    "destroy": Destroy(store, keypairs, migrator, terraform, directors, stacks, logger),
    "create-lbs": CreateLBs(store, terraform, cloud_config, logger),
    "update-lbs": UpdateLBs(store, terraform, cloud_config, logger),
    "delete-lbs": DeleteLBs(store, terraform, cloud_config, logger),
    "lbs": LBs(terraform, logger),
    "rotate": Rotate(store, keypairs, terraform, directors, logger),
    "print-env": PrintEnv(logger, terraform, stacks),
    "latest-error": LatestError(logger),
    "cloud-config": CloudConfig(logger, cloud_config),
    "bosh-deployment-vars": BOSHDeploymentVars(logger, terraform, directors),
  }
  commands.update(state_queries(logger, terraform, stacks))
  return App(commands, store)


def _add_lb_arguments(parser: argparse.ArgumentParser) -> None:
  parser.add_argument("--cert", help="Path to the load balancer certificate (PEM).")
  parser.add_argument("--key", help="Path to the load balancer certificate private key (PEM).")
  parser.add_argument("--chain", help="Path to the load balancer certificate chain (PEM).")
  parser.add_argument("--domain", help="Domain name served by the load balancer.")


def build_parser() -> argparse.ArgumentParser:
  parser = argparse.ArgumentParser(prog="bbl", description="BOSH bootloader")
  parser.add_argument(
    "--state-dir",
    "-s",
    default=None,
    help="Directory containing the bbl state (env: BBL_STATE_DIRECTORY, default: current directory).",
  )
  parser.add_argument("--config", default=None, help="Optional YAML file with bbl settings.")
  parser.add_argument("--debug", "-d", action="store_true", help="Stream external command output.")
  parser.add_argument(
    "--color",
    choices=[mode.value for mode in ColorMode],
    default=ColorMode.AUTO.value,
    help="Color output mode: auto (default), always, or never.",
  )
  parser.add_argument("--version", "-v", action="version", version=f"bbl {__version__}")

  subparsers = parser.add_subparsers(dest="command", metavar="<command>")
  subparsers.add_parser("help", help="Prints usage")
  subparsers.add_parser("version", help="Prints version")

  up = subparsers.add_parser("up", help="Deploys BOSH director on an IAAS")
  up.add_argument("--iaas", choices=[item.value for item in IAAS], help="IAAS to deploy on (env: BBL_IAAS).")
  up.add_argument("--name", help="Name to assign to the environment (env: BBL_ENV_NAME).")
  up.add_argument("--no-director", action="store_true", help="Only create the infrastructure.")
  up.add_argument("--jumpbox", action="store_true", help="Deploy the director behind a jumpbox.")
  up.add_argument("--aws-access-key-id")
  up.add_argument("--aws-secret-access-key")
  up.add_argument("--aws-region")
  up.add_argument("--gcp-service-account-key", help="Path to, or contents of, the service account key JSON.")
  up.add_argument("--gcp-project-id")
  up.add_argument("--gcp-region")
  up.add_argument("--gcp-zone")
  up.add_argument("--azure-subscription-id")
  up.add_argument("--azure-tenant-id")
  up.add_argument("--azure-client-id")
  up.add_argument("--azure-client-secret")
  up.add_argument("--azure-region")

  destroy = subparsers.add_parser("destroy", aliases=["down"], help="Tears down BOSH director infrastructure")
  destroy.add_argument("--no-confirm", "-n", action="store_true", help="Do not ask for confirmation.")

  create_lbs = subparsers.add_parser("create-lbs", help="Attaches load balancer(s)")
  create_lbs.add_argument("--type", required=True, help="Load balancer type: concourse or cf.")
  create_lbs.add_argument("--skip-if-exists", action="store_true", help="Do nothing when a load balancer exists.")
  _add_lb_arguments(create_lbs)

  update_lbs = subparsers.add_parser("update-lbs", help="Updates load balancer certificate and domain")
  _add_lb_arguments(update_lbs)

  subparsers.add_parser("delete-lbs", help="Deletes attached load balancer(s)")
  subparsers.add_parser("rotate", help="Rotates the environment keypair")

  for name, description in QUERY_COMMANDS:
    subparsers.add_parser(name, help=description)
  return parser


def main(argv: Optional[List[str]] = None) -> int:
  parser = build_parser()
  args = parser.parse_args(argv)
  if args.command in (None, "help"):
    parser.print_help()
    return 0

  logger = Logger(palette=build_console_palette(args.color, sys.stdout))
  try:
    config = load_config_file(Path(args.config).expanduser()) if args.config else {}
    options = resolve_options(vars(args), config=config)
    build_app(options, logger).run(args.command, options)
  except KeyboardInterrupt:
    logger.error("Interrupted.")
    return 130
  except BootloaderError as exc:
    logger.error(f"Error: {exc}")
    return 1
  except Exception as exc:  # pylint: disable=broad-except
    logger.error(f"Unhandled error: {exc}")
    return 1
  return 0


if __name__ == "__main__":
  sys.exit(main())
