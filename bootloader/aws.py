from __future__ import annotations

import contextlib
from typing import Iterator

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError, WaiterError

from bootloader.errors import ExternalToolError
from bootloader.state import AWSCredentials


class AWSClientProvider:
  """Builds boto3 clients from the credentials persisted in state."""

  def __init__(self, credentials: AWSCredentials) -> None:
    self._credentials = credentials
    self._session = None

  def _get_session(self):
    if self._session is None:
      self._session = boto3.session.Session(
        aws_access_key_id=self._credentials.access_key_id,
        aws_secret_access_key=self._credentials.secret_access_key,
        region_name=self._credentials.region,
      )
    return self._session

  def client(self, service: str):
    return self._get_session().client(service, config=Config(retries={"max_attempts": 6}))


def error_code(exc: ClientError) -> str:
  return exc.response.get("Error", {}).get("Code", "")


@contextlib.contextmanager
def aws_errors(action: str) -> Iterator[None]:
  """Report AWS API failures as external tool errors."""
  try:
    yield
  except (ClientError, WaiterError) as exc:
    raise ExternalToolError(f"Failed to {action}.", tool="aws", output=str(exc)) from exc
