from __future__ import annotations

import contextlib
import os
import shutil
import tempfile
from pathlib import Path
from typing import Iterator, Optional

import requests

from bootloader.director import JUMPBOX_KEY_FILE, jumpbox_private_key, jumpbox_proxy_url
from bootloader.errors import DirectorAPIError
from bootloader.state import State

CLOUD_CONFIG_PATH = "/cloud_configs"


@contextlib.contextmanager
def _ca_bundle(ca_cert: str) -> Iterator[object]:
  if not ca_cert:
    yield True
    return
  handle, path = tempfile.mkstemp(prefix="bbl-director-ca-", suffix=".pem")
  try:
    with os.fdopen(handle, "w", encoding="utf-8") as stream:
      stream.write(ca_cert)
    yield path
  finally:
    os.unlink(path)


class DirectorClient:
  """Talks to the director HTTP API directly."""

  def __init__(
    self,
    address: str,
    username: str,
    password: str,
    ca_cert: str = "",
    session: Optional[requests.Session] = None,
    timeout: int = 60,
  ) -> None:
    self._address = address.rstrip("/")
    self._auth = (username, password)
    self._ca_cert = ca_cert
    self._session = session or requests.Session()
    self._timeout = timeout

  def info(self) -> dict:
    with _ca_bundle(self._ca_cert) as verify:
      response = self._session.get(f"{self._address}/info", verify=verify, timeout=self._timeout)
    if response.status_code != 200:
      raise DirectorAPIError(f"Director {self._address} returned {response.status_code} for /info.")
    return response.json()

  def update_cloud_config(self, manifest: bytes) -> None:
    with _ca_bundle(self._ca_cert) as verify:
      try:
        response = self._session.post(
          f"{self._address}{CLOUD_CONFIG_PATH}",
          data=manifest,
          headers={"Content-Type": "text/yaml"},
          auth=self._auth,
          verify=verify,
          timeout=self._timeout,
          allow_redirects=False,
        )
      except requests.RequestException as exc:
        raise DirectorAPIError(f"Could not reach director at {self._address}: {exc}") from exc
    # The director answers 302 with a task redirect on success.
    if response.status_code not in (200, 201, 204, 302):
      raise DirectorAPIError(
        f"Director rejected the cloud config ({response.status_code}): {response.text.strip()}"
      )


class BoshCLIDirectorClient:
  """Updates cloud config through `bosh` when the director sits behind a jumpbox."""

  def __init__(self, runner, state: State) -> None:
    self._runner = runner
    self._state = state

  def update_cloud_config(self, manifest: bytes) -> None:
    director = self._state.director
    workdir = Path(tempfile.mkdtemp(prefix="bbl-cloud-config-"))
    try:
      (workdir / "cloud-config.yml").write_bytes(manifest)
      (workdir / "ca.pem").write_text(director.ssl_ca, encoding="utf-8")
      key = workdir / JUMPBOX_KEY_FILE
      key.write_text(jumpbox_private_key(self._state), encoding="utf-8")
      key.chmod(0o600)
      env = dict(
        os.environ,
        BOSH_ENVIRONMENT=director.address,
        BOSH_CLIENT=director.username,
        BOSH_CLIENT_SECRET=director.password,
        BOSH_CA_CERT=str(workdir / "ca.pem"),
        BOSH_ALL_PROXY=jumpbox_proxy_url(self._state, str(key)),
      )
      result = self._runner.run(["-n", "update-cloud-config", "cloud-config.yml"], cwd=workdir, env=env)
    finally:
      shutil.rmtree(workdir, ignore_errors=True)
    if result.returncode != 0:
      raise DirectorAPIError(f"bosh update-cloud-config failed.\n{result.output.rstrip()}")


class DirectorClientProvider:
  def __init__(self, bosh_runner=None, session: Optional[requests.Session] = None) -> None:
    self._bosh_runner = bosh_runner
    self._session = session

  def client(self, state: State):
    if state.jumpbox.enabled and self._bosh_runner is not None:
      return BoshCLIDirectorClient(self._bosh_runner, state)
    director = state.director
    return DirectorClient(
      director.address,
      director.username,
      director.password,
      ca_cert=director.ssl_ca,
      session=self._session,
    )
