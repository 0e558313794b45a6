"""Load and save the state document.

Writes go through a temp file in the state directory followed by a rename,
so an interrupted save leaves the previous document intact. Older schema
versions are upgraded on read; newer ones are refused.
"""
from __future__ import annotations

import contextlib
import fcntl
import json
import os
import tempfile
from pathlib import Path
from typing import Any, Callable, Dict, Iterator

from bootloader.errors import StateLockedError, StateNotFoundError, StateVersionError
from bootloader.state import CURRENT_VERSION, State

STATE_FILE = "bbl-state.json"
LOCK_FILE = ".bbl.lock"


class LocalFileSystem:
  def exists(self, path: Path) -> bool:
    return path.is_file()

  def read_text(self, path: Path) -> str:
    return path.read_text(encoding="utf-8")

  def write_atomic(self, path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", dir=str(path.parent))
    tmp_path = Path(tmp)
    try:
      with os.fdopen(fd, "w", encoding="utf-8") as handle:
        handle.write(text)
        handle.flush()
        os.fsync(handle.fileno())
      os.chmod(tmp_path, 0o600)
      tmp_path.replace(path)
    finally:
      if tmp_path.exists():
        tmp_path.unlink()

  def remove(self, path: Path) -> None:
    path.unlink(missing_ok=True)


class JSONCodec:
  def dumps(self, data: Dict[str, Any]) -> str:
    return json.dumps(data, indent=2, sort_keys=True) + "\n"

  def loads(self, text: str) -> Dict[str, Any]:
    return json.loads(text)


def _v1_to_v2(data: Dict[str, Any]) -> Dict[str, Any]:
  blob = data.pop("tf_state", "") or ""
  data["infra"] = {"state": blob, "outputs": {}, "fingerprint": ""}
  return data


def _v2_to_v3(data: Dict[str, Any]) -> Dict[str, Any]:
  bosh = data.pop("bosh", None) or {}
  director: Dict[str, Any] = {}
  for key, value in bosh.items():
    if key.startswith("director_"):
      key = key[len("director_"):]
    director[key] = value
  data["director"] = director
  data["latest_error"] = data.pop("latest_tf_output", "") or data.get("latest_error", "")
  data.setdefault("jumpbox", {})
  data.setdefault("lb", {})
  data.setdefault("no_director", False)
  return data


MIGRATIONS: Dict[int, Callable[[Dict[str, Any]], Dict[str, Any]]] = {
  1: _v1_to_v2,
  2: _v2_to_v3,
}


def migrate_document(data: Dict[str, Any]) -> Dict[str, Any]:
  version = int(data.get("version", 1) or 1)
  if version > CURRENT_VERSION:
    raise StateVersionError(
      f"State file version {version} is newer than this bbl supports ({CURRENT_VERSION}); upgrade bbl."
    )
  while version < CURRENT_VERSION:
    data = MIGRATIONS[version](data)
    version += 1
    data["version"] = version
  return data


class Store:
  def __init__(self, state_dir: Path, *, filesystem: Any = None, codec: Any = None) -> None:
    self._dir = Path(state_dir)
    self._fs = filesystem or LocalFileSystem()
    self._codec = codec or JSONCodec()

  @property
  def state_dir(self) -> Path:
    return self._dir

  @property
  def path(self) -> Path:
    return self._dir / STATE_FILE

  def exists(self) -> bool:
    return self._fs.exists(self.path)

  def load(self) -> State:
    if not self.exists():
      raise StateNotFoundError(f"{STATE_FILE} not found in {self._dir}.")
    raw = self._codec.loads(self._fs.read_text(self.path))
    if not isinstance(raw, dict):
      raise StateVersionError(f"{self.path} does not contain a state document.")
    return State.from_dict(migrate_document(raw))

  def get_state(self) -> State:
    if not self.exists():
      return State()
    return self.load()

  def save(self, state: State) -> None:
    state.version = CURRENT_VERSION
    self._fs.write_atomic(self.path, self._codec.dumps(state.to_dict()))

  def delete(self) -> None:
    self._fs.remove(self.path)

  @contextlib.contextmanager
  def lock(self) -> Iterator[None]:
    self._dir.mkdir(parents=True, exist_ok=True)
    lock_path = self._dir / LOCK_FILE
    with lock_path.open("a") as handle:
      try:
        fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
      except BlockingIOError:
        raise StateLockedError(
          f"Another bbl command is already running against {self._dir}."
        ) from None
      try:
        yield
      finally:
        fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
