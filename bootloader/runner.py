"""Blocking invocation of external binaries.

Output is captured on reader threads (and echoed to the user in debug
mode). An interrupt is forwarded to the child so it can clean up instead of
being orphaned.
"""
from __future__ import annotations

import json
import shutil
import signal
import subprocess
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Dict, Iterable, List, Optional

from bootloader.errors import ExternalToolError, ValidationError


@dataclass
class CommandResult:
  returncode: int
  stdout: str
  stderr: str

  @property
  def output(self) -> str:
    return "\n".join(part for part in (self.stdout.strip(), self.stderr.strip()) if part)


def format_command(command: Iterable[str]) -> str:
  return " ".join(json.dumps(arg) for arg in command)


class CommandRunner:
  def __init__(self, binary: str, *, logger=None, debug: bool = False) -> None:
    self._binary = binary
    self._logger = logger
    self._debug = debug
    self._resolved: Optional[str] = None

  @property
  def name(self) -> str:
    return Path(self._binary).name

  def resolve(self) -> str:
    if self._resolved is None:
      resolved = shutil.which(self._binary)
      if resolved is None:
        raise ValidationError(
          f"Executable '{self._binary}' was not found on PATH. "
          f"Install {self.name} or point bbl at the full path to the executable."
        )
      self._resolved = resolved
    return self._resolved

  def run(
    self,
    args: List[str],
    *,
    cwd: Optional[Path] = None,
    env: Optional[Dict[str, str]] = None,
  ) -> CommandResult:
    command = [self.resolve()] + list(args)
    if self._debug and self._logger is not None:
      self._logger.stream(f"$ {format_command(command)}\n")

    try:
      process = subprocess.Popen(
        command,
        cwd=str(cwd) if cwd else None,
        env=env,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
      )
    except FileNotFoundError as exc:
      raise ExternalToolError(
        f"Command '{command[0]}' could not be executed ({exc.strerror or 'file not found'}).",
        tool=self.name,
      ) from exc

    stdout_lines: List[str] = []
    stderr_lines: List[str] = []
    readers = [
      threading.Thread(target=self._drain, args=(process.stdout, stdout_lines), daemon=True),
      threading.Thread(target=self._drain, args=(process.stderr, stderr_lines), daemon=True),
    ]
    for reader in readers:
      reader.start()

    try:
      returncode = process.wait()
    except KeyboardInterrupt:
      process.send_signal(signal.SIGINT)
      process.wait()
      raise
    finally:
      for reader in readers:
        reader.join()

    return CommandResult(returncode, "".join(stdout_lines), "".join(stderr_lines))

  def _drain(self, pipe: IO[str], sink: List[str]) -> None:
    for line in iter(pipe.readline, ""):
      sink.append(line)
      if self._debug and self._logger is not None:
        self._logger.stream(line)
    pipe.close()
