from __future__ import annotations

import os
import sys
from enum import Enum
from typing import Dict, Optional, TextIO

PALETTE_KEYS = ("heading", "step", "error", "reset")


class ColorMode(str, Enum):
  AUTO = "auto"
  ALWAYS = "always"
  NEVER = "never"


def _supports_color_output(stream: TextIO) -> bool:
  isatty = getattr(stream, "isatty", None)
  return bool(isatty and isatty()) and os.environ.get("NO_COLOR") is None


def build_console_palette(requested_mode: str, stream: TextIO = sys.stdout) -> Dict[str, str]:
  try:
    mode = ColorMode(requested_mode or ColorMode.AUTO.value)
  except ValueError:
    mode = ColorMode.AUTO

  use_color = mode is ColorMode.ALWAYS or (mode is ColorMode.AUTO and _supports_color_output(stream))
  palette = {key: "" for key in PALETTE_KEYS}
  if use_color:
    palette.update({
      "heading": "\033[1m",
      "step": "\033[36m",
      "error": "\033[31m",
      "reset": "\033[0m",
    })
  return palette


class Logger:
  def __init__(
    self,
    stdout: Optional[TextIO] = None,
    stderr: Optional[TextIO] = None,
    stdin: Optional[TextIO] = None,
    palette: Optional[Dict[str, str]] = None,
  ) -> None:
    self._stdout = stdout or sys.stdout
    self._stderr = stderr or sys.stderr
    self._stdin = stdin or sys.stdin
    self._palette = palette or {key: "" for key in PALETTE_KEYS}

  def step(self, message: str) -> None:
    step = self._palette.get("step", "")
    reset = self._palette.get("reset", "")
    print(f"{step}step:{reset} {message}", file=self._stdout, flush=True)

  def println(self, message: str) -> None:
    print(message, file=self._stdout, flush=True)

  def error(self, message: str) -> None:
    color = self._palette.get("error", "")
    reset = self._palette.get("reset", "")
    print(f"{color}{message}{reset}", file=self._stderr, flush=True)

  def stream(self, line: str) -> None:
    self._stderr.write(line)
    self._stderr.flush()

  def prompt(self, message: str) -> bool:
    print(f"{message} (y/N): ", end="", file=self._stdout, flush=True)
    answer = self._stdin.readline().strip().lower()
    return answer in ("y", "yes")
