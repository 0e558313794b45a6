from __future__ import annotations

import re
import secrets
from datetime import datetime, timezone
from typing import Callable, Optional

from bootloader.errors import ValidationError

LAKES = (
  "baikal", "caspian", "como", "erie", "garda", "geneva", "huron", "kivu",
  "ladoga", "malawi", "michigan", "nasser", "ohrid", "onega", "superior",
  "tahoe", "tanganyika", "titicaca", "victoria", "vostok", "winnipeg",
)

ENV_ID_PATTERN = re.compile(r"^[a-z][a-z0-9-]{0,61}[a-z0-9]$")


def validate_env_id(name: str) -> str:
  if not ENV_ID_PATTERN.match(name):
    raise ValidationError(
      f"Names must start with a lowercase letter and contain only lowercase letters, numbers and hyphens: '{name}'."
    )
  return name


class EnvIDGenerator:
  def __init__(self, choice: Callable = secrets.choice, now: Optional[Callable[[], datetime]] = None) -> None:
    self._choice = choice
    self._now = now or (lambda: datetime.now(timezone.utc))

  def generate(self) -> str:
    lake = self._choice(LAKES)
    timestamp = self._now().strftime("%Y-%m-%dt%H-%Mz")
    return f"bbl-env-{lake}-{timestamp}"
