from __future__ import annotations

from typing import Any, Dict, Mapping

from bootloader.commands.base import Command
from bootloader.errors import ValidationError
from bootloader.state import State
from bootloader.validation import StateValidator

COMMAND_ALIASES = {"down": "destroy"}


class App:
  def __init__(self, commands: Dict[str, Command], store) -> None:
    self._commands = commands
    self._store = store

  def run(self, name: str, flags: Mapping[str, Any]) -> None:
    name = COMMAND_ALIASES.get(name, name)
    command = self._commands.get(name)
    if command is None:
      raise ValidationError(f"Unrecognized command '{name}'.")

    if command.needs_state:
      StateValidator(self._store).validate()

    if command.mutates_state:
      # Read-modify-write of the state document; one invocation at a time.
      with self._store.lock():
        self._execute(command, flags)
    else:
      self._execute(command, flags)

  def _execute(self, command: Command, flags: Mapping[str, Any]) -> None:
    if command.needs_state:
      state = self._store.load()
    elif command.mutates_state:
      state = self._store.get_state()
    else:
      state = State()
    command.check_fast_fails(flags, state)
    command.execute(flags, state)
