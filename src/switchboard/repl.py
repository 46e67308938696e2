"""Interactive line-based console driving the command registry."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable

from rich.console import Console

from switchboard.commands.registry import CommandRegistry
from switchboard.errors import SwitchboardError

EXIT_COMMANDS = frozenset({"exit", "quit"})
PROMPT = "> "


class ControlFlow(str, Enum):
    """Whether the REPL loop keeps reading lines."""

    CONTINUE = "continue"
    EXIT = "exit"


class Repl:
    """Reads one command per line and reports ``OK`` or ``ERROR: <message>``.

    Command failures are reported and never end the loop; only ``exit``,
    ``quit``, EOF or Ctrl+C do.
    """

    def __init__(
        self,
        registry: CommandRegistry,
        *,
        console: Console | None = None,
        read_line: Callable[[str], str] = input,
        prompt: str = PROMPT,
        logger: logging.Logger | None = None,
    ) -> None:
        self._registry = registry
        self._console = console or Console()
        self._read_line = read_line
        self._prompt = prompt
        self._logger = logger or logging.getLogger("switchboard.repl")

    def handle_line(self, line: str) -> tuple[ControlFlow, str | None]:
        """Evaluate one line and return the loop decision plus feedback text."""
        try:
            invocation = self._registry.parse(line.strip())
        except SwitchboardError as exc:
            return ControlFlow.CONTINUE, f"ERROR: {exc}"
        if invocation is None:
            return ControlFlow.CONTINUE, None

        if invocation.name in EXIT_COMMANDS and invocation.name not in self._registry:
            return ControlFlow.EXIT, None

        try:
            result = self._registry.dispatch(invocation)
        except SwitchboardError as exc:
            return ControlFlow.CONTINUE, f"ERROR: {exc}"
        except Exception as exc:  # noqa: BLE001
            self._logger.exception("command_handler_crashed", extra={"command": invocation.name})
            return ControlFlow.CONTINUE, f"ERROR: {type(exc).__name__}: {exc}"
        return ControlFlow.CONTINUE, result.render()

    def run(self) -> None:
        while True:
            try:
                line = self._read_line(self._prompt)
            except (EOFError, KeyboardInterrupt):
                self._console.print()
                return

            flow, feedback = self.handle_line(line)
            if feedback is not None:
                style = "red" if feedback.startswith("ERROR") else None
                self._console.print(feedback, style=style, markup=False, highlight=False)
            if flow == ControlFlow.EXIT:
                return
