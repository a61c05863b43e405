"""Selection and confirmation through external menu programs.

Choices are written to the program's stdin, one per line, and the chosen
line is read back from its stdout (dmenu/fzf/vis-menu style).
"""

from __future__ import annotations

import shlex
import subprocess

from lspc.logging import get_logger

log = get_logger("prompt")

CONFIRM_CHOICES = ["no", "yes"]


class CommandPrompter:
    """Ask the user through menu_cmd and confirm_cmd."""

    def __init__(self, menu_cmd: str, confirm_cmd: str) -> None:
        self.menu_cmd = menu_cmd
        self.confirm_cmd = confirm_cmd

    def _run(self, argv: list[str], choices: list[str]) -> str | None:
        log.debug("Running %s", shlex.join(argv))
        try:
            proc = subprocess.run(
                argv,
                input="".join(f"{c}\n" for c in choices),
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as e:
            log.warning("Cannot run %s: %s", argv[0], e)
            return None

        if proc.returncode != 0:
            log.debug("%s exited with %d", argv[0], proc.returncode)
            return None
        return proc.stdout.removesuffix("\n")

    def select(self, choices: list[str]) -> str | None:
        """Let the user pick one of choices.

        A single choice is returned without asking.
        """
        if not choices:
            return None
        if len(choices) == 1:
            return choices[0]

        choice = self._run(shlex.split(self.menu_cmd), choices)
        return choice if choice in choices else None

    def confirm(self, prompt: str | None = None) -> bool:
        argv = shlex.split(self.confirm_cmd)
        if prompt:
            argv += ["-p", prompt]
        return self._run(argv, CONFIRM_CHOICES) == "yes"
