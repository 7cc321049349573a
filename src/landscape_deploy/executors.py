from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence
import logging
import os
import subprocess

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    command: list[str]
    stdout: str
    stderr: str
    returncode: int


class Executor:
    """Runs local commands on behalf of the Landscape client.

    ``env`` is layered over ``os.environ`` for every command; it carries the
    Landscape credentials so they never appear on the command line.
    """

    def __init__(self, *, env: Optional[dict[str, str]] = None, timeout: Optional[float] = None):
        self.env = dict(env or {})
        self.timeout = timeout

    def run(self, command: Sequence[str]) -> CommandResult:
        cmd_list = list(command)
        exec_env = {**os.environ, **self.env} if self.env else None

        logger.debug("exec %s", " ".join(cmd_list))
        proc = subprocess.run(
            cmd_list,
            capture_output=True,
            text=True,
            check=False,
            env=exec_env,
            timeout=self.timeout,
        )
        if proc.returncode != 0:
            raise subprocess.CalledProcessError(proc.returncode, cmd_list, proc.stdout, proc.stderr)
        return CommandResult(cmd_list, proc.stdout, proc.stderr, proc.returncode)
