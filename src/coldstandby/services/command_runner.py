"""Subprocess execution service for coldstandby."""

import os
import subprocess
from typing import Iterable, List, Optional

from coldstandby.errors import StandbyError

REDACTED = "******"


class CommandRunner:
    """Runs external commands with consistent error handling."""

    def __init__(self, logger):
        self.logger = logger
        self.env = dict(os.environ, LC_ALL="C")

    @staticmethod
    def describe(cmd: List[str], redact: Optional[Iterable[str]] = None) -> str:
        secrets = [value for value in (redact or []) if value]
        cmd_str = " ".join(cmd)
        for value in secrets:
            cmd_str = cmd_str.replace(value, REDACTED)
        return cmd_str

    def run(
        self,
        cmd: List[str],
        check: bool = True,
        capture_output: bool = False,
        redact: Optional[Iterable[str]] = None,
    ) -> subprocess.CompletedProcess:
        redact = list(redact or [])
        cmd_str = self.describe(cmd, redact)
        self.logger.debug("Executing: %s", cmd_str)

        try:
            result = subprocess.run(
                cmd,
                text=True,
                capture_output=capture_output,
                env=self.env,
            )
        except FileNotFoundError as exc:
            raise StandbyError(
                f"Required command not found: {cmd[0]}. Please install it and try again."
            ) from exc
        except OSError as exc:
            raise StandbyError(f"Failed to execute command: {cmd_str}. {exc}") from exc

        if capture_output and result.stdout:
            self.logger.debug("Command output: %s", result.stdout.strip())

        if result.returncode == 0:
            return result

        stderr = (result.stderr or "").strip() if capture_output else ""
        message = f"Command failed ({result.returncode}): {cmd_str}"
        if stderr:
            message = f"{message}\n{self.describe([stderr], redact)}"

        if check:
            raise StandbyError(message)

        self.logger.debug(message)
        return result
