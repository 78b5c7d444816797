"""SSH remote execution service for coldstandby."""

import shlex
import subprocess
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from coldstandby.models import RemoteTarget


@dataclass(frozen=True)
class RemoteCommand:
    """Argument list executed on the standby host, optionally from a working directory."""

    argv: Tuple[str, ...]
    cwd: Optional[str] = None

    @classmethod
    def of(cls, *argv: str, cwd: Optional[str] = None) -> "RemoteCommand":
        return cls(tuple(argv), cwd)

    def render(self, elevate: bool = False) -> str:
        command = shlex.join(self.argv)
        if self.cwd:
            command = f"cd {shlex.quote(self.cwd)} && {command}"
            if elevate:
                return shlex.join(["sudo", "bash", "-lc", command])
            return command
        if elevate:
            return shlex.join(["sudo", *self.argv])
        return command


class RemoteExecutor:
    """Runs commands on the remote target over an authenticated SSH channel."""

    SSH_OPTIONS = ["-o", "StrictHostKeyChecking=no"]

    def __init__(self, target: RemoteTarget, command_runner, logger, console):
        self.target = target
        self.command_runner = command_runner
        self.logger = logger
        self.console = console

    def _identity_args(self, port_flag: str) -> List[str]:
        args = [*self.SSH_OPTIONS, "-i", self.target.key_path]
        if self.target.port is not None:
            args.extend([port_flag, str(self.target.port)])
        return args

    def ssh_command(self) -> List[str]:
        return ["ssh", *self._identity_args("-p"), self.target.destination]

    def rsync_shell(self) -> str:
        """Value for rsync's `-e` option."""
        return shlex.join(["ssh", *self._identity_args("-p")])

    def remote_path(self, path: str) -> str:
        return f"{self.target.destination}:{path}"

    @staticmethod
    def combined_output(result: subprocess.CompletedProcess) -> str:
        return f"{result.stdout or ''}{result.stderr or ''}"

    def run(
        self,
        command: RemoteCommand,
        elevate: bool = False,
        capture_output: bool = True,
        redact: Optional[Iterable[str]] = None,
    ) -> subprocess.CompletedProcess:
        return self.command_runner.run(
            self.ssh_command() + [command.render(elevate=elevate)],
            check=False,
            capture_output=capture_output,
            redact=redact,
        )

    def run_with_escalation_fallback(
        self,
        command: RemoteCommand,
        capture_output: bool = True,
        redact: Optional[Iterable[str]] = None,
    ) -> subprocess.CompletedProcess:
        """Run unprivileged first, then once more through sudo.

        Returns the first successful result or the privileged attempt's failure.
        """
        result = self.run(command, capture_output=capture_output, redact=redact)
        if result.returncode == 0:
            return result

        self.console.print("[bold]Trying with sudo on remote...[/bold]")
        self.logger.warning(
            "Remote command failed (%s) as %s, retrying with sudo: %s",
            result.returncode,
            self.target.user,
            command.render(),
        )
        return self.run(command, elevate=True, capture_output=capture_output, redact=redact)

    def copy_to_remote(self, local_path: str, remote_dir: str) -> subprocess.CompletedProcess:
        destination = self.remote_path(remote_dir.rstrip("/") + "/")
        return self.command_runner.run(
            ["scp", *self._identity_args("-P"), local_path, destination],
            check=False,
            capture_output=True,
        )
