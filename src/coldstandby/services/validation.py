"""Local and remote precondition checks for coldstandby."""

import re
import shutil
import stat
from pathlib import Path
from typing import Optional, Union

from coldstandby.constants import (
    KEY_FILE_MODE,
    LOCAL_REQUIRED_TOOLS,
    MAX_PORT,
    REMOTE_REQUIRED_TOOLS,
)
from coldstandby.errors import StandbyError
from coldstandby.errors_catalog import actionable_error
from coldstandby.models import RemoteTarget
from coldstandby.services.remote import RemoteCommand

_PORT_PATTERN = re.compile(r"[0-9]+")


class ValidationService:
    """Certifies that both hosts are safe to touch before any mutation happens.

    Every check is fatal; the first failing one raises `StandbyError`.
    """

    def __init__(self, command_runner, logger, console, which=shutil.which):
        self.command_runner = command_runner
        self.logger = logger
        self.console = console
        self.which = which

    def validate_key_file(self, key_path: Optional[str]) -> str:
        if not key_path:
            raise StandbyError(actionable_error("key_not_configured"))

        path = Path(key_path).expanduser()
        if not path.is_file() or path.stat().st_size == 0:
            raise StandbyError(actionable_error("key_empty", path=str(path)))

        mode = stat.S_IMODE(path.stat().st_mode)
        if mode != KEY_FILE_MODE:
            raise StandbyError(
                actionable_error("key_insecure_mode", path=str(path), mode=format(mode, "o"))
            )
        return str(path)

    def validate_port(self, port: Union[str, int, None]) -> Optional[int]:
        if port is None or str(port).strip() == "":
            return None

        text = str(port).strip()
        if isinstance(port, bool) or not _PORT_PATTERN.fullmatch(text) or int(text) > MAX_PORT:
            raise StandbyError(actionable_error("invalid_port", port=text))
        return int(text)

    def build_remote_target(
        self,
        host: Optional[str],
        port: Union[str, int, None],
        user: str,
        key_path: Optional[str],
    ) -> RemoteTarget:
        key = self.validate_key_file(key_path)
        port_value = self.validate_port(port)
        if not host or not host.strip():
            raise StandbyError(actionable_error("host_not_configured"))
        return RemoteTarget(host=host.strip(), user=user, key_path=key, port=port_value)

    @staticmethod
    def is_busybox_banner(output: str) -> bool:
        lines = (output or "").strip().splitlines()
        return bool(lines) and "busybox" in lines[0].lower()

    def validate_local_tools(self):
        for tool in LOCAL_REQUIRED_TOOLS:
            if self.which(tool) is None:
                raise StandbyError(actionable_error("local_tool_missing", tool=tool))

        result = self.command_runner.run(["grep", "--help"], check=False, capture_output=True)
        if self.is_busybox_banner(f"{result.stdout or ''}{result.stderr or ''}"):
            raise StandbyError(actionable_error("busybox_grep", location="local system"))

    def validate_local(
        self,
        host: Optional[str],
        port: Union[str, int, None],
        user: str,
        key_path: Optional[str],
    ) -> RemoteTarget:
        self.console.print("[blue]Validating local environment...[/blue]")
        target = self.build_remote_target(host, port, user, key_path)
        self.validate_local_tools()
        self.logger.info("Local preconditions satisfied for %s", target.destination)
        return target

    def validate_remote(self, executor):
        host = executor.target.host
        self.console.print(f"[blue]Validating remote environment on {host}...[/blue]")

        result = executor.run(RemoteCommand.of("rsync", "--version"))
        if result.returncode != 0:
            raise StandbyError(actionable_error("remote_unreachable", host=host))

        result = executor.run(RemoteCommand.of("grep", "--help"))
        if self.is_busybox_banner(executor.combined_output(result)):
            raise StandbyError(
                actionable_error("busybox_grep", location=f"remote system {host}")
            )

        for tool in REMOTE_REQUIRED_TOOLS:
            result = executor.run(RemoteCommand.of("which", tool))
            if result.returncode != 0:
                raise StandbyError(actionable_error("remote_tool_missing", tool=tool, host=host))

        self.console.print("[green]Remote host is reachable and ready.[/green]")
