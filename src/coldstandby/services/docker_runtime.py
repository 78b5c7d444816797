"""Local Docker runtime helpers for coldstandby."""

import subprocess
from typing import Iterable, List, Optional, Sequence, Tuple

from coldstandby.constants import CACHE_CONTAINER_FILTER
from coldstandby.errors import StandbyError


class DockerRuntimeService:
    """Queries and drives the local container runtime through the docker CLI."""

    def __init__(self, logger, console, command_runner):
        self.logger = logger
        self.console = console
        self.command_runner = command_runner

    @staticmethod
    def _lines(output: Optional[str]) -> List[str]:
        return [line.strip() for line in (output or "").splitlines() if line.strip()]

    def list_volume_names(self, name_filter: str) -> List[str]:
        result = self.command_runner.run(
            ["docker", "volume", "ls", "-q", "--filter", f"name={name_filter}"],
            check=True,
            capture_output=True,
        )
        return self._lines(result.stdout)

    def volume_mountpoint(self, volume_name: str) -> Optional[str]:
        result = self.command_runner.run(
            ["docker", "volume", "inspect", "--format", "{{ .Mountpoint }}", volume_name],
            check=False,
            capture_output=True,
        )
        if result.returncode != 0:
            return None
        return (result.stdout or "").strip() or None

    def project_network(self, project_name: str) -> str:
        result = self.command_runner.run(
            ["docker", "network", "ls", "-q", "--filter", f"name={project_name}_"],
            check=True,
            capture_output=True,
        )
        networks = self._lines(result.stdout)
        if not networks:
            raise StandbyError(f"No Docker network found for project '{project_name}'.")
        return networks[0]

    def find_container(self, name_filter: str) -> Optional[str]:
        result = self.command_runner.run(
            ["docker", "ps", "-q", "--filter", f"name={name_filter}"],
            check=True,
            capture_output=True,
        )
        containers = self._lines(result.stdout)
        return containers[0] if containers else None

    def save_cache_state(self, cache_password: str):
        self.console.print("[bold]Running redis-cli save...[/bold]")
        container = self.find_container(CACHE_CONTAINER_FILTER)
        if container is None:
            raise StandbyError("Redis container is not running, cache state was not saved.")

        self.command_runner.run(
            ["docker", "exec", container, "redis-cli", "-a", cache_password, "--no-auth-warning", "save"],
            check=True,
            capture_output=True,
            redact=[cache_password],
        )
        self.console.print("[green]Cache state saved.[/green]")

    def run_container(
        self,
        image: str,
        args: Sequence[str],
        mounts: Iterable[Tuple[str, str]] = (),
        network: Optional[str] = None,
        entrypoint: str = "",
        redact: Optional[Iterable[str]] = None,
    ) -> subprocess.CompletedProcess:
        cmd = ["docker", "run", "--rm"]
        if network:
            cmd.extend(["--network", network])
        cmd.append(f"--entrypoint={entrypoint}")
        for source, target in mounts:
            cmd.extend(["-v", f"{source}:{target}"])
        cmd.append(image)
        cmd.extend(args)
        return self.command_runner.run(cmd, check=False, capture_output=True, redact=redact)
