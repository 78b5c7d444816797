"""Remote capability detection for coldstandby."""

import platform
import time
import uuid
from datetime import datetime

from packaging import version

from coldstandby.constants import ARCH_WARNING_PAUSE_SECONDS
from coldstandby.errors import StandbyError
from coldstandby.errors_catalog import actionable_error
from coldstandby.models import ComposeFlavor, RunContext
from coldstandby.services.remote import RemoteCommand


class CapabilityProbe:
    """Resolves compose flavor and CPU architectures once per run."""

    def __init__(self, logger, console, machine=platform.machine):
        self.logger = logger
        self.console = console
        self.machine = machine

    @staticmethod
    def _is_compose_v2(raw_version: str) -> bool:
        try:
            return version.parse(raw_version.strip().lstrip("v")).major == 2
        except version.InvalidVersion:
            return False

    def resolve_compose_flavor(self, executor) -> ComposeFlavor:
        result = executor.run(RemoteCommand.of("docker", "compose", "version"))
        if result.returncode == 0:
            self.console.print("INFO: Using native docker compose on remote")
            return ComposeFlavor.NATIVE

        result = executor.run(RemoteCommand.of("docker-compose", "version", "--short"))
        if result.returncode == 0 and self._is_compose_v2(result.stdout or ""):
            self.console.print("INFO: Using standalone docker compose on remote")
            return ComposeFlavor.STANDALONE

        raise StandbyError(actionable_error("compose_missing", host=executor.target.host))

    def local_architecture(self) -> str:
        return self.machine()

    def remote_architecture(self, executor) -> str:
        result = executor.run(RemoteCommand.of("uname", "-m"))
        remote_arch = (result.stdout or "").strip()
        if result.returncode != 0 or not remote_arch:
            raise StandbyError(f"Could not determine CPU architecture of {executor.target.host}.")
        return remote_arch

    def warn_architecture_mismatch(self, local_arch: str, remote_arch: str):
        self.logger.warning("Architecture mismatch: local=%s remote=%s", local_arch, remote_arch)
        self.console.print()
        self.console.print("[bold yellow]!!!!!!!!!!!!!!!!!!!!!!!!!! CAUTION !!!!!!!!!!!!!!!!!!!!!!!!!![/bold yellow]")
        self.console.print(
            "[italic yellow]Detected Architecture mismatch from source to destination...[/italic yellow]"
        )
        self.console.print(
            "[italic yellow]Your backup is transferred but some volumes might be skipped![/italic yellow]"
        )
        self.console.print("[bold yellow]!!!!!!!!!!!!!!!!!!!!!!!!!! CAUTION !!!!!!!!!!!!!!!!!!!!!!!!!![/bold yellow]")
        self.console.print()
        time.sleep(ARCH_WARNING_PAUSE_SECONDS)

    def build_run_context(self, executor, deployment, transfer_mode) -> RunContext:
        compose_flavor = self.resolve_compose_flavor(executor)
        local_arch = self.local_architecture()
        remote_arch = self.remote_architecture(executor)
        architectures_match = local_arch == remote_arch
        if not architectures_match:
            self.warn_architecture_mismatch(local_arch, remote_arch)

        return RunContext(
            run_id=uuid.uuid4().hex[:10],
            timestamp=datetime.now().strftime("%Y-%m-%d_%H_%M_%S"),
            target=executor.target,
            deployment=deployment,
            compose_flavor=compose_flavor,
            local_arch=local_arch,
            remote_arch=remote_arch,
            architectures_match=architectures_match,
            transfer_mode=transfer_mode,
        )
