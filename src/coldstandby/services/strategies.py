"""Per-volume backup strategies for coldstandby."""

import time
from typing import Dict, Optional

from coldstandby.constants import (
    APP_SPECIFIC_VOLUME_MARKER,
    ARCH_WARNING_PAUSE_SECONDS,
    DATABASE_VOLUME_MARKER,
)
from coldstandby.models import (
    ArtifactState,
    BackupArtifact,
    RunContext,
    VolumeDescriptor,
    VolumeKind,
    VolumeOutcome,
)


class BackupStrategy:
    """How one kind of volume is readied and moved to the standby host."""

    def __init__(self, transfer_engine, logger, console):
        self.transfer_engine = transfer_engine
        self.logger = logger
        self.console = console

    def prepare(self, context: RunContext, volume: VolumeDescriptor):
        return None

    def transfer(self, context: RunContext, volume: VolumeDescriptor) -> VolumeOutcome:
        raise NotImplementedError

    def describe(self, context: RunContext, volume: VolumeDescriptor) -> str:
        return f"{context.transfer_mode.value} transfer"

    def release(self):
        return None


class GenericVolumeStrategy(BackupStrategy):
    def transfer(self, context: RunContext, volume: VolumeDescriptor) -> VolumeOutcome:
        self.console.print(f"[bold]Creating remote mountpoint {volume.mountpoint} for {volume.name}...[/bold]")
        self.transfer_engine.ensure_remote_directory(volume.mountpoint)
        self.transfer_engine.transfer(context, volume.mountpoint, volume.mountpoint, volume.name)
        return VolumeOutcome.TRANSFERRED


class AppSpecificVolumeStrategy(GenericVolumeStrategy):
    """Architecture-bound data: only copied when both hosts share a CPU architecture."""

    def describe(self, context: RunContext, volume: VolumeDescriptor) -> str:
        if not context.architectures_match:
            return f"skip ({context.local_arch} -> {context.remote_arch})"
        return super().describe(context, volume)

    def transfer(self, context: RunContext, volume: VolumeDescriptor) -> VolumeOutcome:
        if context.architectures_match:
            return super().transfer(context, volume)

        self.console.print(
            f"[bold red]Skipping {volume.name} from local machine due to incompatibility "
            "between different architectures...[/bold red]"
        )
        self.logger.warning(
            "Skipped %s: local arch %s != remote arch %s",
            volume.name,
            context.local_arch,
            context.remote_arch,
        )
        time.sleep(ARCH_WARNING_PAUSE_SECONDS)
        return VolumeOutcome.SKIPPED


class DatabaseVolumeStrategy(BackupStrategy):
    """Ships a prepared mariabackup instead of the live data files."""

    def __init__(self, transfer_engine, snapshot_engine, logger, console):
        super().__init__(transfer_engine, logger, console)
        self.snapshot_engine = snapshot_engine
        self.artifact: Optional[BackupArtifact] = None

    def describe(self, context: RunContext, volume: VolumeDescriptor) -> str:
        return f"consistent snapshot + {super().describe(context, volume)}"

    def prepare(self, context: RunContext, volume: VolumeDescriptor) -> BackupArtifact:
        self.artifact = self.snapshot_engine.capture(context, volume)
        return self.artifact

    def transfer(self, context: RunContext, volume: VolumeDescriptor) -> VolumeOutcome:
        if self.artifact is None or self.artifact.state is not ArtifactState.PREPARED:
            self.prepare(context, volume)

        try:
            self.console.print(f"[bold]Creating remote mountpoint {volume.mountpoint} for {volume.name}...[/bold]")
            self.transfer_engine.ensure_remote_directory(volume.mountpoint)
            self.transfer_engine.transfer(context, self.artifact.path, volume.mountpoint, volume.name)
            self.artifact.state = ArtifactState.TRANSFERRED
        finally:
            self.release()
        return VolumeOutcome.TRANSFERRED

    def release(self):
        if self.artifact is not None:
            self.snapshot_engine.discard(self.artifact)
            self.artifact = None


class BackupStrategySelector:
    """Classifies volumes by name once and hands out the matching strategy."""

    def __init__(self, strategies: Dict[VolumeKind, BackupStrategy]):
        self.strategies = strategies

    @staticmethod
    def classify(volume_name: str) -> VolumeKind:
        if DATABASE_VOLUME_MARKER in volume_name:
            return VolumeKind.DATABASE
        if APP_SPECIFIC_VOLUME_MARKER in volume_name:
            return VolumeKind.APP_SPECIFIC
        return VolumeKind.GENERIC

    def select(self, volume: VolumeDescriptor) -> BackupStrategy:
        return self.strategies[volume.kind]

    def release_all(self):
        for strategy in self.strategies.values():
            strategy.release()
