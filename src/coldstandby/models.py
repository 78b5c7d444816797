"""Shared domain models for coldstandby."""

import os
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, List, Optional

from .constants import COMPOSE_FILE

_PROJECT_NAME_DISALLOWED = re.compile(r"[^A-Za-z0-9_-]")


def sanitize_project_name(raw: Optional[str]) -> str:
    """Strip everything outside the alphanumeric/hyphen/underscore charset."""
    return _PROJECT_NAME_DISALLOWED.sub("", raw or "")


class ComposeFlavor(Enum):
    NATIVE = "native"
    STANDALONE = "standalone"

    @property
    def command(self) -> List[str]:
        if self is ComposeFlavor.NATIVE:
            return ["docker", "compose"]
        return ["docker-compose"]


class TransferMode(Enum):
    ARCHIVE = "archive"
    SYNC = "sync"


class VolumeKind(Enum):
    DATABASE = "database"
    APP_SPECIFIC = "app_specific"
    GENERIC = "generic"


class VolumeOutcome(Enum):
    TRANSFERRED = "transferred"
    SKIPPED = "skipped"


class ArtifactState(Enum):
    EMPTY = "empty"
    BACKED_UP = "backed_up"
    PREPARED = "prepared"
    TRANSFERRED = "transferred"
    REMOVED = "removed"


class RunStatus(Enum):
    SUCCESS = "success"
    DEGRADED = "degraded"
    FAILED = "failed"
    ABORTED = "aborted"


@dataclass(frozen=True)
class RemoteTarget:
    """SSH coordinates of the standby host."""

    host: str
    user: str
    key_path: str
    port: Optional[int] = None

    @property
    def destination(self) -> str:
        return f"{self.user}@{self.host}"


@dataclass(frozen=True)
class DeploymentSettings:
    """Values read from the deployment's own configuration files."""

    base_dir: str
    project_name: str
    hostname: Optional[str]
    db_root_password: str
    cache_password: str
    sql_image: Optional[str]

    @property
    def compose_file(self) -> str:
        return os.path.join(self.base_dir, COMPOSE_FILE)


@dataclass(frozen=True)
class VolumeDescriptor:
    name: str
    kind: VolumeKind
    mountpoint: str


@dataclass
class BackupArtifact:
    """Staging directory of a physical database backup and its lifecycle state."""

    path: str
    state: ArtifactState = ArtifactState.EMPTY


@dataclass(frozen=True)
class RunContext:
    """Facts resolved once per run and shared read-only by every later stage."""

    run_id: str
    timestamp: str
    target: RemoteTarget
    deployment: DeploymentSettings
    compose_flavor: ComposeFlavor
    local_arch: str
    remote_arch: str
    architectures_match: bool
    transfer_mode: TransferMode

    @property
    def project_name(self) -> str:
        return self.deployment.project_name

    @property
    def compose_command(self) -> List[str]:
        return self.compose_flavor.command + ["-f", self.deployment.compose_file]


@dataclass(frozen=True)
class Stage:
    """Named pipeline step; non-fatal stages are reported and the run goes on."""

    name: str
    action: Callable[[], Any]
    fatal: bool = True
