"""Consistent physical backup of the MariaDB volume for coldstandby."""

import os

from coldstandby.constants import (
    BACKUP_CONTAINER_DIR,
    BACKUP_STAGING_DIRNAME,
    DATABASE_DATA_DIR,
    DATABASE_GID,
    DATABASE_HOST,
    DATABASE_UID,
)
from coldstandby.errors import StandbyError
from coldstandby.errors_catalog import actionable_error
from coldstandby.models import ArtifactState, BackupArtifact, RunContext, VolumeDescriptor


class ConsistentSnapshotEngine:
    """Captures the live database with mariabackup in two phases.

    The backup phase copies the data files from a read-only mount of the
    volume while the server keeps running; the prepare phase replays the redo
    log so the staging directory becomes a directly usable data directory.
    Both phases must succeed, otherwise the staging directory is removed and
    `StandbyError` is raised.
    """

    def __init__(self, docker_runtime, filesystem_service, logger, console):
        self.docker_runtime = docker_runtime
        self.filesystem_service = filesystem_service
        self.logger = logger
        self.console = console

    @staticmethod
    def staging_dir(context: RunContext) -> str:
        return os.path.join(context.deployment.base_dir, BACKUP_STAGING_DIRNAME)

    def _backup(self, context: RunContext, volume: VolumeDescriptor, artifact: BackupArtifact, network: str):
        password = context.deployment.db_root_password
        result = self.docker_runtime.run_container(
            context.deployment.sql_image,
            [
                "mariabackup",
                "--host",
                DATABASE_HOST,
                "--user",
                "root",
                "--password",
                password,
                "--backup",
                f"--target-dir={BACKUP_CONTAINER_DIR}",
            ],
            mounts=[(volume.name, f"{DATABASE_DATA_DIR}:ro"), (artifact.path, BACKUP_CONTAINER_DIR)],
            network=network,
            redact=[password],
        )
        if result.returncode != 0:
            self.logger.debug("mariabackup --backup stderr: %s", (result.stderr or "").strip())
            raise StandbyError(actionable_error("database_backup_failed"))
        artifact.state = ArtifactState.BACKED_UP

    def _prepare(self, context: RunContext, artifact: BackupArtifact, network: str):
        result = self.docker_runtime.run_container(
            context.deployment.sql_image,
            ["mariabackup", "--prepare", f"--target-dir={BACKUP_CONTAINER_DIR}"],
            mounts=[(artifact.path, BACKUP_CONTAINER_DIR)],
            network=network,
        )
        if result.returncode != 0:
            self.logger.debug("mariabackup --prepare stderr: %s", (result.stderr or "").strip())
            raise StandbyError(actionable_error("database_prepare_failed"))
        artifact.state = ArtifactState.PREPARED

    def capture(self, context: RunContext, volume: VolumeDescriptor) -> BackupArtifact:
        if not context.deployment.sql_image:
            raise StandbyError("Cannot back up the database: no MariaDB/MySQL image in docker-compose.yml.")

        artifact = BackupArtifact(path=self.staging_dir(context))
        self.filesystem_service.cleanup_dir(artifact.path)
        self.console.print("[bold]Creating consistent backup of MariaDB volume...[/bold]")
        self.logger.info("Found SQL image %s", context.deployment.sql_image)

        try:
            os.makedirs(artifact.path)
            network = self.docker_runtime.project_network(context.project_name)
            self._backup(context, volume, artifact, network)
            self._prepare(context, artifact, network)
            try:
                self.filesystem_service.chown_tree(artifact.path, DATABASE_UID, DATABASE_GID)
            except OSError as exc:
                raise StandbyError(f"Could not hand MariaDB backup to uid {DATABASE_UID}: {exc}") from exc
        except Exception:
            self.discard(artifact)
            raise

        return artifact

    def discard(self, artifact: BackupArtifact):
        self.filesystem_service.cleanup_dir(artifact.path)
        artifact.state = ArtifactState.REMOVED
