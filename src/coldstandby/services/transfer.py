"""Volume transfer to the standby host for coldstandby."""

import os
import posixpath
import tempfile
from dataclasses import dataclass
from typing import Iterable, Optional

from coldstandby.constants import REMOTE_STAGING_DIR, RSYNC_VANISHED_SOURCE_FILES
from coldstandby.errors import StandbyError
from coldstandby.models import RunContext, TransferMode
from coldstandby.services.remote import RemoteCommand


@dataclass(frozen=True)
class TransferResult:
    mode: TransferMode
    source: str
    destination: str
    changed_entries: Optional[int] = None


class TransferEngine:
    """Mirrors a local directory onto the same path on the remote host.

    Archive mode packs the directory, copies the tarball with scp and unpacks it
    remotely. Sync mode runs rsync over SSH. Either way the destination ends up
    holding exactly the source's contents, or a `StandbyError` is raised.
    """

    def __init__(
        self,
        executor,
        command_runner,
        archive_service,
        filesystem_service,
        logger,
        console,
        local_staging_dir: Optional[str] = None,
    ):
        self.executor = executor
        self.command_runner = command_runner
        self.archive_service = archive_service
        self.filesystem_service = filesystem_service
        self.logger = logger
        self.console = console
        self.local_staging_dir = local_staging_dir or tempfile.gettempdir()

    def ensure_remote_directory(self, path: str):
        result = self.executor.run_with_escalation_fallback(RemoteCommand.of("mkdir", "-p", path))
        if result.returncode != 0:
            raise StandbyError(
                f"Could not prepare remote directory {path}: "
                f"{self.executor.combined_output(result).strip() or 'permission denied'}"
            )

    def transfer(self, context: RunContext, source_dir: str, destination: str, label: str) -> TransferResult:
        if context.transfer_mode is TransferMode.ARCHIVE:
            archive_name = f"{label}_{context.timestamp}.tar.gz"
            return self.archive_transfer(source_dir, destination, label, archive_name)
        return self.sync(source_dir, destination, label)

    def sync(
        self,
        source_dir: str,
        destination: str,
        label: str,
        excludes: Iterable[str] = (),
    ) -> TransferResult:
        self.console.print(f"[bold]Synchronizing {label}...[/bold]")
        cmd = ["rsync", "--delete", "-aH", "--itemize-changes"]
        for pattern in excludes:
            cmd.extend(["--exclude", pattern])
        cmd += [
            "-e",
            self.executor.rsync_shell(),
            source_dir.rstrip("/") + "/",
            self.executor.remote_path(destination),
        ]
        result = self.command_runner.run(cmd, check=False, capture_output=True)

        if result.returncode == RSYNC_VANISHED_SOURCE_FILES:
            self.logger.warning("Some files of %s vanished during transfer (source is live).", label)
        elif result.returncode != 0:
            stderr = (result.stderr or "").strip()
            raise StandbyError(
                f"Could not transfer {label} to remote (rsync exit {result.returncode})"
                + (f": {stderr}" if stderr else "")
            )

        changes = [line for line in (result.stdout or "").splitlines() if line.strip()]
        self.logger.debug("rsync reported %s changed entries for %s", len(changes), label)
        return TransferResult(
            mode=TransferMode.SYNC,
            source=source_dir,
            destination=destination,
            changed_entries=len(changes),
        )

    def _run_as_root(self, command: RemoteCommand):
        """Clearing and extracting need root so extracted files keep their owners."""
        return self.executor.run(command, elevate=self.executor.target.user != "root")

    def _discard_remote_archive(self, remote_archive: str):
        result = self.executor.run_with_escalation_fallback(RemoteCommand.of("rm", "-f", remote_archive))
        if result.returncode != 0:
            self.logger.warning("Could not remove remote staging archive %s", remote_archive)

    def archive_transfer(
        self,
        source_dir: str,
        destination: str,
        label: str,
        archive_name: str,
    ) -> TransferResult:
        self.console.print(f"[bold]Archiving and transferring {label} from local {source_dir}...[/bold]")
        archive_path = os.path.join(self.local_staging_dir, archive_name)
        remote_archive = posixpath.join(REMOTE_STAGING_DIR, archive_name)

        try:
            self.archive_service.create_tarball(source_dir, archive_path)

            result = self.executor.copy_to_remote(archive_path, REMOTE_STAGING_DIR)
            if result.returncode != 0:
                self._discard_remote_archive(remote_archive)
                raise StandbyError(f"Could not transfer {label} archive to remote.")

            result = self._run_as_root(
                RemoteCommand.of("find", destination, "-mindepth", "1", "-delete")
            )
            if result.returncode != 0:
                self._discard_remote_archive(remote_archive)
                raise StandbyError(f"Could not clear remote destination {destination} for {label}.")

            result = self._run_as_root(
                RemoteCommand.of("tar", "-xzf", remote_archive, "-C", destination)
            )
            if result.returncode != 0:
                self._discard_remote_archive(remote_archive)
                raise StandbyError(f"Could not extract {label} on remote.")

            result = self.executor.run_with_escalation_fallback(RemoteCommand.of("rm", "-f", remote_archive))
            if result.returncode != 0:
                raise StandbyError(f"Could not remove remote staging archive {remote_archive}.")
        finally:
            self.filesystem_service.remove_file(archive_path)

        return TransferResult(mode=TransferMode.ARCHIVE, source=source_dir, destination=destination)
