import logging
import os
from typing import List, Optional

from rich.console import Console

from .constants import BACKUP_STAGING_DIRNAME
from .errors import StandbyError
from .models import (
    DeploymentSettings,
    RemoteTarget,
    RunContext,
    RunStatus,
    Stage,
    TransferMode,
    VolumeDescriptor,
    VolumeKind,
    VolumeOutcome,
)
from .services.archive import ArchiveService
from .services.capabilities import CapabilityProbe
from .services.command_runner import CommandRunner
from .services.deployment import DeploymentLoader
from .services.docker_runtime import DockerRuntimeService
from .services.filesystem import FileSystemService
from .services.lifecycle import RemoteLifecycleController
from .services.manifest import ManifestService
from .services.remote import RemoteExecutor
from .services.snapshot import ConsistentSnapshotEngine
from .services.strategies import (
    AppSpecificVolumeStrategy,
    BackupStrategySelector,
    DatabaseVolumeStrategy,
    GenericVolumeStrategy,
)
from .services.transfer import TransferEngine
from .services.validation import ValidationService
from .services.volumes import VolumeCatalog

console = Console()
logger = logging.getLogger("coldstandby")


class ColdStandby:
    def __init__(
        self,
        remote_host: Optional[str],
        remote_key: Optional[str],
        remote_user: str,
        remote_port: Optional[str] = None,
        transfer_mode: TransferMode = TransferMode.ARCHIVE,
        mailcow_dir: Optional[str] = None,
        manifest_file: Optional[str] = None,
        dry_run: bool = False,
        command_runner: Optional[CommandRunner] = None,
        local_staging_dir: Optional[str] = None,
    ):
        self.remote_host = remote_host
        self.remote_key = remote_key
        self.remote_user = remote_user
        self.remote_port = remote_port
        self.transfer_mode = transfer_mode
        self.mailcow_dir = os.path.abspath(mailcow_dir or os.getcwd())
        self.dry_run = dry_run
        self.local_staging_dir = local_staging_dir

        self.command_runner = command_runner or CommandRunner(logger=logger)
        self.filesystem_service = FileSystemService(logger=logger, console=console)
        self.archive_service = ArchiveService()
        self.validation_service = ValidationService(
            command_runner=self.command_runner,
            logger=logger,
            console=console,
        )
        self.deployment_loader = DeploymentLoader(logger=logger)
        self.capability_probe = CapabilityProbe(logger=logger, console=console)
        self.docker_runtime_service = DockerRuntimeService(
            logger=logger,
            console=console,
            command_runner=self.command_runner,
        )
        self.manifest_service = ManifestService(manifest_file=manifest_file, logger=logger)

        self.target: Optional[RemoteTarget] = None
        self.remote_executor: Optional[RemoteExecutor] = None
        self.transfer_engine: Optional[TransferEngine] = None
        self.lifecycle_controller: Optional[RemoteLifecycleController] = None
        self.strategy_selector: Optional[BackupStrategySelector] = None
        self.deployment: Optional[DeploymentSettings] = None
        self.run_context: Optional[RunContext] = None
        self.volumes: List[VolumeDescriptor] = []
        self.current_stage_name: Optional[str] = None

    def _build_remote_services(self, target: RemoteTarget):
        self.remote_executor = RemoteExecutor(
            target=target,
            command_runner=self.command_runner,
            logger=logger,
            console=console,
        )
        self.transfer_engine = TransferEngine(
            executor=self.remote_executor,
            command_runner=self.command_runner,
            archive_service=self.archive_service,
            filesystem_service=self.filesystem_service,
            logger=logger,
            console=console,
            local_staging_dir=self.local_staging_dir,
        )
        self.lifecycle_controller = RemoteLifecycleController(
            executor=self.remote_executor,
            logger=logger,
            console=console,
        )
        snapshot_engine = ConsistentSnapshotEngine(
            docker_runtime=self.docker_runtime_service,
            filesystem_service=self.filesystem_service,
            logger=logger,
            console=console,
        )
        self.strategy_selector = BackupStrategySelector(
            {
                VolumeKind.DATABASE: DatabaseVolumeStrategy(
                    self.transfer_engine, snapshot_engine, logger, console
                ),
                VolumeKind.APP_SPECIFIC: AppSpecificVolumeStrategy(self.transfer_engine, logger, console),
                VolumeKind.GENERIC: GenericVolumeStrategy(self.transfer_engine, logger, console),
            }
        )

    def _build_metadata(self):
        return {
            "remote_host": self.remote_host,
            "remote_user": self.remote_user,
            "remote_port": self.remote_port,
            "transfer_mode": self.transfer_mode.value,
            "mailcow_dir": self.mailcow_dir,
            "dry_run": self.dry_run,
        }

    def validate_local(self):
        self.target = self.validation_service.validate_local(
            host=self.remote_host,
            port=self.remote_port,
            user=self.remote_user,
            key_path=self.remote_key,
        )
        self._build_remote_services(self.target)

    def load_deployment(self):
        self.deployment = self.deployment_loader.load(self.mailcow_dir)
        console.print(
            f"[bold]Found compose project name {self.deployment.project_name} "
            f"for {self.deployment.hostname or '<unknown host>'}[/bold]"
        )
        if self.deployment.sql_image:
            console.print(f"[bold]Found SQL {self.deployment.sql_image}[/bold]")

    def validate_remote(self):
        self.validation_service.validate_remote(self.remote_executor)

    def probe_capabilities(self):
        self.run_context = self.capability_probe.build_run_context(
            executor=self.remote_executor,
            deployment=self.deployment,
            transfer_mode=self.transfer_mode,
        )
        self.manifest_service.set_environment(
            run_id=self.run_context.run_id,
            compose_flavor=self.run_context.compose_flavor.value,
            local_arch=self.run_context.local_arch,
            remote_arch=self.run_context.remote_arch,
        )

    def enumerate_volumes(self):
        catalog = VolumeCatalog(
            docker_runtime=self.docker_runtime_service,
            classifier=BackupStrategySelector.classify,
            logger=logger,
        )
        self.volumes = list(catalog.iter_volumes(self.run_context.project_name))
        database_volumes = [volume.name for volume in self.volumes if volume.kind is VolumeKind.DATABASE]
        if len(database_volumes) > 1:
            raise StandbyError(
                f"Found more than one database volume ({', '.join(database_volumes)}); "
                "refusing to guess which one to back up."
            )
        logger.info(
            "Found %s volume(s) for project %s",
            len(self.volumes),
            self.run_context.project_name,
        )

    def print_plan(self):
        context = self.run_context
        console.print(
            f"[bold blue]Replication plan for {context.project_name} -> "
            f"{context.target.destination}[/bold blue]"
        )
        console.print(f"  base directory {context.deployment.base_dir}: rsync mirror")
        for volume in self.volumes:
            strategy = self.strategy_selector.select(volume)
            console.print(
                f"  {volume.name} ({volume.kind.value}) {volume.mountpoint}: "
                f"{strategy.describe(context, volume)}"
            )
        console.print("[yellow]Dry run: nothing was changed locally or on the remote.[/yellow]")

    def prepare_remote_base(self):
        console.print("[bold]Preparing remote...[/bold]")
        self.transfer_engine.ensure_remote_directory(self.run_context.deployment.base_dir)

    def sync_base_directory(self):
        base_dir = self.run_context.deployment.base_dir
        self.transfer_engine.sync(
            base_dir,
            base_dir,
            "mailcow base directory",
            excludes=[f"/{BACKUP_STAGING_DIRNAME}/"],
        )

    def provision_remote_stack(self):
        self.lifecycle_controller.provision_stack(self.run_context)

    def save_cache_state(self):
        self.docker_runtime_service.save_cache_state(self.run_context.deployment.cache_password)

    def database_snapshot(self):
        for volume in self.volumes:
            if volume.kind is VolumeKind.DATABASE:
                self.strategy_selector.select(volume).prepare(self.run_context, volume)

    def transfer_volumes(self):
        for volume in self.volumes:
            strategy = self.strategy_selector.select(volume)
            outcome = strategy.transfer(self.run_context, volume)
            self.manifest_service.record_volume(
                name=volume.name,
                kind=volume.kind.value,
                outcome=outcome.value,
                mode=self.run_context.transfer_mode.value,
            )
            if outcome is VolumeOutcome.SKIPPED:
                self.manifest_service.add_warning(
                    f"Skipped {volume.name}: architecture mismatch "
                    f"({self.run_context.local_arch} != {self.run_context.remote_arch})"
                )
            else:
                console.print("[green]Completed[/green]")

    def restart_remote_daemon(self):
        self.lifecycle_controller.restart_daemon(self.run_context)

    def pull_remote_images(self):
        self.lifecycle_controller.pull_images(self.run_context)

    def run_remote_update(self):
        self.lifecycle_controller.run_update(self.run_context)

    def build_pipeline(self) -> List[Stage]:
        preflight = [
            Stage("validate_local", self.validate_local),
            Stage("load_deployment", self.load_deployment),
            Stage("validate_remote", self.validate_remote),
            Stage("probe_capabilities", self.probe_capabilities),
            Stage("enumerate_volumes", self.enumerate_volumes),
        ]
        if self.dry_run:
            return preflight + [Stage("print_plan", self.print_plan)]

        return preflight + [
            Stage("prepare_remote_base", self.prepare_remote_base),
            Stage("sync_base_directory", self.sync_base_directory),
            Stage("provision_remote_stack", self.provision_remote_stack, fatal=False),
            Stage("save_cache_state", self.save_cache_state, fatal=False),
            Stage("database_snapshot", self.database_snapshot),
            Stage("transfer_volumes", self.transfer_volumes),
            Stage("restart_remote_daemon", self.restart_remote_daemon),
            Stage("pull_remote_images", self.pull_remote_images, fatal=False),
            Stage("run_remote_update", self.run_remote_update, fatal=False),
        ]

    def _run_stage(self, stage: Stage):
        self.manifest_service.step_started(stage.name)
        self.current_stage_name = stage.name

        try:
            stage.action()
        except StandbyError as exc:
            if stage.fatal:
                self.manifest_service.step_finished(stage.name, "failed", error=str(exc))
                raise
            console.print(f"[bold red]Error (continuing):[/bold red] {exc}")
            logger.error("Stage %s failed, continuing: %s", stage.name, exc)
            self.manifest_service.step_finished(stage.name, "reported", error=str(exc))
            self.manifest_service.add_warning(f"{stage.name}: {exc}")
        except Exception as exc:
            self.manifest_service.step_finished(stage.name, "failed", error=str(exc))
            raise
        else:
            self.manifest_service.step_finished(stage.name, "success")

        self.current_stage_name = None

    def cleanup(self):
        if self.strategy_selector is not None:
            self.strategy_selector.release_all()
        if not self.dry_run:
            self.filesystem_service.cleanup_dir(os.path.join(self.mailcow_dir, BACKUP_STAGING_DIRNAME))

    def run(self) -> int:
        exit_code = 1
        status = RunStatus.FAILED
        error: Optional[str] = None

        try:
            logger.info("Starting cold standby replication to %s...", self.remote_host)
            console.print(
                "[yellow]If this run is scheduled by cron or a timer AND you use block-level "
                "snapshots on the standby, make sure both do not run at the same time. "
                "Snapshots should run AFTER this run finished.[/yellow]"
            )
            self.manifest_service.start_run(metadata=self._build_metadata())

            for stage in self.build_pipeline():
                self._run_stage(stage)

            reported = self.manifest_service.reported_steps()
            if reported:
                status = RunStatus.DEGRADED
                console.print(
                    "[bold yellow]Done with warnings:[/bold yellow] data is replicated, but "
                    f"{', '.join(reported)} failed. The standby may run stale images."
                )
                logger.warning("Run finished degraded: %s", ", ".join(reported))
            else:
                status = RunStatus.SUCCESS
                console.print("[green]Done[/green]")
            exit_code = 0
            return exit_code

        except KeyboardInterrupt:
            console.print("[bold red]Operation cancelled by user.[/bold red]")
            logger.info("Operation cancelled by user")
            status = RunStatus.ABORTED
            error = "Operation cancelled by user."
            return exit_code
        except StandbyError as exc:
            console.print(f"[bold red]Error:[/bold red] {exc}")
            logger.error("Stage %s failed: %s", self.current_stage_name or "run", exc)
            error = str(exc)
            return exit_code
        except Exception as exc:
            console.print(f"[bold red]Unexpected error:[/bold red] {exc}")
            logger.exception("Unexpected error")
            error = str(exc)
            return exit_code
        finally:
            self.cleanup()
            self.manifest_service.finalize(status.value, error=error)
