"""Remote stack lifecycle for coldstandby."""

from coldstandby.constants import UPDATE_SCRIPT
from coldstandby.errors import StandbyError
from coldstandby.errors_catalog import actionable_error
from coldstandby.models import RunContext
from coldstandby.services.remote import RemoteCommand


class RemoteLifecycleController:
    """Brings the standby's container runtime in line with the replicated data."""

    def __init__(self, executor, logger, console):
        self.executor = executor
        self.logger = logger
        self.console = console

    def provision_stack(self, context: RunContext):
        """Create networks, volumes and containers without starting them."""
        self.console.print("[yellow]Creating networks, volumes and containers on remote...[/yellow]")
        result = self.executor.run(
            RemoteCommand.of(*context.compose_command, "create"),
            capture_output=False,
        )
        if result.returncode != 0:
            raise StandbyError("Could not create networks, volumes and containers on remote.")

    def restart_daemon(self, context: RunContext):
        self.console.print("[bold]Restarting Docker daemon on remote to detect new volumes...[/bold]")
        result = self.executor.run_with_escalation_fallback(
            RemoteCommand.of("systemctl", "restart", "docker")
        )
        if result.returncode != 0:
            raise StandbyError(actionable_error("daemon_restart_failed", host=context.target.host))
        self.console.print("[green]OK[/green]")

    def pull_images(self, context: RunContext):
        self.console.print("[yellow]Pulling images on remote...[/yellow]")
        self.console.print("[yellow]Process is NOT stuck! Please wait...[/yellow]")
        result = self.executor.run(
            RemoteCommand.of(*context.compose_command, "pull", "--quiet"),
            capture_output=False,
        )
        if result.returncode != 0:
            raise StandbyError("Could not pull images on remote.")

    def run_update(self, context: RunContext):
        self.console.print("[bold]Executing update script and forcing garbage cleanup on remote...[/bold]")
        result = self.executor.run_with_escalation_fallback(
            RemoteCommand.of(UPDATE_SCRIPT, "-f", "--gc", cwd=context.deployment.base_dir),
            capture_output=False,
        )
        if result.returncode != 0:
            raise StandbyError("Could not cleanup old images on remote.")
