import getpass
import logging
import os

import click
from rich.logging import RichHandler

from .core import ColdStandby
from .errors import StandbyError
from .models import TransferMode
from .services.config_loader import ConfigLoader


def _resolve_option(cli_value, config, key, default=None):
    if cli_value is not None:
        return cli_value
    if key in config:
        return config[key]
    return default


logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[RichHandler(rich_tracebacks=True, show_level=False, show_path=False)],
)


@click.command()
@click.option(
    "--remote-host",
    required=False,
    envvar="REMOTE_SSH_HOST",
    help="Standby host to replicate to.",
)
@click.option(
    "--remote-port",
    required=False,
    envvar="REMOTE_SSH_PORT",
    help="SSH port on the standby host. Omitted from ssh/scp when unset.",
)
@click.option(
    "--remote-user",
    required=False,
    envvar="REMOTE_SSH_USER",
    help="SSH user on the standby host (default: current user).",
)
@click.option(
    "--remote-key",
    required=False,
    envvar="REMOTE_SSH_KEY",
    type=click.Path(),
    help="Private key used for every ssh/scp/rsync call. Must have mode 600.",
)
@click.option(
    "--use-tar/--use-rsync",
    "use_tar",
    default=None,
    envvar="USE_TAR_FOR_VOLUMES",
    help="Ship volumes as tar archives (default) or mirror them with rsync.",
)
@click.option(
    "--mailcow-dir",
    required=False,
    type=click.Path(),
    help="mailcow-dockerized base directory (default: current directory).",
)
@click.option(
    "--config",
    required=False,
    type=click.Path(),
    help="Path to a YAML configuration file. Defaults to .coldstandby.yml if present.",
)
@click.option(
    "--manifest-file",
    required=False,
    type=click.Path(),
    help="Write a JSON run manifest to this path.",
)
@click.option(
    "--dry-run",
    is_flag=True,
    default=None,
    help="Run validation and print the replication plan without changing anything.",
)
@click.option("--verbose", is_flag=True, default=None, help="Enable verbose logging")
@click.option("--log-file", type=click.Path(), help="Path to log file")
def main(
    remote_host,
    remote_port,
    remote_user,
    remote_key,
    use_tar,
    mailcow_dir,
    config,
    manifest_file,
    dry_run,
    verbose,
    log_file,
):
    """Replicate a mailcow deployment to a cold-standby host."""
    logger = logging.getLogger("coldstandby")

    try:
        config_loader = ConfigLoader()
        resolved_config = config
        if resolved_config is None:
            default_config_path = os.path.join(os.getcwd(), ".coldstandby.yml")
            if os.path.exists(default_config_path):
                resolved_config = default_config_path

        config_values = config_loader.load(resolved_config)
    except StandbyError as exc:
        raise click.ClickException(str(exc)) from exc

    remote_host = _resolve_option(remote_host, config_values, "remote_host")
    remote_port = _resolve_option(remote_port, config_values, "remote_port")
    remote_user = _resolve_option(remote_user, config_values, "remote_user") or getpass.getuser()
    remote_key = _resolve_option(remote_key, config_values, "remote_key")
    use_tar = bool(_resolve_option(use_tar, config_values, "use_tar_for_volumes", default=True))
    mailcow_dir = _resolve_option(mailcow_dir, config_values, "mailcow_dir", default=os.getcwd())
    manifest_file = _resolve_option(manifest_file, config_values, "manifest_file")
    dry_run = bool(_resolve_option(dry_run, config_values, "dry_run", default=False))
    verbose = bool(_resolve_option(verbose, config_values, "verbose", default=False))
    log_file = _resolve_option(log_file, config_values, "log_file")

    if remote_port is not None:
        remote_port = str(remote_port)

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(logging.INFO)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
        file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
        logger.addHandler(file_handler)

    standby = ColdStandby(
        remote_host=remote_host,
        remote_key=remote_key,
        remote_user=remote_user,
        remote_port=remote_port,
        transfer_mode=TransferMode.ARCHIVE if use_tar else TransferMode.SYNC,
        mailcow_dir=mailcow_dir,
        manifest_file=manifest_file,
        dry_run=dry_run,
    )

    raise SystemExit(standby.run())


if __name__ == "__main__":
    main()
