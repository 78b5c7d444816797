"""Actionable error catalog for coldstandby."""

from typing import Dict

_ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    "key_not_configured": {
        "what": "REMOTE_SSH_KEY is not set.",
        "next": "Pass `--remote-key` or export REMOTE_SSH_KEY with the path to the private key.",
    },
    "key_empty": {
        "what": "Keyfile {path} is missing or empty.",
        "next": "Point REMOTE_SSH_KEY at a non-empty private key file.",
    },
    "key_insecure_mode": {
        "what": "Keyfile {path} has insecure permissions (mode={mode}, expected=600).",
        "next": "Run `chmod 600 {path}` and retry.",
    },
    "invalid_port": {
        "what": "REMOTE_SSH_PORT is set but not an integer between 0 and 65535 (got `{port}`).",
        "next": "Unset REMOTE_SSH_PORT or provide a valid TCP port.",
    },
    "host_not_configured": {
        "what": "REMOTE_SSH_HOST cannot be empty.",
        "next": "Pass `--remote-host` or export REMOTE_SSH_HOST.",
    },
    "local_tool_missing": {
        "what": "Cannot find {tool} in local PATH.",
        "next": "Install {tool} on this host and retry.",
    },
    "remote_tool_missing": {
        "what": "Cannot find {tool} in remote PATH on {host}.",
        "next": "Install {tool} on the standby host and retry.",
    },
    "busybox_grep": {
        "what": "BusyBox grep detected on {location}.",
        "next": "Install GNU grep on {location} and retry.",
    },
    "remote_unreachable": {
        "what": "Could not verify connection to {host}.",
        "next": "Check SSH access and that rsync >= 3.1.0 is installed on the remote system.",
    },
    "compose_missing": {
        "what": "Cannot find any Docker Compose on remote {host}.",
        "next": "Install the Docker Compose plugin (`docker compose`) or docker-compose v2.",
    },
    "database_backup_failed": {
        "what": "Could not create MariaDB backup on source.",
        "next": "Check that the database container is running and DBROOT in mailcow.conf is valid.",
    },
    "database_prepare_failed": {
        "what": "Could not prepare MariaDB backup for transfer.",
        "next": "Inspect the mariabackup output with `--verbose` and retry the run.",
    },
    "daemon_restart_failed": {
        "what": "Could not restart Docker daemon on remote {host}.",
        "next": "Grant the SSH user passwordless sudo for `systemctl restart docker` and re-run.",
    },
}


def actionable_error(code: str, **kwargs: str) -> str:
    if code not in _ERROR_MESSAGES:
        raise KeyError(f"Unknown error catalog key: {code}")

    template = _ERROR_MESSAGES[code]
    what = template["what"].format(**kwargs)
    next_step = template["next"].format(**kwargs)
    return f"{what} Suggested action: {next_step}"
