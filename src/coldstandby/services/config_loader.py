"""Configuration loader for coldstandby."""

from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from coldstandby.errors import StandbyError


class ConfigLoader:
    """Loads YAML configuration files for CLI defaults."""

    SUPPORTED_KEYS = {
        "remote_host",
        "remote_port",
        "remote_user",
        "remote_key",
        "use_tar_for_volumes",
        "mailcow_dir",
        "manifest_file",
        "dry_run",
        "verbose",
        "log_file",
    }

    BOOLEAN_KEYS = {"use_tar_for_volumes", "dry_run", "verbose"}

    def load(self, config_path: Optional[str]) -> Dict[str, Any]:
        if not config_path:
            return {}

        path = Path(config_path)
        if not path.exists():
            raise StandbyError(f"Config file not found: {config_path}")

        try:
            parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (yaml.YAMLError, OSError) as exc:
            raise StandbyError(f"Invalid config file '{config_path}': {exc}") from exc

        if parsed is None:
            return {}
        if not isinstance(parsed, dict):
            raise StandbyError("Config file must contain a YAML mapping at the root.")

        unknown = sorted(set(parsed.keys()) - self.SUPPORTED_KEYS)
        if unknown:
            unknown_list = ", ".join(unknown)
            raise StandbyError(f"Unknown configuration keys: {unknown_list}")

        for key in sorted(self.BOOLEAN_KEYS & set(parsed.keys())):
            if not isinstance(parsed[key], bool):
                raise StandbyError(
                    f"Configuration key '{key}' must be true or false (got {parsed[key]!r})."
                )

        return parsed
