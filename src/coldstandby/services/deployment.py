"""Reads the mail stack's own deployment configuration."""

import os
import re
from typing import Any, Dict, Optional

import yaml
from dotenv import dotenv_values

from coldstandby.constants import COMPOSE_FILE, DEPLOYMENT_CONFIG_FILE
from coldstandby.errors import StandbyError
from coldstandby.models import DeploymentSettings, sanitize_project_name

_SQL_IMAGE_PATTERN = re.compile(r"(mysql|mariadb):.+", re.IGNORECASE)


class DeploymentLoader:
    """Loads project identity, credentials and SQL image from the base directory."""

    REQUIRED_KEYS = ("COMPOSE_PROJECT_NAME", "DBROOT", "REDISPASS")

    def __init__(self, logger):
        self.logger = logger

    def _read_config(self, config_path: str) -> Dict[str, Optional[str]]:
        if not os.path.isfile(config_path):
            raise StandbyError(f"Deployment config not found: {config_path}")
        return dotenv_values(config_path)

    def find_sql_image(self, compose_path: str) -> Optional[str]:
        if not os.path.isfile(compose_path):
            raise StandbyError(f"Compose file not found: {compose_path}")

        try:
            with open(compose_path, "r", encoding="utf-8") as file_obj:
                parsed = yaml.safe_load(file_obj)
        except (yaml.YAMLError, OSError) as exc:
            raise StandbyError(f"Invalid compose file '{compose_path}': {exc}") from exc

        services: Dict[str, Any] = (parsed or {}).get("services") or {}
        for service in services.values():
            image = (service or {}).get("image")
            if isinstance(image, str) and _SQL_IMAGE_PATTERN.search(image):
                return image
        return None

    def load(self, base_dir: str) -> DeploymentSettings:
        base_dir = os.path.abspath(base_dir)
        values = self._read_config(os.path.join(base_dir, DEPLOYMENT_CONFIG_FILE))

        missing = [key for key in self.REQUIRED_KEYS if not values.get(key)]
        if missing:
            raise StandbyError(
                f"Missing keys in {DEPLOYMENT_CONFIG_FILE}: {', '.join(missing)}"
            )

        project_name = sanitize_project_name(values["COMPOSE_PROJECT_NAME"])
        if not project_name:
            raise StandbyError(
                "COMPOSE_PROJECT_NAME contains no usable characters after sanitizing."
            )

        sql_image = self.find_sql_image(os.path.join(base_dir, COMPOSE_FILE))
        if sql_image is None:
            self.logger.warning("No MariaDB/MySQL image found in %s", COMPOSE_FILE)

        return DeploymentSettings(
            base_dir=base_dir,
            project_name=project_name,
            hostname=values.get("MAILCOW_HOSTNAME"),
            db_root_password=values["DBROOT"],
            cache_password=values["REDISPASS"],
            sql_image=sql_image,
        )
