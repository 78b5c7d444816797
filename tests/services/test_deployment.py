import pytest

from coldstandby.errors import StandbyError
from coldstandby.services.deployment import DeploymentLoader


class DummyLogger:
    def __init__(self):
        self.warnings = []

    def warning(self, message, *args, **_kwargs):
        self.warnings.append(message % args if args else message)


MAILCOW_CONF = """\
# ------------------------------
# mailcow web ui configuration
# ------------------------------
MAILCOW_HOSTNAME=mail.example.org
DBROOT=s3cr3t-root
REDISPASS=r3dis
COMPOSE_PROJECT_NAME=mailcow.dockerized!
"""

COMPOSE_FILE = """\
services:
  unbound-mailcow:
    image: ghcr.io/mailcow/unbound:1.23
  mysql-mailcow:
    image: mariadb:10.11
  redis-mailcow:
    image: redis:7.4.2-alpine
"""


@pytest.fixture
def mailcow_dir(tmp_path):
    (tmp_path / "mailcow.conf").write_text(MAILCOW_CONF, encoding="utf-8")
    (tmp_path / "docker-compose.yml").write_text(COMPOSE_FILE, encoding="utf-8")
    return tmp_path


def test_load_reads_settings_and_sanitizes_project_name(mailcow_dir):
    settings = DeploymentLoader(DummyLogger()).load(str(mailcow_dir))

    assert settings.base_dir == str(mailcow_dir)
    assert settings.project_name == "mailcowdockerized"
    assert settings.hostname == "mail.example.org"
    assert settings.db_root_password == "s3cr3t-root"
    assert settings.cache_password == "r3dis"
    assert settings.sql_image == "mariadb:10.11"


def test_load_requires_deployment_config(tmp_path):
    with pytest.raises(StandbyError, match="Deployment config not found"):
        DeploymentLoader(DummyLogger()).load(str(tmp_path))


def test_load_reports_missing_keys(mailcow_dir):
    (mailcow_dir / "mailcow.conf").write_text("COMPOSE_PROJECT_NAME=mailcow\n", encoding="utf-8")

    with pytest.raises(StandbyError, match="DBROOT, REDISPASS"):
        DeploymentLoader(DummyLogger()).load(str(mailcow_dir))


def test_load_rejects_project_name_without_usable_characters(mailcow_dir):
    content = MAILCOW_CONF.replace("COMPOSE_PROJECT_NAME=mailcow.dockerized!", "COMPOSE_PROJECT_NAME=...")
    (mailcow_dir / "mailcow.conf").write_text(content, encoding="utf-8")

    with pytest.raises(StandbyError, match="COMPOSE_PROJECT_NAME"):
        DeploymentLoader(DummyLogger()).load(str(mailcow_dir))


def test_find_sql_image_keeps_registry_prefix(tmp_path):
    compose = tmp_path / "docker-compose.yml"
    compose.write_text(
        "services:\n  mysql-mailcow:\n    image: ghcr.io/mailcow/mariadb:10.11.6\n",
        encoding="utf-8",
    )

    assert DeploymentLoader(DummyLogger()).find_sql_image(str(compose)) == "ghcr.io/mailcow/mariadb:10.11.6"


def test_missing_sql_image_only_warns(mailcow_dir):
    (mailcow_dir / "docker-compose.yml").write_text(
        "services:\n  redis-mailcow:\n    image: redis:7\n",
        encoding="utf-8",
    )
    logger = DummyLogger()

    settings = DeploymentLoader(logger).load(str(mailcow_dir))

    assert settings.sql_image is None
    assert logger.warnings
