"""Shared constants for coldstandby."""

KEY_FILE_MODE = 0o600
MAX_PORT = 65535

LOCAL_REQUIRED_TOOLS = ("rsync", "docker", "grep", "scp", "ssh")
REMOTE_REQUIRED_TOOLS = ("rsync", "docker", "tar", "scp", "ssh")

DEPLOYMENT_CONFIG_FILE = "mailcow.conf"
COMPOSE_FILE = "docker-compose.yml"
UPDATE_SCRIPT = "./update.sh"

DATABASE_VOLUME_MARKER = "mysql-vol-1"
APP_SPECIFIC_VOLUME_MARKER = "rspamd-vol-1"
CACHE_CONTAINER_FILTER = "redis-mailcow"

BACKUP_STAGING_DIRNAME = "_tmp_mariabackup"
DATABASE_UID = 999
DATABASE_GID = 999
DATABASE_HOST = "mysql"
DATABASE_DATA_DIR = "/var/lib/mysql/"
BACKUP_CONTAINER_DIR = "/backup"

REMOTE_STAGING_DIR = "/tmp"
RSYNC_VANISHED_SOURCE_FILES = 24

ARCH_WARNING_PAUSE_SECONDS = 2
