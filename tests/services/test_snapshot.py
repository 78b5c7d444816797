import os
import shutil
import subprocess

import pytest

from coldstandby.errors import StandbyError
from coldstandby.models import (
    ArtifactState,
    ComposeFlavor,
    DeploymentSettings,
    RemoteTarget,
    RunContext,
    TransferMode,
    VolumeDescriptor,
    VolumeKind,
)
from coldstandby.services.snapshot import ConsistentSnapshotEngine


class DummyLogger:
    def debug(self, *_args, **_kwargs):
        return None

    def info(self, *_args, **_kwargs):
        return None

    def warning(self, *_args, **_kwargs):
        return None


class DummyConsole:
    def print(self, *_args, **_kwargs):
        return None


class FakeDockerRuntime:
    def __init__(self, fail_on=None):
        self.fail_on = fail_on
        self.runs = []

    def project_network(self, project_name):
        return f"{project_name}_net"

    def run_container(self, image, args, mounts=(), network=None, entrypoint="", redact=None):
        self.runs.append({"image": image, "args": list(args), "mounts": list(mounts), "redact": redact})
        phase = "backup" if "--backup" in args else "prepare"
        staging = [source for source, target in mounts if target == "/backup"][0]
        with open(os.path.join(staging, f"{phase}.marker"), "w", encoding="utf-8") as file_obj:
            file_obj.write(phase)
        returncode = 1 if phase == self.fail_on else 0
        return subprocess.CompletedProcess(["docker"], returncode, stdout="", stderr="")


class FakeFileSystem:
    def __init__(self, chown_error=None):
        self.chown_error = chown_error
        self.chowned = []

    def chown_tree(self, root, uid, gid):
        if self.chown_error:
            raise self.chown_error
        self.chowned.append((root, uid, gid))

    def cleanup_dir(self, path):
        shutil.rmtree(path, ignore_errors=True)


def _context(tmp_path, sql_image="mariadb:10.11"):
    return RunContext(
        run_id="run1",
        timestamp="2024-01-01_00_00_00",
        target=RemoteTarget(host="standby", user="root", key_path="/key"),
        deployment=DeploymentSettings(
            base_dir=str(tmp_path),
            project_name="mailcowdockerized",
            hostname=None,
            db_root_password="s3cr3t",
            cache_password="r3dis",
            sql_image=sql_image,
        ),
        compose_flavor=ComposeFlavor.NATIVE,
        local_arch="x86_64",
        remote_arch="x86_64",
        architectures_match=True,
        transfer_mode=TransferMode.ARCHIVE,
    )


VOLUME = VolumeDescriptor(
    name="mailcowdockerized_mysql-vol-1",
    kind=VolumeKind.DATABASE,
    mountpoint="/var/lib/docker/volumes/mailcowdockerized_mysql-vol-1/_data",
)


def _engine(runtime, filesystem=None):
    return ConsistentSnapshotEngine(runtime, filesystem or FakeFileSystem(), DummyLogger(), DummyConsole())


def test_capture_runs_backup_then_prepare_and_hands_over_ownership(tmp_path):
    runtime = FakeDockerRuntime()
    filesystem = FakeFileSystem()

    artifact = _engine(runtime, filesystem).capture(_context(tmp_path), VOLUME)

    assert artifact.state is ArtifactState.PREPARED
    assert artifact.path == str(tmp_path / "_tmp_mariabackup")
    assert [run["args"][1] for run in runtime.runs] == ["--host", "--prepare"]
    backup = runtime.runs[0]
    assert ("mailcowdockerized_mysql-vol-1", "/var/lib/mysql/:ro") in backup["mounts"]
    assert backup["redact"] == ["s3cr3t"]
    assert "--backup" in backup["args"]
    assert filesystem.chowned == [(artifact.path, 999, 999)]


@pytest.mark.parametrize(
    "phase,message",
    [("backup", "Could not create MariaDB backup"), ("prepare", "Could not prepare MariaDB backup")],
)
def test_failed_phase_removes_staging_directory(tmp_path, phase, message):
    runtime = FakeDockerRuntime(fail_on=phase)

    with pytest.raises(StandbyError, match=message):
        _engine(runtime).capture(_context(tmp_path), VOLUME)

    assert not (tmp_path / "_tmp_mariabackup").exists()


def test_failed_ownership_change_removes_staging_directory(tmp_path):
    filesystem = FakeFileSystem(chown_error=PermissionError("Operation not permitted"))

    with pytest.raises(StandbyError, match="uid 999"):
        _engine(FakeDockerRuntime(), filesystem).capture(_context(tmp_path), VOLUME)

    assert not (tmp_path / "_tmp_mariabackup").exists()


def test_capture_replaces_leftover_staging_directory(tmp_path):
    leftover = tmp_path / "_tmp_mariabackup"
    leftover.mkdir()
    (leftover / "stale.ibd").write_text("old", encoding="utf-8")

    artifact = _engine(FakeDockerRuntime()).capture(_context(tmp_path), VOLUME)

    assert sorted(os.listdir(artifact.path)) == ["backup.marker", "prepare.marker"]


def test_capture_requires_sql_image(tmp_path):
    runtime = FakeDockerRuntime()

    with pytest.raises(StandbyError, match="no MariaDB/MySQL image"):
        _engine(runtime).capture(_context(tmp_path, sql_image=None), VOLUME)

    assert runtime.runs == []


def test_discard_marks_artifact_removed(tmp_path):
    engine = _engine(FakeDockerRuntime())
    artifact = engine.capture(_context(tmp_path), VOLUME)

    engine.discard(artifact)

    assert artifact.state is ArtifactState.REMOVED
    assert not os.path.exists(artifact.path)
