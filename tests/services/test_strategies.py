import pytest

import coldstandby.services.strategies as strategies_module
from coldstandby.errors import StandbyError
from coldstandby.models import (
    ArtifactState,
    BackupArtifact,
    ComposeFlavor,
    DeploymentSettings,
    RemoteTarget,
    RunContext,
    TransferMode,
    VolumeDescriptor,
    VolumeKind,
    VolumeOutcome,
)
from coldstandby.services.strategies import (
    AppSpecificVolumeStrategy,
    BackupStrategySelector,
    DatabaseVolumeStrategy,
    GenericVolumeStrategy,
)


class DummyLogger:
    def __init__(self):
        self.warnings = []

    def warning(self, message, *args, **_kwargs):
        self.warnings.append(message % args if args else message)


class DummyConsole:
    def print(self, *_args, **_kwargs):
        return None


class FakeTransferEngine:
    def __init__(self, fail=False):
        self.fail = fail
        self.ensured = []
        self.transfers = []

    def ensure_remote_directory(self, path):
        self.ensured.append(path)

    def transfer(self, context, source_dir, destination, label):
        if self.fail:
            raise StandbyError("scp failed")
        self.transfers.append((source_dir, destination, label))


class FakeSnapshotEngine:
    def __init__(self):
        self.captures = 0
        self.discarded = []

    def capture(self, context, volume):
        self.captures += 1
        return BackupArtifact(path="/opt/mailcow/_tmp_mariabackup", state=ArtifactState.PREPARED)

    def discard(self, artifact):
        artifact.state = ArtifactState.REMOVED
        self.discarded.append(artifact)


def _context(architectures_match=True):
    return RunContext(
        run_id="run1",
        timestamp="2024-01-01_00_00_00",
        target=RemoteTarget(host="standby", user="root", key_path="/key"),
        deployment=DeploymentSettings(
            base_dir="/opt/mailcow",
            project_name="mailcowdockerized",
            hostname=None,
            db_root_password="x",
            cache_password="y",
            sql_image="mariadb:10.11",
        ),
        compose_flavor=ComposeFlavor.NATIVE,
        local_arch="x86_64",
        remote_arch="x86_64" if architectures_match else "aarch64",
        architectures_match=architectures_match,
        transfer_mode=TransferMode.ARCHIVE,
    )


def _volume(name, kind):
    return VolumeDescriptor(name=name, kind=kind, mountpoint=f"/var/lib/docker/volumes/{name}/_data")


@pytest.mark.parametrize(
    "name,kind",
    [
        ("mailcowdockerized_mysql-vol-1", VolumeKind.DATABASE),
        ("mailcowdockerized_rspamd-vol-1", VolumeKind.APP_SPECIFIC),
        ("mailcowdockerized_vmail-vol-1", VolumeKind.GENERIC),
        ("mailcowdockerized_mysql-socket-vol-1", VolumeKind.GENERIC),
    ],
)
def test_classify_by_volume_name(name, kind):
    assert BackupStrategySelector.classify(name) is kind


def test_generic_strategy_transfers_mountpoint_in_place():
    engine = FakeTransferEngine()
    volume = _volume("mailcowdockerized_vmail-vol-1", VolumeKind.GENERIC)

    outcome = GenericVolumeStrategy(engine, DummyLogger(), DummyConsole()).transfer(_context(), volume)

    assert outcome is VolumeOutcome.TRANSFERRED
    assert engine.ensured == [volume.mountpoint]
    assert engine.transfers == [(volume.mountpoint, volume.mountpoint, volume.name)]


def test_app_specific_strategy_skips_on_architecture_mismatch(monkeypatch):
    pauses = []
    monkeypatch.setattr(strategies_module.time, "sleep", lambda seconds: pauses.append(seconds))
    engine = FakeTransferEngine()
    logger = DummyLogger()
    strategy = AppSpecificVolumeStrategy(engine, logger, DummyConsole())
    volume = _volume("mailcowdockerized_rspamd-vol-1", VolumeKind.APP_SPECIFIC)

    outcome = strategy.transfer(_context(architectures_match=False), volume)

    assert outcome is VolumeOutcome.SKIPPED
    assert engine.ensured == []
    assert engine.transfers == []
    assert pauses == [2]
    assert "aarch64" in logger.warnings[0]
    assert strategy.describe(_context(architectures_match=False), volume) == "skip (x86_64 -> aarch64)"


def test_app_specific_strategy_transfers_when_architectures_match():
    engine = FakeTransferEngine()
    volume = _volume("mailcowdockerized_rspamd-vol-1", VolumeKind.APP_SPECIFIC)

    outcome = AppSpecificVolumeStrategy(engine, DummyLogger(), DummyConsole()).transfer(_context(), volume)

    assert outcome is VolumeOutcome.TRANSFERRED
    assert len(engine.transfers) == 1


def test_database_strategy_ships_prepared_backup_and_releases_it():
    engine = FakeTransferEngine()
    snapshots = FakeSnapshotEngine()
    strategy = DatabaseVolumeStrategy(engine, snapshots, DummyLogger(), DummyConsole())
    volume = _volume("mailcowdockerized_mysql-vol-1", VolumeKind.DATABASE)

    artifact = strategy.prepare(_context(), volume)
    outcome = strategy.transfer(_context(), volume)

    assert outcome is VolumeOutcome.TRANSFERRED
    assert snapshots.captures == 1
    assert engine.transfers == [("/opt/mailcow/_tmp_mariabackup", volume.mountpoint, volume.name)]
    assert snapshots.discarded == [artifact]
    assert strategy.artifact is None


def test_database_strategy_releases_backup_when_transfer_fails():
    snapshots = FakeSnapshotEngine()
    strategy = DatabaseVolumeStrategy(FakeTransferEngine(fail=True), snapshots, DummyLogger(), DummyConsole())
    volume = _volume("mailcowdockerized_mysql-vol-1", VolumeKind.DATABASE)

    with pytest.raises(StandbyError, match="scp failed"):
        strategy.transfer(_context(), volume)

    assert snapshots.captures == 1
    assert len(snapshots.discarded) == 1
    assert strategy.artifact is None


def test_release_all_discards_unconsumed_backup():
    snapshots = FakeSnapshotEngine()
    database = DatabaseVolumeStrategy(FakeTransferEngine(), snapshots, DummyLogger(), DummyConsole())
    selector = BackupStrategySelector(
        {
            VolumeKind.DATABASE: database,
            VolumeKind.GENERIC: GenericVolumeStrategy(FakeTransferEngine(), DummyLogger(), DummyConsole()),
        }
    )
    database.prepare(_context(), _volume("mailcowdockerized_mysql-vol-1", VolumeKind.DATABASE))

    selector.release_all()
    selector.release_all()

    assert len(snapshots.discarded) == 1
