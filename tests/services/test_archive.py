import tarfile

import pytest

from coldstandby.errors import StandbyError
from coldstandby.services.archive import ArchiveService


def test_archive_service_packs_directory_contents_relative_to_root(tmp_path):
    source = tmp_path / "vmail"
    (source / "example.org" / "alice").mkdir(parents=True)
    (source / "example.org" / "alice" / "mail.eml").write_text("Subject: hi", encoding="utf-8")
    (source / ".hidden").write_text("x", encoding="utf-8")

    archive_path = ArchiveService().create_tarball(str(source), str(tmp_path / "vmail.tar.gz"))

    with tarfile.open(archive_path, "r:gz") as tar:
        names = set(tar.getnames())

    assert "./example.org/alice/mail.eml" in names
    assert "./.hidden" in names
    assert not any(name.startswith("vmail") for name in names)


def test_archive_service_rejects_missing_directory(tmp_path):
    with pytest.raises(StandbyError, match="missing directory"):
        ArchiveService().create_tarball(str(tmp_path / "absent"), str(tmp_path / "absent.tar.gz"))
