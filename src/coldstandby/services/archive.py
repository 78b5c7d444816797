"""Archive creation helpers for coldstandby."""

import os
import tarfile

from coldstandby.errors import StandbyError


class ArchiveService:
    """Packs a directory's contents into a gzip tarball rooted at `.`."""

    def create_tarball(self, source_dir: str, archive_path: str) -> str:
        if not os.path.isdir(source_dir):
            raise StandbyError(f"Cannot archive missing directory: {source_dir}")

        try:
            with tarfile.open(archive_path, "w:gz") as tar:
                tar.add(source_dir, arcname=".")
        except (OSError, tarfile.TarError) as exc:
            raise StandbyError(f"Could not create archive for {source_dir}: {exc}") from exc
        return archive_path

