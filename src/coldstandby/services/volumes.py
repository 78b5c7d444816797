"""Discovery of the project's named volumes for coldstandby."""

from typing import Callable, Iterator

from coldstandby.models import VolumeDescriptor, VolumeKind

Classifier = Callable[[str], VolumeKind]


class VolumeCatalog:
    """Lists the live volumes whose name starts with the project identity."""

    def __init__(self, docker_runtime, classifier: Classifier, logger):
        self.docker_runtime = docker_runtime
        self.classifier = classifier
        self.logger = logger

    def iter_volumes(self, project_name: str) -> Iterator[VolumeDescriptor]:
        for name in self.docker_runtime.list_volume_names(project_name):
            if not name.startswith(project_name):
                continue

            mountpoint = self.docker_runtime.volume_mountpoint(name)
            if mountpoint is None:
                self.logger.info("Volume %s disappeared before it could be inspected, skipping.", name)
                continue

            kind = self.classifier(name)
            yield VolumeDescriptor(name=name, kind=kind, mountpoint=mountpoint)
