from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, List, Optional, Sequence, Tuple

from .models import Pod, Volume, VolumeMount
from .template import AugmentationTemplate


@dataclass(frozen=True)
class Conflict:
    """One existing item that collides with a template entry."""

    item: str  # "volumeMount" or "volume"
    name: str
    field: str  # attribute that collided: "name" or "mountPath"
    value: str
    container: Optional[str] = None

    def describe(self) -> str:
        where = f"container {self.container!r} " if self.container is not None else ""
        return f"{where}{self.item} {self.name!r} shares {self.field} {self.value!r}"


@dataclass(frozen=True)
class ConflictReport:
    conflicts: Tuple[Conflict, ...] = ()

    def __bool__(self) -> bool:
        return bool(self.conflicts)

    def describe(self) -> str:
        return "; ".join(conflict.describe() for conflict in self.conflicts)


def _mount_collisions(
    existing: Sequence[VolumeMount],
    added: Sequence[VolumeMount],
    container: Optional[str] = None,
) -> Iterator[Conflict]:
    for origin in existing:
        for add in added:
            if origin.name == add.name:
                yield Conflict("volumeMount", origin.name, "name", origin.name, container)
            elif origin.mount_path == add.mount_path:
                yield Conflict("volumeMount", origin.name, "mountPath", origin.mount_path, container)


def _volume_collisions(existing: Sequence[Volume], added: Sequence[Volume]) -> Iterator[Conflict]:
    for origin in existing:
        for add in added:
            if origin.name == add.name:
                yield Conflict("volume", origin.name, "name", origin.name)


def volume_mount_conflict(existing: Sequence[VolumeMount], added: Sequence[VolumeMount]) -> bool:
    """True when any existing mount shares a name or mount path with an added one."""

    return any(True for _ in _mount_collisions(existing, added))


def volume_conflict(existing: Sequence[Volume], added: Sequence[Volume]) -> bool:
    return any(True for _ in _volume_collisions(existing, added))


def has_conflict(pod: Pod, template: AugmentationTemplate) -> bool:
    for container in pod.spec.containers:
        if volume_mount_conflict(container.volume_mounts or [], template.volume_mounts):
            return True
    return volume_conflict(pod.spec.volumes or [], template.volumes)


def find_conflicts(pod: Pod, template: AugmentationTemplate) -> ConflictReport:
    """Collect every collision instead of stopping at the first one."""

    conflicts: List[Conflict] = []
    for container in pod.spec.containers:
        conflicts.extend(
            _mount_collisions(container.volume_mounts or [], template.volume_mounts, container.name)
        )
    conflicts.extend(_volume_collisions(pod.spec.volumes or [], template.volumes))
    return ConflictReport(tuple(conflicts))


__all__ = [
    "Conflict",
    "ConflictReport",
    "volume_mount_conflict",
    "volume_conflict",
    "has_conflict",
    "find_conflicts",
]
