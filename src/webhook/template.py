"""Volumes and volume mounts injected into admitted pods."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Sequence, Tuple

import yaml
from pydantic import ValidationError

from .errors import TemplateError
from .models import Volume, VolumeMount

LXCFS_VOLUME = "lxcfs"
LXCFS_HOST_PATH = "/var/lib/lxc/"

# Files served by lxcfs under /var/lib/lxc/lxcfs that replace their /proc and /sys
# counterparts inside the container.
LXCFS_PROC_FILES = (
    "/proc/cpuinfo",
    "/proc/diskstats",
    "/proc/loadavg",
    "/proc/meminfo",
    "/proc/stat",
    "/proc/swaps",
    "/proc/uptime",
    "/sys/devices/system/cpu/online",
)


@dataclass(frozen=True)
class AugmentationTemplate:
    volume_mounts: Tuple[VolumeMount, ...]
    volumes: Tuple[Volume, ...]

    @classmethod
    def from_lists(cls, volume_mounts: Sequence[VolumeMount], volumes: Sequence[Volume]) -> "AugmentationTemplate":
        return cls(volume_mounts=tuple(volume_mounts), volumes=tuple(volumes))

    def to_document(self) -> Dict[str, Any]:
        return {
            "volumeMounts": [mount.to_wire() for mount in self.volume_mounts],
            "volumes": [volume.to_wire() for volume in self.volumes],
        }


def _lxcfs_file_mount(path: str) -> VolumeMount:
    return VolumeMount(
        name=LXCFS_VOLUME,
        read_only=True,
        mount_path=path,
        sub_path=f"lxcfs{path}",
    )


def lxcfs_template() -> AugmentationTemplate:
    mounts: List[VolumeMount] = [_lxcfs_file_mount(path) for path in LXCFS_PROC_FILES]
    mounts.append(
        VolumeMount(
            name=LXCFS_VOLUME,
            read_only=True,
            mount_path=LXCFS_HOST_PATH,
            mount_propagation="HostToContainer",
        )
    )
    volume = Volume(
        name=LXCFS_VOLUME,
        hostPath={"path": LXCFS_HOST_PATH, "type": "DirectoryOrCreate"},
    )
    return AugmentationTemplate.from_lists(mounts, [volume])


def parse_template(document: Any) -> AugmentationTemplate:
    if not isinstance(document, dict):
        raise TemplateError("template must be a mapping with 'volumes' and 'volumeMounts'")
    raw_mounts = document.get("volumeMounts")
    raw_volumes = document.get("volumes")
    if not isinstance(raw_mounts, list):
        raise TemplateError("template 'volumeMounts' must be a list")
    if not isinstance(raw_volumes, list):
        raise TemplateError("template 'volumes' must be a list")
    try:
        mounts = [VolumeMount.model_validate(entry) for entry in raw_mounts]
        volumes = [Volume.model_validate(entry) for entry in raw_volumes]
    except ValidationError as exc:
        raise TemplateError(f"invalid template entry: {exc}") from exc
    for mount in mounts:
        if not mount.name or not mount.mount_path:
            raise TemplateError("every volume mount needs a name and a mountPath")
    for volume in volumes:
        if not volume.name:
            raise TemplateError("every volume needs a name")
    return AugmentationTemplate.from_lists(mounts, volumes)


def load_template(path: Path) -> AugmentationTemplate:
    try:
        with path.open("r", encoding="utf-8") as handle:
            document = yaml.safe_load(handle)
    except FileNotFoundError as exc:
        raise TemplateError(f"template file not found: {path}") from exc
    except yaml.YAMLError as exc:
        raise TemplateError(f"template file is not valid YAML: {exc}") from exc
    return parse_template(document)


def dump_template(template: AugmentationTemplate) -> str:
    return yaml.safe_dump(template.to_document(), sort_keys=False)


__all__ = [
    "LXCFS_VOLUME",
    "LXCFS_HOST_PATH",
    "LXCFS_PROC_FILES",
    "AugmentationTemplate",
    "lxcfs_template",
    "parse_template",
    "load_template",
    "dump_template",
]
