"""JSON Patch (RFC 6902) construction for the lxcfs augmentation."""

from __future__ import annotations

import copy
import json
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence

import jsonpatch
from pydantic import JsonValue

from .errors import PatchError
from .models import Pod, Volume, VolumeMount

ANNOTATIONS_PATH = "/metadata/annotations"
VOLUMES_PATH = "/spec/volumes"


@dataclass(frozen=True)
class PatchOperation:
    op: str
    path: str
    value: JsonValue

    def as_dict(self) -> Dict[str, Any]:
        return {"op": self.op, "path": self.path, "value": self.value}


def escape_json_pointer(token: str) -> str:
    # "~" must be escaped first so the "~1" produced for "/" is not re-escaped.
    return token.replace("~", "~0").replace("/", "~1")


def patch_volume_mounts(
    existing: Sequence[VolumeMount],
    added: Sequence[VolumeMount],
    index: int,
) -> List[PatchOperation]:
    if not added:
        return []
    path = f"/spec/containers/{index}/volumeMounts"
    if not existing:
        return [PatchOperation("add", path, [mount.to_wire() for mount in added])]
    return [PatchOperation("add", f"{path}/-", mount.to_wire()) for mount in added]


def patch_volumes(existing: Sequence[Volume], added: Sequence[Volume]) -> List[PatchOperation]:
    if not added:
        return []
    if not existing:
        return [PatchOperation("add", VOLUMES_PATH, [volume.to_wire() for volume in added])]
    return [PatchOperation("add", f"{VOLUMES_PATH}/-", volume.to_wire()) for volume in added]


def patch_annotations(
    existing: Optional[Mapping[str, str]],
    added: Mapping[str, str],
) -> List[PatchOperation]:
    # Each missing key becomes its own "add" of a single-entry object at the parent
    # path, so a second key would overwrite the first. Callers pass one key.
    ops: List[PatchOperation] = []
    for key, value in added.items():
        if existing is not None and key in existing:
            ops.append(PatchOperation("replace", f"{ANNOTATIONS_PATH}/{escape_json_pointer(key)}", value))
        else:
            ops.append(PatchOperation("add", ANNOTATIONS_PATH, {key: value}))
    return ops


def build_patch(
    pod: Pod,
    volumes: Sequence[Volume],
    volume_mounts: Sequence[VolumeMount],
    status_annotations: Mapping[str, str],
) -> List[PatchOperation]:
    """Return the ordered patch: container mounts, then pod volumes, then annotations."""

    ops: List[PatchOperation] = []
    for index, container in enumerate(pod.spec.containers):
        ops.extend(patch_volume_mounts(container.volume_mounts or [], volume_mounts, index))
    ops.extend(patch_volumes(pod.spec.volumes or [], volumes))
    ops.extend(patch_annotations(pod.metadata.annotations, status_annotations))
    return ops


def serialize_patch(ops: Sequence[PatchOperation]) -> bytes:
    try:
        payload = json.dumps(
            [op.as_dict() for op in ops],
            separators=(",", ":"),
            ensure_ascii=False,
            allow_nan=False,
        )
    except (TypeError, ValueError) as exc:
        raise PatchError(f"could not serialize patch: {exc}") from exc
    return payload.encode("utf-8")


def apply_patch(document: Dict[str, Any], ops: Sequence[PatchOperation]) -> Dict[str, Any]:
    """Apply ``ops`` to a copy of ``document`` the way the API server would."""

    try:
        return jsonpatch.apply_patch(copy.deepcopy(document), [op.as_dict() for op in ops], in_place=True)
    except (jsonpatch.JsonPatchException, jsonpatch.JsonPointerException) as exc:
        raise PatchError(f"bad path or conflict: {exc}") from exc


__all__ = [
    "ANNOTATIONS_PATH",
    "VOLUMES_PATH",
    "PatchOperation",
    "escape_json_pointer",
    "patch_volume_mounts",
    "patch_volumes",
    "patch_annotations",
    "build_patch",
    "serialize_patch",
    "apply_patch",
]
