from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple

from pydantic import ValidationError

from src.common.annotations import STATUS_KEY, StatusFlag

from .conflict import find_conflicts, has_conflict
from .errors import DecodeError, PatchError
from .models import PATCH_TYPE_JSON, AdmissionRequest, AdmissionResponse, Pod, Status, Volume, VolumeMount
from .patch import PatchOperation, build_patch, serialize_patch
from .policy import Decision, PolicyConfig, evaluate
from .template import AugmentationTemplate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MutationResult:
    status: StatusFlag
    decision: Decision
    patch: List[PatchOperation]

    @property
    def mutated(self) -> bool:
        return self.status is StatusFlag.MUTATED


def decode_pod(raw: Any) -> Pod:
    if raw is None:
        raise DecodeError("admission request carries no object")
    if not isinstance(raw, dict):
        raise DecodeError(f"cannot decode {type(raw).__name__} into a Pod")
    try:
        return Pod.model_validate(raw)
    except ValidationError as exc:
        raise DecodeError(f"cannot decode object into a Pod: {exc}") from exc


def decide(
    policy: PolicyConfig,
    template: AugmentationTemplate,
    request: AdmissionRequest,
    pod: Optional[Pod] = None,
) -> MutationResult:
    """Run policy, conflict detection and patch construction for one request.

    Raises ``DecodeError`` when the admitted object is not a pod. The returned
    patch always ends with the status annotation operation.
    """

    if pod is None:
        pod = decode_pod(request.resource_object)

    logger.info(
        "AdmissionReview for kind=%s namespace=%s name=%s (%s) uid=%s operation=%s user=%s",
        "/".join(request.kind.as_tuple()),
        request.namespace,
        request.name,
        pod.display_name,
        request.uid,
        request.operation,
        (request.user_info or {}).get("username", ""),
    )

    volumes: Tuple[Volume, ...] = ()
    volume_mounts: Tuple[VolumeMount, ...] = ()
    decision = evaluate(policy, request.namespace, request.operation, request.kind.as_tuple(), pod)
    if not decision.required:
        logger.info(
            "Skipping mutation for %s/%s, uid=%s due to policy check (%s)",
            request.namespace,
            pod.display_name,
            request.uid,
            decision.value,
        )
        status = StatusFlag.SKIP
    elif has_conflict(pod, template):
        logger.info(
            "Skipping mutation for %s/%s, uid=%s due to volume or volume mount conflict: %s",
            request.namespace,
            pod.display_name,
            request.uid,
            find_conflicts(pod, template).describe(),
        )
        status = StatusFlag.CONFLICT
    else:
        status = StatusFlag.MUTATED
        volumes = template.volumes
        volume_mounts = template.volume_mounts

    patch = build_patch(pod, volumes, volume_mounts, {STATUS_KEY: status.value})
    return MutationResult(status=status, decision=decision, patch=patch)


def mutate(
    policy: PolicyConfig,
    template: AugmentationTemplate,
    request: AdmissionRequest,
    *,
    fail_open: bool = False,
) -> AdmissionResponse:
    """Build the AdmissionResponse for ``request``; never denies on policy grounds.

    An undecodable object leaves ``allowed`` false unless ``fail_open`` is set.
    A patch that cannot be serialized still admits the pod, without a patch.
    """

    try:
        result = decide(policy, template, request)
    except DecodeError as exc:
        logger.error("Could not decode admitted object, uid=%s: %s", request.uid, exc)
        return AdmissionResponse(uid=request.uid, allowed=fail_open, status=Status(message=str(exc)))

    try:
        patch_bytes = serialize_patch(result.patch)
    except PatchError as exc:
        logger.error("Could not serialize patch, uid=%s: %s", request.uid, exc)
        return AdmissionResponse(uid=request.uid, allowed=True, status=Status(message=str(exc)))

    response = AdmissionResponse(uid=request.uid, allowed=True)
    if result.patch:
        response.patch = base64.b64encode(patch_bytes).decode("ascii")
        response.patch_type = PATCH_TYPE_JSON
    return response


__all__ = ["MutationResult", "decode_pod", "decide", "mutate"]
