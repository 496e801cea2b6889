from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

ADMISSION_API_VERSION = "admission.k8s.io/v1"
ADMISSION_REVIEW_KIND = "AdmissionReview"
PATCH_TYPE_JSON = "JSONPatch"


class KubeModel(BaseModel):
    """Kubernetes object fragment: camelCase on the wire, unknown fields retained."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class VolumeMount(KubeModel):
    model_config = ConfigDict(frozen=True)

    name: str = ""
    read_only: Optional[bool] = None
    mount_path: str = ""
    sub_path: Optional[str] = None
    mount_propagation: Optional[str] = None
    sub_path_expr: Optional[str] = None


class Volume(KubeModel):
    """A pod volume; the volume source (``hostPath``, ``secret``, ...) is kept as extra fields."""

    model_config = ConfigDict(frozen=True)

    name: str = ""

    @property
    def source(self) -> Dict[str, Any]:
        return dict(self.model_extra or {})


class Container(KubeModel):
    name: str = ""
    volume_mounts: Optional[List[VolumeMount]] = None


class PodSpec(KubeModel):
    containers: List[Container] = Field(default_factory=list)
    volumes: Optional[List[Volume]] = None

    @field_validator("containers", mode="before")
    @classmethod
    def _null_containers(cls, value: Any) -> Any:
        return [] if value is None else value


class ObjectMeta(KubeModel):
    name: Optional[str] = None
    generate_name: Optional[str] = None
    namespace: Optional[str] = None
    annotations: Optional[Dict[str, str]] = None


class Pod(KubeModel):
    api_version: Optional[str] = None
    kind: Optional[str] = None
    metadata: ObjectMeta = Field(default_factory=ObjectMeta)
    spec: PodSpec = Field(default_factory=PodSpec)

    # explicit nulls decode like absent fields
    @field_validator("metadata", "spec", mode="before")
    @classmethod
    def _null_as_empty(cls, value: Any) -> Any:
        return {} if value is None else value

    @property
    def display_name(self) -> str:
        return self.metadata.name or self.metadata.generate_name or ""


class GroupVersionKind(KubeModel):
    group: str = ""
    version: str = ""
    kind: str = ""

    def as_tuple(self) -> Tuple[str, str, str]:
        return (self.group, self.version, self.kind)


class AdmissionRequest(KubeModel):
    uid: str = Field(default="", description="Identifier echoed back in the response")
    kind: GroupVersionKind = Field(default_factory=GroupVersionKind)
    namespace: str = ""
    name: str = ""
    operation: str = Field(default="", description="CREATE, UPDATE, DELETE or CONNECT")
    user_info: Optional[Dict[str, Any]] = None
    resource_object: Optional[Any] = Field(
        default=None,
        alias="object",
        description="Raw object being admitted, decoded into a Pod by the mutator",
    )
    dry_run: Optional[bool] = None


class Status(KubeModel):
    message: Optional[str] = None


class AdmissionResponse(KubeModel):
    uid: str = ""
    allowed: bool = False
    patch: Optional[str] = Field(default=None, description="Base64 encoded JSON patch")
    patch_type: Optional[str] = None
    status: Optional[Status] = None


class AdmissionReview(KubeModel):
    api_version: str = ADMISSION_API_VERSION
    kind: str = ADMISSION_REVIEW_KIND
    request: Optional[AdmissionRequest] = None
    response: Optional[AdmissionResponse] = None


__all__ = [
    "ADMISSION_API_VERSION",
    "ADMISSION_REVIEW_KIND",
    "PATCH_TYPE_JSON",
    "KubeModel",
    "VolumeMount",
    "Volume",
    "Container",
    "PodSpec",
    "ObjectMeta",
    "Pod",
    "GroupVersionKind",
    "AdmissionRequest",
    "Status",
    "AdmissionResponse",
    "AdmissionReview",
]
