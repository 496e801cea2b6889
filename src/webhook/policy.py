from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Iterable, Tuple

from src.common.annotations import ENABLE_KEY, STATUS_KEY, is_disabled, is_mutated

from .models import Pod

logger = logging.getLogger(__name__)

DEFAULT_IGNORED_NAMESPACES = frozenset({"kube-system", "kube-public"})
DEFAULT_ALLOWED_KINDS = frozenset({("", "v1", "Pod")})
DEFAULT_ALLOWED_OPERATIONS = frozenset({"CREATE"})


class Decision(str, Enum):
    REQUIRED = "required"
    SKIP_NAMESPACE = "skip-namespace"
    SKIP_OPERATION_OR_KIND = "skip-operation-or-kind"
    SKIP_ALREADY_MUTATED = "skip-already-mutated"
    SKIP_DISABLED_BY_ANNOTATION = "skip-disabled-by-annotation"

    @property
    def required(self) -> bool:
        return self is Decision.REQUIRED


@dataclass(frozen=True)
class PolicyConfig:
    """Which admission requests are eligible for mutation."""

    ignored_namespaces: FrozenSet[str] = field(default=DEFAULT_IGNORED_NAMESPACES)
    allowed_kinds: FrozenSet[Tuple[str, str, str]] = field(default=DEFAULT_ALLOWED_KINDS)
    allowed_operations: FrozenSet[str] = field(default=DEFAULT_ALLOWED_OPERATIONS)

    @classmethod
    def build(
        cls,
        ignored_namespaces: Iterable[str] = DEFAULT_IGNORED_NAMESPACES,
        allowed_kinds: Iterable[Tuple[str, str, str]] = DEFAULT_ALLOWED_KINDS,
        allowed_operations: Iterable[str] = DEFAULT_ALLOWED_OPERATIONS,
    ) -> "PolicyConfig":
        return cls(
            ignored_namespaces=frozenset(ignored_namespaces),
            allowed_kinds=frozenset(tuple(kind) for kind in allowed_kinds),
            allowed_operations=frozenset(allowed_operations),
        )


def evaluate(
    policy: PolicyConfig,
    namespace: str,
    operation: str,
    kind: Tuple[str, str, str],
    pod: Pod,
) -> Decision:
    """Decide whether ``pod`` should receive the augmentation.

    Checks run in a fixed order and the first match wins: ignored namespace,
    operation, kind, an existing ``mutated`` status annotation, and finally the
    enable annotation. Annotation values are compared case-insensitively.
    """

    if namespace in policy.ignored_namespaces:
        logger.info("Skip mutation for %s: namespace %s is ignored", pod.display_name, namespace)
        return Decision.SKIP_NAMESPACE
    if operation not in policy.allowed_operations:
        return Decision.SKIP_OPERATION_OR_KIND
    if tuple(kind) not in policy.allowed_kinds:
        return Decision.SKIP_OPERATION_OR_KIND

    annotations = pod.metadata.annotations or {}
    status = annotations.get(STATUS_KEY)
    if is_mutated(status):
        decision = Decision.SKIP_ALREADY_MUTATED
    elif is_disabled(annotations.get(ENABLE_KEY)):
        decision = Decision.SKIP_DISABLED_BY_ANNOTATION
    else:
        decision = Decision.REQUIRED

    logger.info(
        "Mutation policy for %s/%s: status=%r decision=%s",
        namespace,
        pod.display_name,
        status or "",
        decision.value,
    )
    return decision


__all__ = [
    "DEFAULT_IGNORED_NAMESPACES",
    "DEFAULT_ALLOWED_KINDS",
    "DEFAULT_ALLOWED_OPERATIONS",
    "Decision",
    "PolicyConfig",
    "evaluate",
]
