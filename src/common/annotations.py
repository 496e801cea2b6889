"""Reserved annotation keys and flag values shared by the webhook components."""

from __future__ import annotations

from enum import Enum
from typing import Optional


ANNOTATION_PREFIX = "mutating.lxcfs-admission-webhook.io"

ENABLE_KEY = f"{ANNOTATION_PREFIX}/enable"
STATUS_KEY = f"{ANNOTATION_PREFIX}/status"


class StatusFlag(str, Enum):
    """Terminal outcome recorded under ``STATUS_KEY``."""

    MUTATED = "mutated"
    SKIP = "skip"
    CONFLICT = "conflict"


_DISABLED_VALUES = frozenset({"n", "no", "false", "off"})


def normalise_flag(value: Optional[str]) -> str:
    """Lower-case an annotation value for comparison; missing values become ``""``."""

    return (value or "").lower()


def is_disabled(value: Optional[str]) -> bool:
    return normalise_flag(value) in _DISABLED_VALUES


def is_mutated(value: Optional[str]) -> bool:
    return normalise_flag(value) == StatusFlag.MUTATED.value


__all__ = [
    "ANNOTATION_PREFIX",
    "ENABLE_KEY",
    "STATUS_KEY",
    "StatusFlag",
    "normalise_flag",
    "is_disabled",
    "is_mutated",
]
