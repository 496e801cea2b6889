"""Mutating admission webhook that injects lxcfs volumes into pods."""

from .conflict import has_conflict
from .mutate import MutationResult, decide, mutate
from .patch import PatchOperation, build_patch, escape_json_pointer
from .policy import Decision, PolicyConfig, evaluate
from .template import AugmentationTemplate, lxcfs_template

__all__ = [
    "AugmentationTemplate",
    "Decision",
    "MutationResult",
    "PatchOperation",
    "PolicyConfig",
    "build_patch",
    "decide",
    "escape_json_pointer",
    "evaluate",
    "has_conflict",
    "lxcfs_template",
    "mutate",
]
