from __future__ import annotations


class WebhookError(Exception):
    """Base class for failures raised while handling an admission review."""


class DecodeError(WebhookError):
    """Raised when the admitted object cannot be interpreted as a pod."""


class PatchError(WebhookError):
    """Raised when a patch cannot be serialized or applied."""


class TemplateError(WebhookError):
    """Raised when an augmentation template file is malformed."""


__all__ = ["WebhookError", "DecodeError", "PatchError", "TemplateError"]
