from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence, Tuple

from .policy import DEFAULT_ALLOWED_KINDS, DEFAULT_ALLOWED_OPERATIONS, DEFAULT_IGNORED_NAMESPACES, PolicyConfig
from .template import AugmentationTemplate, load_template, lxcfs_template

DEFAULT_PORT = 8443
DEFAULT_CERT_FILE = Path("/etc/webhook/certs/tls.crt")
DEFAULT_KEY_FILE = Path("/etc/webhook/certs/tls.key")

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _split_csv(value: Optional[str]) -> Optional[Tuple[str, ...]]:
    if value is None:
        return None
    return tuple(item.strip() for item in value.split(",") if item.strip())


def _env_bool(name: str) -> Optional[bool]:
    value = os.getenv(name)
    if value is None:
        return None
    return value.strip().lower() in _TRUE_VALUES


def _env_int(name: str) -> Optional[int]:
    value = os.getenv(name)
    if not value:
        return None
    try:
        return int(value)
    except ValueError as exc:
        raise ValueError(f"Environment variable {name} must be an integer, got {value!r}") from exc


def _first(*values):
    for value in values:
        if value is not None:
            return value
    return None


@dataclass(frozen=True)
class WebhookSettings:
    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    cert_file: Path = DEFAULT_CERT_FILE
    key_file: Path = DEFAULT_KEY_FILE
    ignored_namespaces: Tuple[str, ...] = tuple(sorted(DEFAULT_IGNORED_NAMESPACES))
    allowed_operations: Tuple[str, ...] = tuple(sorted(DEFAULT_ALLOWED_OPERATIONS))
    template_file: Optional[Path] = None
    fail_open: bool = False
    log_level: str = "INFO"

    def policy_config(self) -> PolicyConfig:
        return PolicyConfig.build(
            ignored_namespaces=self.ignored_namespaces,
            allowed_kinds=DEFAULT_ALLOWED_KINDS,
            allowed_operations=self.allowed_operations,
        )

    def load_template(self) -> AugmentationTemplate:
        if self.template_file is None:
            return lxcfs_template()
        return load_template(self.template_file)

    @classmethod
    def from_env(
        cls,
        host: Optional[str] = None,
        port: Optional[int] = None,
        cert_file: Optional[Path] = None,
        key_file: Optional[Path] = None,
        ignored_namespaces: Optional[Sequence[str]] = None,
        allowed_operations: Optional[Sequence[str]] = None,
        template_file: Optional[Path] = None,
        fail_open: Optional[bool] = None,
        log_level: Optional[str] = None,
    ) -> "WebhookSettings":
        """Explicit arguments win over ``WEBHOOK_*`` environment variables, which win over defaults."""

        defaults = cls()
        env_cert = os.getenv("WEBHOOK_TLS_CERT_FILE")
        env_key = os.getenv("WEBHOOK_TLS_KEY_FILE")
        env_template = os.getenv("WEBHOOK_TEMPLATE_FILE")
        namespaces = _first(
            tuple(ignored_namespaces) if ignored_namespaces is not None else None,
            _split_csv(os.getenv("WEBHOOK_IGNORED_NAMESPACES")),
            defaults.ignored_namespaces,
        )
        operations = _first(
            tuple(allowed_operations) if allowed_operations is not None else None,
            _split_csv(os.getenv("WEBHOOK_ALLOWED_OPERATIONS")),
            defaults.allowed_operations,
        )
        return cls(
            host=host or os.getenv("WEBHOOK_HOST", defaults.host),
            port=_first(port, _env_int("WEBHOOK_PORT"), defaults.port),
            cert_file=_first(cert_file, Path(env_cert) if env_cert else None, defaults.cert_file),
            key_file=_first(key_file, Path(env_key) if env_key else None, defaults.key_file),
            ignored_namespaces=namespaces,
            allowed_operations=tuple(op.upper() for op in operations),
            template_file=_first(template_file, Path(env_template) if env_template else None),
            fail_open=_first(fail_open, _env_bool("WEBHOOK_FAIL_OPEN"), defaults.fail_open),
            log_level=(log_level or os.getenv("WEBHOOK_LOG_LEVEL", defaults.log_level)).upper(),
        )


__all__ = ["DEFAULT_PORT", "DEFAULT_CERT_FILE", "DEFAULT_KEY_FILE", "WebhookSettings"]
