from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, List, Optional

import typer
import uvicorn
import yaml

from .config import WebhookSettings
from .errors import DecodeError, PatchError, TemplateError
from .models import AdmissionReview
from .mutate import decide, decode_pod
from .patch import apply_patch
from .policy import PolicyConfig
from .server import create_app, get_policy_config, get_settings, get_template, review_document
from .template import AugmentationTemplate, dump_template

app = typer.Typer(help="Mutating admission webhook that injects lxcfs volumes into pods.")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _configure_logging(level: str) -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)


def _load_settings(**overrides: Any) -> WebhookSettings:
    try:
        return WebhookSettings.from_env(**overrides)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc


def _load_template(settings: WebhookSettings) -> AugmentationTemplate:
    try:
        return settings.load_template()
    except TemplateError as exc:
        raise typer.BadParameter(str(exc)) from exc


def _load_document(path: Path) -> Any:
    try:
        with path.open("r", encoding="utf-8") as handle:
            return yaml.safe_load(handle)
    except FileNotFoundError as exc:
        raise typer.BadParameter(f"Admission review file not found: {path}") from exc
    except yaml.YAMLError as exc:
        raise typer.BadParameter(f"Admission review file is not valid JSON or YAML: {exc}") from exc


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Interface to bind (default 0.0.0.0)."),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Webhook server port (default 8443)."),
    cert_file: Optional[Path] = typer.Option(
        None,
        "--tls-cert-file",
        help="File containing the x509 certificate for HTTPS.",
    ),
    key_file: Optional[Path] = typer.Option(
        None,
        "--tls-key-file",
        help="File containing the x509 private key matching --tls-cert-file.",
    ),
    tls: bool = typer.Option(True, "--tls/--no-tls", help="Serve HTTPS (disable only for local testing)."),
    template_file: Optional[Path] = typer.Option(
        None,
        "--template",
        "-t",
        help="YAML file with the volumes and volumeMounts to inject (defaults to the lxcfs template).",
    ),
    ignored_namespaces: Optional[List[str]] = typer.Option(
        None,
        "--ignore-namespace",
        help="Namespace excluded from mutation; repeat for several (default kube-system, kube-public).",
    ),
    fail_open: Optional[bool] = typer.Option(
        None,
        "--fail-open/--fail-closed",
        help="Allow pods whose object cannot be decoded instead of rejecting them.",
    ),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Logging level (default INFO)."),
) -> None:
    settings = _load_settings(
        host=host,
        port=port,
        cert_file=cert_file,
        key_file=key_file,
        ignored_namespaces=ignored_namespaces or None,
        template_file=template_file,
        fail_open=fail_open,
        log_level=log_level,
    )
    _configure_logging(settings.log_level)
    template = _load_template(settings)

    ssl_options = {}
    if tls:
        for option, path in (("--tls-cert-file", settings.cert_file), ("--tls-key-file", settings.key_file)):
            if not path.exists():
                raise typer.BadParameter(f"{option} not found: {path}")
        ssl_options = {"ssl_certfile": str(settings.cert_file), "ssl_keyfile": str(settings.key_file)}

    server_app = create_app()
    server_app.dependency_overrides[get_settings] = lambda: settings
    server_app.dependency_overrides[get_policy_config] = settings.policy_config
    server_app.dependency_overrides[get_template] = lambda: template

    logging.getLogger(__name__).info(
        "Starting webhook server on %s:%d (tls=%s, ignored namespaces=%s)",
        settings.host,
        settings.port,
        tls,
        ",".join(settings.ignored_namespaces),
    )
    uvicorn.run(
        server_app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        **ssl_options,
    )
    logging.getLogger(__name__).info("Webhook server shut down")


@app.command()
def review(
    review_file: Path = typer.Argument(..., help="AdmissionReview document (JSON or YAML)."),
    template_file: Optional[Path] = typer.Option(
        None,
        "--template",
        "-t",
        help="YAML file with the volumes and volumeMounts to inject.",
    ),
    ignored_namespaces: Optional[List[str]] = typer.Option(
        None,
        "--ignore-namespace",
        help="Namespace excluded from mutation; repeat for several.",
    ),
    fail_open: bool = typer.Option(False, "--fail-open/--fail-closed", help="Allow undecodable objects."),
    show_patched: bool = typer.Option(
        False,
        "--show-patched",
        help="Also print the pod as it looks after the patch is applied.",
    ),
    out: Optional[Path] = typer.Option(None, "--out", "-o", help="Write the response review here."),
) -> None:
    """Run one AdmissionReview through the mutation pipeline without a server."""

    _configure_logging("WARNING")
    settings = _load_settings(
        ignored_namespaces=ignored_namespaces or None,
        template_file=template_file,
        fail_open=fail_open,
    )
    policy = settings.policy_config()
    template = _load_template(settings)

    document = _load_document(review_file)
    reply = review_document(document, policy, template, fail_open=settings.fail_open)
    rendered = json.dumps(reply.to_wire(), indent=2)
    if out is not None:
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(rendered + "\n", encoding="utf-8")
        typer.echo(f"Response written to {out.resolve()}")
    else:
        typer.echo(rendered)

    if show_patched:
        typer.echo("---")
        typer.echo(_render_patched(document, policy, template), nl=False)


def _render_patched(document: Any, policy: PolicyConfig, template: AugmentationTemplate) -> str:
    try:
        incoming = AdmissionReview.model_validate(document)
    except ValueError as exc:
        raise typer.BadParameter(f"Admission review is invalid: {exc}") from exc
    if incoming.request is None:
        raise typer.BadParameter("Admission review has no request object")
    raw = incoming.request.resource_object
    try:
        result = decide(policy, template, incoming.request, decode_pod(raw))
        patched = apply_patch(raw, result.patch)
    except (DecodeError, PatchError) as exc:
        raise typer.BadParameter(str(exc)) from exc
    return yaml.safe_dump(patched, sort_keys=False)


@app.command("template")
def show_template(
    template_file: Optional[Path] = typer.Option(
        None,
        "--template",
        "-t",
        help="YAML template to validate and print (defaults to the built-in lxcfs template).",
    ),
) -> None:
    """Print the augmentation template the webhook would inject."""

    settings = _load_settings(template_file=template_file)
    typer.echo(dump_template(_load_template(settings)), nl=False)


if __name__ == "__main__":  # pragma: no cover
    app()
