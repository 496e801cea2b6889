from __future__ import annotations

import json
import logging
from functools import lru_cache
from typing import Any

from fastapi import Depends, FastAPI, Request, status
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from .config import WebhookSettings
from .models import AdmissionResponse, AdmissionReview, Status
from .mutate import mutate
from .policy import PolicyConfig
from .template import AugmentationTemplate

logger = logging.getLogger(__name__)

JSON_CONTENT_TYPE = "application/json"
MISSING_REQUEST_MESSAGE = "admission review has no request object"


def review_document(
    document: Any,
    policy: PolicyConfig,
    template: AugmentationTemplate,
    *,
    fail_open: bool = False,
) -> AdmissionReview:
    """Turn a decoded AdmissionReview document into the reply review."""

    try:
        incoming = AdmissionReview.model_validate(document)
    except ValueError as exc:
        logger.error("Can't decode admission review: %s", exc)
        message = f"couldn't decode admission review: {exc}"
        return AdmissionReview(response=AdmissionResponse(status=Status(message=message)))

    if incoming.request is None:
        logger.error(MISSING_REQUEST_MESSAGE)
        return AdmissionReview(response=AdmissionResponse(status=Status(message=MISSING_REQUEST_MESSAGE)))

    response = mutate(policy, template, incoming.request, fail_open=fail_open)
    return AdmissionReview(api_version=incoming.api_version, response=response)


def review_body(
    body: bytes,
    policy: PolicyConfig,
    template: AugmentationTemplate,
    *,
    fail_open: bool = False,
) -> AdmissionReview:
    try:
        document = json.loads(body)
    except ValueError as exc:
        logger.error("Can't decode body: %s", exc)
        return AdmissionReview(response=AdmissionResponse(status=Status(message=f"couldn't decode body: {exc}")))
    return review_document(document, policy, template, fail_open=fail_open)


@lru_cache()
def get_settings() -> WebhookSettings:
    return WebhookSettings.from_env()


@lru_cache()
def get_policy_config() -> PolicyConfig:
    return get_settings().policy_config()


@lru_cache()
def get_template() -> AugmentationTemplate:
    return get_settings().load_template()


def create_app() -> FastAPI:
    app = FastAPI(
        title="lxcfs Admission Webhook",
        description="Mutating admission webhook that mounts lxcfs views of /proc and /sys into pods.",
        version="0.1.0",
    )

    @app.get("/ping", response_class=PlainTextResponse)
    def ping() -> str:
        return "pong"

    @app.post("/mutate")
    async def mutate_review(
        request: Request,
        settings: WebhookSettings = Depends(get_settings),
        policy: PolicyConfig = Depends(get_policy_config),
        template: AugmentationTemplate = Depends(get_template),
    ) -> Response:
        body = await request.body()
        if not body:
            logger.error("empty body")
            return PlainTextResponse("empty body\n", status_code=status.HTTP_400_BAD_REQUEST)

        content_type = request.headers.get("content-type")
        if content_type != JSON_CONTENT_TYPE:
            logger.error("Content-Type=%s, expect %s", content_type, JSON_CONTENT_TYPE)
            return PlainTextResponse(
                f"invalid Content-Type, expect `{JSON_CONTENT_TYPE}`\n",
                status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
            )

        review = review_body(body, policy, template, fail_open=settings.fail_open)
        return JSONResponse(review.to_wire())

    return app


app = create_app()


__all__ = [
    "app",
    "create_app",
    "review_body",
    "review_document",
    "get_settings",
    "get_policy_config",
    "get_template",
    "MISSING_REQUEST_MESSAGE",
]
