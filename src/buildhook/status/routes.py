"""Build status read API and the operator admin surface."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, SecretStr

from buildhook.content.hasher import EnumerationError
from buildhook.dispatch.config_store import ConfigValidationError, config_warnings
from buildhook.dispatch.models import WebhookConfig
from buildhook.status.auth import require_operator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/headless-static/v1", tags=["build"])


class SettingsUpdate(BaseModel):
    """Partial update; omitted fields keep their stored value, "" clears."""

    url: str | None = None
    secret: str | None = None
    ci_repo: str | None = None
    ci_workflow_file: str | None = None
    ci_token: str | None = None
    ci_ref: str | None = None


def _settings_view(config: WebhookConfig, warnings: list[str]) -> dict:
    return {
        "url": config.url or "",
        "secret_set": bool(config.secret_value),
        "ci_repo": config.ci_repo or "",
        "ci_workflow_file": config.ci_workflow_file,
        "ci_token_set": bool(config.ci_token and config.ci_token.get_secret_value()),
        "ci_ref": config.ci_ref,
        "warnings": warnings,
    }


def _merge(current: WebhookConfig, update: SettingsUpdate) -> WebhookConfig:
    changes: dict = {}
    for name in ("url", "ci_repo"):
        value = getattr(update, name)
        if value is not None:
            changes[name] = value.strip() or None
    for name in ("ci_workflow_file", "ci_ref"):
        value = getattr(update, name)
        if value:
            changes[name] = value.strip()
    for name in ("secret", "ci_token"):
        value = getattr(update, name)
        if value is not None:
            changes[name] = SecretStr(value) if value else None
    return WebhookConfig.model_validate({**current.model_dump(), **changes})


@router.get("/build-status")
async def build_status(request: Request):
    try:
        return await request.app.state.status_service.get_status()
    except EnumerationError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc


@router.get("/content-hash")
async def content_hash(request: Request):
    try:
        return await request.app.state.status_service.get_content_hash()
    except EnumerationError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc


@router.post("/trigger-build")
async def trigger_build(request: Request, operator: str = Depends(require_operator)):
    service = request.app.state.status_service
    try:
        result = await service.trigger_build(triggered_by=operator)
    except EnumerationError as exc:
        logger.error("Manual build aborted: %s", exc)
        return JSONResponse(status_code=503, content={"success": False, "message": str(exc)})

    if result.success:
        return {"success": True, "message": result.message}
    return JSONResponse(
        status_code=502 if result.configured else 400,
        content={"success": False, "message": result.message},
    )


@router.post("/test-webhook")
async def test_webhook(request: Request, operator: str = Depends(require_operator)):
    result = await request.app.state.status_service.send_test_webhook()
    if result.success:
        return {"success": True, "message": result.message}
    return JSONResponse(
        status_code=502 if result.configured else 400,
        content={"success": False, "message": result.message},
    )


@router.get("/settings")
async def get_settings(request: Request, operator: str = Depends(require_operator)):
    config = await request.app.state.config_store.load()
    return _settings_view(config, config_warnings(config))


@router.put("/settings")
async def put_settings(
    request: Request,
    update: SettingsUpdate,
    operator: str = Depends(require_operator),
):
    store = request.app.state.config_store
    config = _merge(await store.load(), update)
    try:
        warnings = await store.save(config)
    except ConfigValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return _settings_view(config, warnings)
