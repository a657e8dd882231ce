"""Endpoint receiving content-mutation notifications from the CMS."""

import logging

from fastapi import APIRouter, Header, HTTPException, Request, status
from pydantic import ValidationError

from buildhook.dispatch.signing import verify_body_signature
from buildhook.events.models import MutationNotification

logger = logging.getLogger(__name__)

router = APIRouter(tags=["events"])


@router.post("/events", status_code=status.HTTP_202_ACCEPTED)
async def receive_event(
    request: Request,
    x_cms_signature: str | None = Header(None),
):
    """Filter and enqueue a mutation notification; hashing and dispatch run later."""
    body = await request.body()
    settings = request.app.state.settings

    if settings.cms_signing_secret:
        if not x_cms_signature or not verify_body_signature(
            body, x_cms_signature, settings.cms_signing_secret
        ):
            raise HTTPException(status_code=401, detail="Invalid signature")

    try:
        notification = MutationNotification.model_validate_json(body)
        event = notification.to_event()
    except (ValidationError, ValueError) as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc

    accepted = request.app.state.observer.notify(event)
    if accepted:
        logger.info("Queued %s for %s", event.hook, event.entity_id)
    return {"accepted": accepted}
