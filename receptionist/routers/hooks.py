"""Per-tenant provider webhooks: /hooks/{channel}/{tenant_id}."""

import json
from typing import Any, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from receptionist.dependencies import get_adapter_or_none, get_db, get_pipeline
from receptionist.logging_config import get_logger
from receptionist.schemas.webhook import WebhookAck
from receptionist.services.channels import ChannelAdapter, InboundRequest
from receptionist.services.errors import ChannelNotConfiguredError, TenantNotFoundError
from receptionist.services.pipeline import InboundPipeline
from receptionist.services.tenant_service import get_channel_credentials, get_tenant

logger = get_logger("hooks")

router = APIRouter()


def load_credentials(db: Session, tenant_id: str, adapter: ChannelAdapter) -> BaseModel:
    """Resolve tenant and channel credentials, or raise 404."""
    try:
        if not adapter.requires_config:
            get_tenant(db, tenant_id)
            config = {}
        else:
            config = get_channel_credentials(db, tenant_id, adapter.channel.value)
    except (TenantNotFoundError, ChannelNotConfiguredError) as e:
        raise HTTPException(status_code=404, detail=str(e))

    credentials = adapter.parse_credentials(config)
    if credentials is None:
        raise HTTPException(status_code=404, detail=f"Channel '{adapter.channel.value}' is not configured")
    return credentials


def _require_adapter(request: Request, channel: str) -> ChannelAdapter:
    adapter = get_adapter_or_none(request, channel)
    if adapter is None:
        raise HTTPException(status_code=404, detail=f"Unknown channel '{channel}'")
    return adapter


def decode_payload(raw: bytes) -> Optional[Any]:
    """Decode JSON body tolerating broken utf-8. Returns None if undecodable."""
    for enc in ("utf-8", "latin-1"):
        try:
            return json.loads(raw.decode(enc, errors="replace"))
        except ValueError:
            continue
    return None


@router.get("/hooks/{channel}/{tenant_id}")
async def verify_subscription(channel: str, tenant_id: str, request: Request, db: Session = Depends(get_db)):
    """Subscription handshake (hub.mode / hub.verify_token / hub.challenge)."""
    adapter = _require_adapter(request, channel)
    try:
        credentials = await run_in_threadpool(load_credentials, db, tenant_id, adapter)
    except HTTPException as e:
        # the handshake never reveals whether a tenant or channel exists
        logger.warning(
            "Webhook handshake for unknown endpoint",
            extra={"context": {"tenant_id": tenant_id, "channel": channel, "reason": e.detail}},
        )
        raise HTTPException(status_code=403, detail="Verification failed")

    challenge = adapter.verify_challenge(credentials, dict(request.query_params))
    if challenge is None:
        logger.warning(
            "Webhook handshake rejected",
            extra={"context": {"tenant_id": tenant_id, "channel": channel}},
        )
        raise HTTPException(status_code=403, detail="Verification failed")

    return PlainTextResponse(challenge)


@router.post("/hooks/{channel}/{tenant_id}", response_model=WebhookAck)
async def receive_delivery(
    channel: str,
    tenant_id: str,
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    pipeline: InboundPipeline = Depends(get_pipeline),
):
    """Authenticate, acknowledge, then process the delivery in the background."""
    adapter = _require_adapter(request, channel)
    credentials = await run_in_threadpool(load_credentials, db, tenant_id, adapter)

    raw = await request.body()
    inbound_request = InboundRequest(
        headers=dict(request.headers),
        query=dict(request.query_params),
        body=raw,
    )
    if not adapter.verify(credentials, inbound_request):
        logger.warning(
            "Webhook authentication failed",
            extra={"context": {"tenant_id": tenant_id, "channel": channel}},
        )
        raise HTTPException(status_code=401, detail="Invalid webhook credentials")

    payload = decode_payload(raw)
    if payload is None:
        logger.warning("Undecodable webhook payload", extra={"context": {"tenant_id": tenant_id, "channel": channel}})
        return WebhookAck(success=True, message="Ignored")

    background_tasks.add_task(pipeline.process_delivery, tenant_id, adapter, credentials, payload)
    return WebhookAck(success=True, message="Accepted")
