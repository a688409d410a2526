"""Owner-facing API: conversations, bookings and channel setup."""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Body, Depends, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from receptionist.dependencies import get_adapter_or_none, get_db, get_notifier, get_pipeline
from receptionist.logging_config import get_logger
from receptionist.routers.hooks import load_credentials
from receptionist.schemas.dashboard import BookingOut, BookingStatusUpdate, ConversationOut, MessageOut, SetWebhookRequest
from receptionist.services import booking_service, conversation_service, message_service, tenant_service
from receptionist.services.channels import Channel
from receptionist.services.errors import (
    BookingNotFoundError,
    ConversationNotFoundError,
    TenantNotFoundError,
)
from receptionist.services.live_notifier import LiveNotifier, booking_update, conversation_update
from receptionist.services.pipeline import InboundPipeline
from receptionist.services.state_machine import InvalidTransitionError

logger = get_logger("dashboard")

router = APIRouter(prefix="/api/tenants/{tenant_id}")


def _tenant_or_404(db: Session, tenant_id: str):
    try:
        return tenant_service.get_tenant(db, tenant_id)
    except TenantNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


def _conversation_or_404(db: Session, tenant_id: str, conversation_id: UUID):
    try:
        return conversation_service.get_conversation(db, tenant_id, conversation_id)
    except ConversationNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


def hook_url(request: Request, channel: str, tenant_id: str, base_url: Optional[str] = None) -> str:
    base = base_url or request.app.state.settings.public_base_url or str(request.base_url)
    return f"{base.rstrip('/')}/hooks/{channel}/{tenant_id}"


@router.get("/conversations", response_model=list[ConversationOut])
def list_conversations(tenant_id: str, status: Optional[str] = None, db: Session = Depends(get_db)):
    _tenant_or_404(db, tenant_id)
    return conversation_service.list_conversations(db, tenant_id, status)


@router.get("/conversations/{conversation_id}/messages", response_model=list[MessageOut])
def list_messages(tenant_id: str, conversation_id: UUID, db: Session = Depends(get_db)):
    conversation = _conversation_or_404(db, tenant_id, conversation_id)
    return message_service.get_history(db, conversation.id)


@router.post("/conversations/{conversation_id}/close", response_model=ConversationOut)
def close_conversation(
    tenant_id: str,
    conversation_id: UUID,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    notifier: LiveNotifier = Depends(get_notifier),
):
    conversation = _conversation_or_404(db, tenant_id, conversation_id)
    try:
        conversation_service.close_conversation(db, conversation)
    except InvalidTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))

    background_tasks.add_task(
        notifier.publish,
        tenant_id,
        conversation_update(conversation.id, conversation.customer_id, conversation.channel),
    )
    return conversation


@router.get("/bookings", response_model=list[BookingOut])
def list_bookings(tenant_id: str, status: Optional[str] = None, db: Session = Depends(get_db)):
    _tenant_or_404(db, tenant_id)
    return booking_service.list_bookings(db, tenant_id, status)


@router.patch("/bookings/{booking_id}", response_model=BookingOut)
def update_booking(
    tenant_id: str,
    booking_id: UUID,
    update: BookingStatusUpdate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    notifier: LiveNotifier = Depends(get_notifier),
    pipeline: InboundPipeline = Depends(get_pipeline),
):
    """Apply an owner decision, then publish it and tell the customer in the background."""
    try:
        booking = booking_service.get_booking(db, tenant_id, booking_id)
    except BookingNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    try:
        booking_service.update_booking_status(db, booking, update.status, update.notes)
    except InvalidTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))

    logger.info(
        "Booking status changed",
        extra={"context": {"tenant_id": tenant_id, "booking_id": str(booking.id), "status": booking.status}},
    )
    background_tasks.add_task(notifier.publish, tenant_id, booking_update(booking.id, booking.status))
    background_tasks.add_task(pipeline.notify_booking_action, tenant_id, booking.id, booking.status, update.notes)
    return booking


@router.put("/channels/{channel}")
def save_channel_config(tenant_id: str, channel: str, config: dict = Body(...), db: Session = Depends(get_db)):
    """Store channel credentials. A Telegram webhook secret is generated when missing."""
    if channel not in {c.value for c in Channel}:
        raise HTTPException(status_code=404, detail=f"Unknown channel '{channel}'")
    try:
        row = tenant_service.upsert_channel_config(db, tenant_id, channel, config)
    except TenantNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"channel": row.channel, "isActive": row.is_active, "config": row.config}


@router.get("/channels/{channel}/webhook-url")
def get_webhook_url(tenant_id: str, channel: str, request: Request, db: Session = Depends(get_db)):
    if get_adapter_or_none(request, channel) is None:
        raise HTTPException(status_code=404, detail=f"Unknown channel '{channel}'")
    _tenant_or_404(db, tenant_id)
    return {"url": hook_url(request, channel, tenant_id)}


@router.post("/channels/telegram/set-webhook")
async def set_telegram_webhook(
    tenant_id: str,
    request: Request,
    body: Optional[SetWebhookRequest] = None,
    db: Session = Depends(get_db),
):
    """Register this tenant's hook URL with the Telegram Bot API."""
    adapter = request.app.state.adapters[Channel.TELEGRAM]
    credentials = await run_in_threadpool(load_credentials, db, tenant_id, adapter)
    db.close()

    url = hook_url(request, Channel.TELEGRAM.value, tenant_id, body.publicUrl if body else None)
    result = await adapter.set_webhook(credentials, url)
    if not result.ok:
        logger.error(
            "Telegram setWebhook failed",
            extra={"context": {"tenant_id": tenant_id, "error": result.error}},
        )
        raise HTTPException(status_code=502, detail=result.error)
    return {"success": True, "url": url}
