from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from receptionist.dependencies import get_db, get_pipeline
from receptionist.logging_config import get_logger
from receptionist.schemas.webhook import WebsiteChatResponse, WebsiteMessage
from receptionist.services.channels import Channel
from receptionist.services.channels.base import InboundMessage
from receptionist.services.errors import TenantNotFoundError
from receptionist.services.message_service import find_reply_to
from receptionist.services.pipeline import InboundPipeline
from receptionist.services.tenant_service import get_tenant

logger = get_logger("widget")

router = APIRouter(prefix="/api")


def _previous_reply(db: Session, tenant_id: str, visitor_id: str, message_id: str) -> WebsiteChatResponse:
    conversation_id, reply = find_reply_to(db, tenant_id, Channel.WEBSITE.value, visitor_id, message_id)
    return WebsiteChatResponse(conversationId=conversation_id, message=reply.content if reply else None)


@router.post("/chat/{tenant_id}", response_model=WebsiteChatResponse)
async def website_chat(
    tenant_id: str,
    payload: WebsiteMessage,
    request: Request,
    db: Session = Depends(get_db),
    pipeline: InboundPipeline = Depends(get_pipeline),
):
    """Chat widget endpoint. The reply is delivered in this response.

    A retried messageId gets the reply recorded for the first attempt.
    """
    try:
        await run_in_threadpool(get_tenant, db, tenant_id)
    except TenantNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    db.close()

    adapter = request.app.state.adapters[Channel.WEBSITE]
    text = payload.message.strip()
    if not text:
        raise HTTPException(status_code=422, detail="Message is empty")

    inbound = InboundMessage(
        external_id=payload.visitor_id,
        text=text,
        message_id=payload.message_id,
        display_name=payload.name,
    )
    outcome = await pipeline.run(tenant_id, adapter, adapter.parse_credentials({}), inbound)
    if outcome.duplicate:
        logger.info("Website retry answered from history", extra={"context": {"tenant_id": tenant_id}})
        return await run_in_threadpool(_previous_reply, db, tenant_id, payload.visitor_id, payload.message_id)
    if outcome.reply_text is None:
        logger.error("Website chat failed", extra={"context": {"tenant_id": tenant_id}})
        raise HTTPException(status_code=500, detail="Failed to process message")

    return WebsiteChatResponse(conversationId=outcome.conversation_id, message=outcome.reply_text)
