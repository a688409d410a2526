import secrets
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from receptionist.models import AiTraining, ChannelConfig, Tenant
from receptionist.services.errors import ChannelNotConfiguredError, TenantNotFoundError


@dataclass
class TrainingSnippet:
    category: Optional[str]
    content: str


@dataclass
class AiContext:
    """Per-tenant customization handed to the completion gateway."""

    tenant_id: str
    business_name: str
    preferred_language: str = "en"
    prompt_override: Optional[str] = None
    language_instructions: Optional[str] = None
    training: list[TrainingSnippet] = field(default_factory=list)


def get_tenant(db: Session, tenant_id: str) -> Tenant:
    tenant = db.query(Tenant).filter(Tenant.id == tenant_id).first()
    if not tenant:
        raise TenantNotFoundError(tenant_id)
    return tenant


def get_channel_config(db: Session, tenant_id: str, channel: str) -> Optional[ChannelConfig]:
    """Return the active credential row for (tenant, channel), if any."""
    return (
        db.query(ChannelConfig)
        .filter(
            ChannelConfig.tenant_id == tenant_id,
            ChannelConfig.channel == channel,
            ChannelConfig.is_active.is_(True),
        )
        .first()
    )


def get_channel_credentials(db: Session, tenant_id: str, channel: str) -> dict:
    """Credential blob for a tenant channel.

    Raises TenantNotFoundError for an unknown tenant and ChannelNotConfiguredError
    when there is no active row.
    """
    get_tenant(db, tenant_id)
    config = get_channel_config(db, tenant_id, channel)
    if not config:
        raise ChannelNotConfiguredError(tenant_id, channel)
    return dict(config.config or {})


def upsert_channel_config(db: Session, tenant_id: str, channel: str, config: dict, is_active: bool = True) -> ChannelConfig:
    """Create or replace a channel's credentials. Last writer wins."""
    get_tenant(db, tenant_id)
    config = dict(config)
    if channel == "telegram" and not (config.get("webhookSecret") or config.get("webhook_secret") or config.get("secret")):
        config["webhookSecret"] = secrets.token_urlsafe(32)

    now = datetime.now(timezone.utc)
    row = db.query(ChannelConfig).filter(ChannelConfig.tenant_id == tenant_id, ChannelConfig.channel == channel).first()
    if row:
        row.config = config
        row.is_active = is_active
        row.updated_at = now
    else:
        row = ChannelConfig(tenant_id=tenant_id, channel=channel, config=config, is_active=is_active, updated_at=now)
        db.add(row)
    db.commit()
    return row


def get_ai_context(db: Session, tenant_id: str) -> AiContext:
    tenant = get_tenant(db, tenant_id)
    training = (
        db.query(AiTraining).filter(AiTraining.tenant_id == tenant_id).order_by(AiTraining.created_at).all()
    )
    return AiContext(
        tenant_id=tenant.id,
        business_name=tenant.name,
        preferred_language=tenant.preferred_language or "en",
        prompt_override=tenant.ai_prompt_customization,
        language_instructions=tenant.ai_language_instructions,
        training=[TrainingSnippet(category=item.category, content=item.content) for item in training],
    )
