from datetime import datetime, timezone

from receptionist.models import AiTraining, ChannelConfig, Tenant

TENANT_ID = "tenant-1"

TELEGRAM_CONFIG = {"botToken": "123:abc", "webhookSecret": "tg-secret"}
WHATSAPP_CONFIG = {"accessToken": "wa-token", "phoneNumberId": "555000", "verifyToken": "wa-verify"}
MESSENGER_CONFIG = {"pageAccessToken": "page-token", "verifyToken": "fb-verify", "appSecret": "fb-app-secret"}


def make_tenant(db, tenant_id=TENANT_ID, name="Demo Salon", **kwargs):
    now = datetime.now(timezone.utc)
    tenant = Tenant(id=tenant_id, name=name, created_at=now, updated_at=now, **kwargs)
    db.add(tenant)
    db.commit()
    return tenant


def add_channel(db, tenant_id, channel, config, is_active=True):
    row = ChannelConfig(
        tenant_id=tenant_id,
        channel=channel,
        config=config,
        is_active=is_active,
        updated_at=datetime.now(timezone.utc),
    )
    db.add(row)
    db.commit()
    return row


def add_training(db, tenant_id, content, category=None):
    row = AiTraining(tenant_id=tenant_id, category=category, content=content, created_at=datetime.now(timezone.utc))
    db.add(row)
    db.commit()
    return row
