import uuid

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from receptionist.database import Base


class Tenant(Base):
    __tablename__ = "tenants"

    id = Column(Text, primary_key=True)
    name = Column(Text, nullable=False)
    preferred_language = Column(Text, default="en")
    ai_prompt_customization = Column(Text)
    ai_language_instructions = Column(Text)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    channel_configs = relationship("ChannelConfig", back_populates="tenant")
    training = relationship("AiTraining", back_populates="tenant", order_by="AiTraining.created_at")


class ChannelConfig(Base):
    __tablename__ = "channel_configs"
    __table_args__ = (UniqueConstraint("tenant_id", "channel", name="uq_channel_configs_tenant_channel"),)

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Text, ForeignKey("tenants.id"), nullable=False)
    channel = Column(Text, nullable=False)  # website, telegram, whatsapp, facebook, instagram
    config = Column(JSON, nullable=False, default=dict)
    is_active = Column(Boolean, nullable=False, default=True)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    tenant = relationship("Tenant", back_populates="channel_configs")


class AiTraining(Base):
    __tablename__ = "ai_training"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Text, ForeignKey("tenants.id"), nullable=False)
    category = Column(Text)  # faq, services, policies, ...
    content = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)

    tenant = relationship("Tenant", back_populates="training")
