from sqlalchemy import Column, DateTime, Integer, Text, UniqueConstraint

from receptionist.database import Base


class DeliveryDedup(Base):
    __tablename__ = "delivery_dedup"
    __table_args__ = (UniqueConstraint("tenant_id", "channel", "message_id", name="uq_delivery_dedup_message"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(Text, nullable=False)
    channel = Column(Text, nullable=False)
    message_id = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)
