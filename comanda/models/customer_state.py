import sqlalchemy as sa
from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import JSONB

from comanda.core.database import Base


class CustomerConversationState(Base):
    __tablename__ = "customer_states"
    __table_args__ = (UniqueConstraint("business_id", "phone", name="uq_customer_states_business_phone"),)

    id = Column(Integer, primary_key=True)
    business_id = Column(Integer, ForeignKey("businesses.id"), index=True, nullable=False)
    phone = Column(String(30), index=True, nullable=False)
    current_step = Column(String(40), nullable=False)

    cart = Column(JSONB().with_variant(sa.JSON(), "sqlite"), nullable=False, default=list)
    selected_zone_id = Column(Integer, ForeignKey("delivery_zones.id", ondelete="SET NULL"), nullable=True)
    delivery_method = Column(String(20), nullable=True)  # delivery / pickup
    delivery_address = Column(Text, nullable=True)
    # totales y opciones de pago congelados al mostrar el resumen
    checkout = Column(JSONB().with_variant(sa.JSON(), "sqlite"), nullable=True)

    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
