import sqlalchemy as sa
from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB

from comanda.core.clock import utcnow
from comanda.core.database import Base


class Order(Base):
    __tablename__ = "orders"
    __table_args__ = (UniqueConstraint("business_id", "order_number", name="uq_orders_business_number"),)

    id = Column(Integer, primary_key=True)
    business_id = Column(Integer, ForeignKey("businesses.id"), index=True, nullable=False)
    order_number = Column(Integer, nullable=False)

    client_phone = Column(String(30), index=True, nullable=False)
    client_name = Column(String(120), nullable=True)
    client_address = Column(Text, nullable=True)

    # [{product_id, name, qty, price, subtotal}]
    items = Column(JSONB().with_variant(sa.JSON(), "sqlite"), nullable=False)
    subtotal = Column(Integer, nullable=False, default=0)
    delivery_zone_id = Column(Integer, ForeignKey("delivery_zones.id", ondelete="SET NULL"), nullable=True)
    delivery_price = Column(Integer, nullable=False, default=0)
    grand_total = Column(Integer, nullable=False, default=0)

    payment_method = Column(String(20), nullable=False)  # cash / transfer / deposit
    deposit_amount = Column(Integer, nullable=True)

    # nuevo / preparando / en_camino / entregado / cancelado
    order_status = Column(String(20), nullable=False, default="nuevo")
    # pending / confirmed
    payment_status = Column(String(20), nullable=False, default="pending")

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
