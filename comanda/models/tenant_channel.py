from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, func

from comanda.core.database import Base


class TenantChannel(Base):
    """Número de WhatsApp Cloud (phone_number_id) y sus credenciales."""

    __tablename__ = "tenant_channels"

    id = Column(Integer, primary_key=True)
    phone_number_id = Column(String(64), unique=True, index=True, nullable=False)
    display_phone_number = Column(String(30), nullable=True)
    access_token = Column(String, nullable=False)
    verify_token = Column(String, nullable=True)
    app_secret = Column(String, nullable=True)
    catalog_id = Column(String(64), nullable=True)
    business_id = Column(Integer, ForeignKey("businesses.id"), nullable=True, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
