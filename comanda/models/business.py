from sqlalchemy import Boolean, Column, Date, DateTime, Integer, String, Text, func

from comanda.core.database import Base


class Business(Base):
    __tablename__ = "businesses"

    id = Column(Integer, primary_key=True)
    admin_phone = Column(String(30), index=True, nullable=False)
    business_name = Column(String(120), nullable=True)
    business_hours = Column(Text, nullable=True)

    has_delivery = Column(Boolean, nullable=False, default=False)
    has_pickup = Column(Boolean, nullable=False, default=False)
    business_address = Column(Text, nullable=True)

    accepts_cash = Column(Boolean, nullable=False, default=False)
    accepts_transfer = Column(Boolean, nullable=False, default=False)
    accepts_deposit = Column(Boolean, nullable=False, default=False)
    deposit_percent = Column(Integer, nullable=True)

    # solo se activa al terminar el onboarding con productos cargados
    is_active = Column(Boolean, nullable=False, default=False)
    # fecha local del último resumen diario enviado al admin
    last_summary_on = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
