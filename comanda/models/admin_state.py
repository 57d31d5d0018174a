import sqlalchemy as sa
from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, func
from sqlalchemy.dialects.postgresql import JSONB

from comanda.core.database import Base


class AdminConversationState(Base):
    __tablename__ = "admin_states"

    id = Column(Integer, primary_key=True)
    phone = Column(String(30), unique=True, index=True, nullable=False)
    business_id = Column(Integer, ForeignKey("businesses.id"), nullable=False)
    current_step = Column(String(40), nullable=False)
    # producto elegido y campo a editar entre mensajes de la gestión de productos
    draft = Column(JSONB().with_variant(sa.JSON(), "sqlite"), nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
