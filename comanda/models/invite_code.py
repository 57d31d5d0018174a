from sqlalchemy import Column, DateTime, Integer, String, func

from comanda.core.database import Base


class InviteCode(Base):
    __tablename__ = "invite_codes"

    id = Column(Integer, primary_key=True)
    code = Column(String(20), unique=True, index=True, nullable=False)
    phone_number_id = Column(String(64), nullable=True)
    used_by_phone = Column(String(30), nullable=True)
    used_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
