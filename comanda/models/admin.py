from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, func

from comanda.core.database import Base


class Admin(Base):
    __tablename__ = "admins"

    id = Column(Integer, primary_key=True)
    phone = Column(String(30), unique=True, index=True, nullable=False)
    name = Column(String(120), nullable=True)
    invite_code_id = Column(Integer, ForeignKey("invite_codes.id"), nullable=True)
    business_id = Column(Integer, ForeignKey("businesses.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
