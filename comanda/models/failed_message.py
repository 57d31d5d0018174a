from sqlalchemy import Column, DateTime, Integer, String, Text, func

from comanda.core.database import Base


class FailedMessage(Base):
    __tablename__ = "failed_messages"

    id = Column(Integer, primary_key=True)
    phone_number_id = Column(String(64), nullable=True)
    sender = Column(String(30), index=True, nullable=True)
    payload = Column(Text, nullable=False)
    error = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
