from sqlalchemy import Column, DateTime, ForeignKey, Integer, String

from comanda.core.clock import utcnow
from comanda.core.database import Base


class Subscription(Base):
    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True)
    business_id = Column(Integer, ForeignKey("businesses.id"), index=True, nullable=False)
    plan_slug = Column(String(20), nullable=False)
    status = Column(String(20), nullable=False)  # trial / active / expired / cancelled
    start_date = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=False)
