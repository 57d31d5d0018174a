from sqlalchemy import Column, ForeignKey, Integer, String, UniqueConstraint

from comanda.core.database import Base


class MonthlyUsage(Base):
    __tablename__ = "monthly_usage"
    __table_args__ = (UniqueConstraint("business_id", "month", name="uq_monthly_usage_business_month"),)

    id = Column(Integer, primary_key=True)
    business_id = Column(Integer, ForeignKey("businesses.id"), index=True, nullable=False)
    month = Column(String(7), nullable=False)  # YYYY-MM
    order_count = Column(Integer, nullable=False, default=0)
    analytics_queries = Column(Integer, nullable=False, default=0)
