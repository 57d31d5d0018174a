from sqlalchemy import Column, ForeignKey, Integer, String

from comanda.core.database import Base


class DeliveryZone(Base):
    __tablename__ = "delivery_zones"

    id = Column(Integer, primary_key=True)
    business_id = Column(Integer, ForeignKey("businesses.id"), index=True, nullable=False)
    zone_name = Column(String(120), nullable=False)
    price = Column(Integer, nullable=False, default=0)
