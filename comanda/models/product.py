from sqlalchemy import Boolean, Column, ForeignKey, Integer, String, Text

from comanda.core.database import Base


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True)
    business_id = Column(Integer, ForeignKey("businesses.id"), index=True, nullable=False)
    name = Column(String(160), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Integer, nullable=False)  # pesos enteros
    category = Column(String(80), nullable=True)
    is_available = Column(Boolean, nullable=False, default=True)
    # content id del catálogo de Meta
    retailer_id = Column(String(120), nullable=True, index=True)
