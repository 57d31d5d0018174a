from sqlalchemy import Column, ForeignKey, Integer, String

from comanda.core.database import Base


class BankDetails(Base):
    __tablename__ = "bank_details"

    id = Column(Integer, primary_key=True)
    business_id = Column(Integer, ForeignKey("businesses.id"), unique=True, nullable=False)
    alias = Column(String(60), nullable=True)
    cbu = Column(String(30), nullable=True)
    account_holder = Column(String(120), nullable=True)
