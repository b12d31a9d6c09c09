from app.database.database import Base
from sqlalchemy import Column, String, Text
from sqlalchemy.orm import relationship
from app.common.mixins import BaseMixin


class Client(Base, BaseMixin):
    """Billed party referenced by invoices"""
    __tablename__ = "clients"

    name = Column(String(200), nullable=False, index=True)
    email = Column(String(255), nullable=True, index=True)
    phone = Column(String(50), nullable=True)
    address = Column(Text, nullable=True)

    # No cascade: a client with invoices cannot be deleted
    invoices = relationship("Invoice", back_populates="client", passive_deletes="all")
