from sqlalchemy import Column, String, Boolean
import enum

from app.database.database import Base
from app.common.mixins import BaseMixin


class UserRole(enum.Enum):
    ADMIN = "admin"
    ACCOUNTANT = "accountant"
    CLIENT = "client"


class User(Base, BaseMixin):
    __tablename__ = "users"

    name = Column(String(120), nullable=False)
    email = Column(String(254), unique=True, nullable=False, index=True)
    password = Column(String, nullable=False)
    role = Column(String(20), nullable=False, default=UserRole.CLIENT.value)  # admin, accountant, client
    is_active = Column(Boolean, default=True, nullable=False)
