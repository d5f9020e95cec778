# designstudio/models/user.py
from enum import Enum
from typing import Optional
from .address import Address
from .base import TimeStampedModel

class UserRole(str, Enum):
    USER = "user"
    ADMIN = "admin"

class User(TimeStampedModel):
    """Registered or guest customer, unique by email"""
    user_id: int
    email: str
    name: Optional[str] = None
    phone: Optional[str] = None
    role: UserRole = UserRole.USER
    is_guest: bool = False
    address: Optional[Address] = None
