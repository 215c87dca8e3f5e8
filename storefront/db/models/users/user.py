# storefront/db/models/users/user.py
from datetime import datetime, timezone
from enum import Enum
import uuid

from sqlmodel import SQLModel, Field


class Role(str, Enum):
    USER = "user"
    ADMIN = "admin"


class User(SQLModel, table=True):
    """Stored account. The built-in administrator never has a row here."""
    __tablename__ = "users"

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    username: str = Field(max_length=100, min_length=3)
    email: str = Field(max_length=255, unique=True, index=True)
    phone: str = Field(max_length=20, unique=True, index=True)  # digits incl. country code, no "+"
    password_hash: str = Field(max_length=255)
    role: Role = Field(default=Role.USER)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
