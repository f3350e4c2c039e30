"""Session model for an authenticated user."""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field, field_validator


class UserRole(str, Enum):
    """User role enumeration."""

    ADMIN = "admin"
    CLIENT = "client"


# Spellings the backend uses for roles
_ROLE_ALIASES = {
    "admin": UserRole.ADMIN,
    "client": UserRole.CLIENT,
    "cliente": UserRole.CLIENT,
}


def parse_role(value: object) -> UserRole:
    """Map a backend role string onto UserRole."""
    if isinstance(value, UserRole):
        return value
    role = _ROLE_ALIASES.get(str(value).strip().lower())
    if role is None:
        raise ValueError(f"Unknown role: {value!r}")
    return role


class Credentials(BaseModel):
    """Login credentials."""

    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class Session(BaseModel):
    """The durable authenticated-identity record for the current user."""

    token: str
    user_id: str
    role: UserRole
    issued_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = {"frozen": True}

    @field_validator("user_id", mode="before")
    @classmethod
    def _coerce_user_id(cls, value: object) -> str:
        return str(value)

    @field_validator("role", mode="before")
    @classmethod
    def _coerce_role(cls, value: object) -> UserRole:
        return parse_role(value)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def to_record(self) -> str:
        """Serialize for the persistent store."""
        return self.model_dump_json()

    @classmethod
    def from_record(cls, record: str) -> "Session":
        """Deserialize a persisted record."""
        return cls.model_validate_json(record)
