"""
storefront/models/user.py

Purpose: User document model

- Chat id (identity) and role
- Persisted conversation state and scratch slot
- Contact details remembered between checkouts
- Catalog cursor used by the "more" button
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class Role(str, Enum):
    USER = "USER"
    MANAGER = "MANAGER"
    ADMIN = "ADMIN"


STAFF_ROLES = frozenset({Role.MANAGER, Role.ADMIN})


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(BaseModel):
    """
    A chat participant. Created on first contact and never deleted.

    ``state`` holds the encoded conversation state (see flow/states.py) and
    ``scratch`` the JSON-encoded wizard draft; both are None while idle.
    """
    chat_id: int
    role: Role = Role.USER
    state: Optional[str] = None
    scratch: Optional[str] = None

    first_name: Optional[str] = None
    username: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None

    # Last category page the user browsed
    catalog_slug: Optional[str] = None
    catalog_page: int = Field(default=0, ge=0)

    created_at: datetime = Field(default_factory=utcnow)
    last_interaction: datetime = Field(default_factory=utcnow)

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    @property
    def display_name(self) -> str:
        if self.username:
            return f"@{self.username}"
        return self.first_name or str(self.chat_id)
