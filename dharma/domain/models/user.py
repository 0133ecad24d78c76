"""User domain model for app authentication."""

from datetime import datetime, timezone
from typing import Optional


class User:
    """
    User entity for signed-in app members.

    Attributes:
        id: Opaque unique identifier
        email: User email address (unique)
        password_hash: Hashed password
        full_name: Optional display name used to prefill checkout
        created_at: Account creation timestamp
        updated_at: Last update timestamp
    """

    def __init__(
        self,
        id: str,
        email: str,
        password_hash: str,
        full_name: Optional[str] = None,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None,
    ):
        self.id = id
        self.email = email
        self.password_hash = password_hash
        self.full_name = full_name
        self.created_at = created_at or datetime.now(timezone.utc)
        self.updated_at = updated_at or datetime.now(timezone.utc)

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email}>"
