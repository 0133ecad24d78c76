"""Service for user authentication and management."""

from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt

from dharma.domain.models.user import User
from dharma.domain.ports.persistence import UserStore


class UserService:
    """Service for managing user authentication and registration."""

    def __init__(
        self,
        user_repository: UserStore,
        jwt_secret: str,
        jwt_algorithm: str = "HS256",
        jwt_expiration_hours: int = 24,
    ):
        self.user_repository = user_repository
        self.jwt_secret = jwt_secret
        self.jwt_algorithm = jwt_algorithm
        self.jwt_expiration_hours = jwt_expiration_hours

    def register(self, email: str, password: str, full_name: Optional[str] = None) -> User:
        """
        Register a new user.

        Args:
            email: User email
            password: Plain text password
            full_name: Optional display name

        Returns:
            Created User

        Raises:
            ValueError: If email already exists
        """
        existing_user = self.user_repository.get_by_email(email)
        if existing_user:
            raise ValueError("Email already registered")

        password_hash = bcrypt.hashpw(
            password.encode("utf-8"), bcrypt.gensalt()
        ).decode("utf-8")

        return self.user_repository.create(
            email=email,
            password_hash=password_hash,
            full_name=full_name,
        )

    def authenticate(self, email: str, password: str) -> Optional[User]:
        """
        Authenticate a user with email and password.

        Returns:
            User if authenticated, None otherwise
        """
        user = self.user_repository.get_by_email(email)
        if not user:
            return None

        if not bcrypt.checkpw(
            password.encode("utf-8"), user.password_hash.encode("utf-8")
        ):
            return None

        return user

    def create_token(self, user: User) -> str:
        """Create a signed JWT access token for ``user``."""
        issued_at = datetime.now(timezone.utc)
        payload = {
            "sub": user.id,
            "email": user.email,
            "exp": issued_at + timedelta(hours=self.jwt_expiration_hours),
            "iat": issued_at,
        }

        return jwt.encode(payload, self.jwt_secret, algorithm=self.jwt_algorithm)

    def verify_token(self, token: str) -> Optional[dict]:
        """
        Verify and decode JWT token.

        Returns:
            Decoded payload if valid, None otherwise
        """
        try:
            return jwt.decode(token, self.jwt_secret, algorithms=[self.jwt_algorithm])
        except jwt.ExpiredSignatureError:
            return None
        except jwt.InvalidTokenError:
            return None

    def get_by_id(self, user_id: str) -> Optional[User]:
        """Get user by ID."""
        return self.user_repository.get_by_id(user_id)
