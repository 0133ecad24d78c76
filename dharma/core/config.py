import os
from pathlib import Path
from typing import Dict, Optional

from dotenv import load_dotenv

from ..domain.clock import DEFAULT_CIVIL_OFFSET_MINUTES
from ..domain.models.subscription import PlanType


class Settings:
    """Centralised application configuration sourced from environment variables."""

    def __init__(self) -> None:
        load_dotenv()
        self.database_path = Path(os.getenv("DATABASE_PATH", "data/dharma.db")).resolve()
        self.jwt_secret = os.getenv("JWT_SECRET", "change-me")
        self.jwt_algorithm = os.getenv("JWT_ALGORITHM", "HS256")
        self.jwt_expiration_hours = self._get_int("JWT_EXPIRATION_HOURS", default=24 * 7)
        self.stripe_secret_key = os.getenv("STRIPE_SECRET_KEY")
        self.stripe_webhook_secret = os.getenv("STRIPE_WEBHOOK_SECRET")
        self.plan_price_ids: Dict[PlanType, str] = {
            plan: price_id
            for plan, price_id in (
                (PlanType.WEEKLY, os.getenv("STRIPE_PRICE_WEEKLY")),
                (PlanType.MONTHLY, os.getenv("STRIPE_PRICE_MONTHLY")),
                (PlanType.YEARLY, os.getenv("STRIPE_PRICE_YEARLY")),
            )
            if price_id
        }
        self.frontend_base_url = os.getenv("FRONTEND_BASE_URL", "http://localhost:5173").rstrip("/")
        self.civil_offset_minutes = self._get_int(
            "CIVIL_TZ_OFFSET_MINUTES", default=DEFAULT_CIVIL_OFFSET_MINUTES
        )
        origins = os.getenv("CORS_ALLOW_ORIGINS")
        if origins:
            self.cors_allow_origins = [item.strip() for item in origins.split(",") if item.strip()]
        else:
            self.cors_allow_origins = ["*"]

    @staticmethod
    def _get_int(key: str, default: Optional[int] = None) -> int:
        value = os.getenv(key)
        if value is None:
            if default is None:
                raise RuntimeError(f"Missing required environment variable: {key}")
            return default
        try:
            return int(value)
        except ValueError as exc:
            raise RuntimeError(f"Environment variable {key} must be an integer") from exc
