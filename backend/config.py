"""
Configuration management for the SoleMates storefront API.

Loads settings from .env via pydantic-settings.

Security notes:
    - validate_production_settings() enforces strict CORS in production
    - Webhook signature secret is mandatory outside simulation mode
    - SIMULATION_MODE swaps the Mercado Pago client for an offline gateway
"""
import logging

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # ── Database ────────────────────────────────────────────────────
    database_url: str = "sqlite:///./data/storefront.db"

    # ── Mercado Pago ────────────────────────────────────────────────
    mp_access_token: str = ""
    mp_webhook_secret: str = ""
    mp_api_base: str = "https://api.mercadopago.com"
    mp_timeout_seconds: float = 15.0

    # ── Storefront ──────────────────────────────────────────────────
    currency: str = "BRL"
    frontend_url: str = "http://localhost:5173"
    backend_url: str = "http://localhost:8000"

    # ── Checkout ────────────────────────────────────────────────────
    checkout_rate_limit: int = 10          # checkouts per IP per minute
    checkout_max_line_items: int = 50

    # ── Application ─────────────────────────────────────────────────
    environment: str = "development"
    simulation_mode: bool = True  # offline gateway, no Mercado Pago calls

    # ── Auth (JWT) ──────────────────────────────────────────────────
    jwt_secret: str = ""
    jwt_issuer: str = "solemates-api"

    # ── CORS ────────────────────────────────────────────────────────
    cors_origins: str = "http://localhost:5173,http://127.0.0.1:5173,http://localhost:3000,http://127.0.0.1:3000"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # allow unknown .env keys without crashing
    )

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @property
    def webhook_url(self) -> str:
        return f"{self.backend_url.rstrip('/')}/payment/webhook"

    @property
    def callback_urls(self) -> dict:
        """Buyer redirect targets handed to the gateway with each preference."""
        base = self.frontend_url.rstrip("/")
        return {
            "success": f"{base}/success.html",
            "failure": f"{base}/failure.html",
            "pending": f"{base}/pending.html",
        }

    def validate_production_settings(self):
        """
        Validate settings for production safety.

        Called during app startup.
        """
        if self.environment == "production":
            if "*" in self.cors_origins:
                raise ValueError(
                    "CORS_ORIGINS must not contain '*' in production. "
                    "Set explicit allowed origins."
                )
            if self.simulation_mode:
                raise ValueError(
                    "SIMULATION_MODE must be false in production. "
                    "The simulated gateway approves nothing and charges nobody."
                )
            if not self.mp_access_token:
                raise ValueError("MP_ACCESS_TOKEN must be set in production.")
            if not self.mp_webhook_secret:
                raise ValueError(
                    "MP_WEBHOOK_SECRET must be set in production. "
                    "Unsigned payment notifications are rejected."
                )
            if not self.jwt_secret:
                raise ValueError(
                    "JWT_SECRET must be set in production. "
                    "It is used to verify buyer and admin access tokens."
                )
            logger.info("✅ Production settings validated")
        else:
            warnings = []
            if self.simulation_mode:
                warnings.append("SIMULATION_MODE=true (payment gateway is simulated)")
            if not self.mp_webhook_secret:
                warnings.append("MP_WEBHOOK_SECRET not set (webhooks will be rejected)")
            if "*" in self.cors_origins:
                warnings.append("CORS_ORIGINS contains '*' (open access)")
            for w in warnings:
                logger.warning(f"⚠️  {w}")


# Global settings instance
settings = Settings()
