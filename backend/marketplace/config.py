"""Application configuration loaded from environment variables."""
from typing import ClassVar, List, Tuple
from pydantic_settings import BaseSettings
from pydantic import field_validator

from marketplace.exceptions import ConfigurationError


class Settings(BaseSettings):
    """Application settings."""

    # Database
    # No default: an unset connection string must show up in missing_required()
    DATABASE_URL: str = ""
    DATABASE_ECHO: bool = False

    @field_validator("DATABASE_URL", mode="before")
    @classmethod
    def ensure_async_driver(cls, v: str) -> str:
        """Convert standard postgresql:// URL to postgresql+asyncpg:// for async SQLAlchemy."""
        if v.startswith("postgresql://"):
            v = v.replace("postgresql://", "postgresql+asyncpg://", 1)
        # asyncpg uses 'ssl' parameter, not 'sslmode' (psycopg2/libpq specific)
        if "sslmode=" in v:
            v = v.replace("sslmode=", "ssl=")
        return v

    # CORS - can be "*" for all origins or comma-separated list
    CORS_ORIGINS: str = "http://localhost:5173,http://localhost:3000"

    # Stripe
    STRIPE_SECRET_KEY: str = ""
    STRIPE_WEBHOOK_SECRET: str = ""
    STRIPE_WEBHOOK_TOLERANCE: int = 300  # seconds a signed timestamp stays valid

    # Checkout sessions carry the local purchase id under this metadata key
    CHECKOUT_PURCHASE_METADATA_KEY: str = "purchaseId"

    # Clerk (delivered through Svix)
    CLERK_WEBHOOK_SECRET: str = ""

    # Logging
    LOG_LEVEL: str = "INFO"

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = True

    class Config:
        env_file = (".env", "../.env")
        case_sensitive = True
        extra = "allow"

    REQUIRED_SETTINGS: ClassVar[Tuple[str, ...]] = (
        "STRIPE_SECRET_KEY",
        "STRIPE_WEBHOOK_SECRET",
        "CLERK_WEBHOOK_SECRET",
        "DATABASE_URL",
    )

    def missing_required(self) -> List[str]:
        """Names of required settings that are unset or empty."""
        return [name for name in self.REQUIRED_SETTINGS if not getattr(self, name, None)]

    def ensure_required(self) -> None:
        """Raise ConfigurationError if any required secret is absent."""
        missing = self.missing_required()
        if missing:
            raise ConfigurationError(
                f"Missing required environment variables: {', '.join(missing)}"
            )


settings = Settings()
