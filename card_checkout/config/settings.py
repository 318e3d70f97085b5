"""Application settings using Pydantic for environment-based configuration."""
from decimal import Decimal
from functools import lru_cache
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Payment Gateway Configuration
    gateway_api_url: str = Field(
        default="https://api-sandbox.co.uat.business.dev/v1",
        description="Payment gateway base URL",
    )
    gateway_public_key: str = Field(default="", description="Gateway public key (pub_...)")
    gateway_private_key: str = Field(default="", description="Gateway private key (prv_...)")
    gateway_integrity_key: str = Field(
        default="", description="Secret used to sign payment requests"
    )
    gateway_timeout_seconds: float = Field(default=15.0, description="Gateway HTTP timeout")
    gateway_currency: str = Field(default="COP", description="Currency sent to the gateway")
    payment_method_type: str = Field(default="CARD", description="Payment method type")

    # Checkout Fees
    base_fee: Decimal = Field(default=Decimal("500000"), description="Flat base fee")
    delivery_fee: Decimal = Field(default=Decimal("1000000"), description="Flat delivery fee")

    # Database Configuration
    database_url: str = Field(
        default="sqlite+aiosqlite:///./card_checkout.db",
        description="SQLAlchemy async database URL",
    )
    database_pool_size: int = Field(default=10, description="Database connection pool size")
    database_max_overflow: int = Field(default=20, description="Max database connection overflow")
    database_echo: bool = Field(default=False, description="Echo SQL queries (debug)")

    # Application Configuration
    app_name: str = Field(default="card-checkout", description="Application name")
    app_env: str = Field(default="development", description="Environment (development/production)")
    log_level: str = Field(default="INFO", description="Logging level")
    debug: bool = Field(default=False, description="Debug mode")
    seed_products: bool = Field(default=True, description="Seed the catalog on startup")

    # API Configuration
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8000, description="API port")
    allowed_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        description="CORS allowed origins (comma-separated)",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("base_fee", "delivery_fee")
    @classmethod
    def validate_fee(cls, v: Decimal) -> Decimal:
        """Fees are added to every checkout, so they cannot be negative."""
        if v < 0:
            raise ValueError("Fees cannot be negative")
        return v

    @field_validator("gateway_currency")
    @classmethod
    def validate_currency(cls, v: str) -> str:
        if len(v) != 3:
            raise ValueError("Currency must be 3-letter code")
        return v.upper()

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level. Must be one of: {valid_levels}")
        return v.upper()

    def get_allowed_origins_list(self) -> List[str]:
        """Parse allowed origins from comma-separated string."""
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env.lower() == "production"

    @property
    def uses_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    def missing_gateway_credentials(self) -> List[str]:
        """Names of the gateway credentials left empty; checkout fails until they are set."""
        credentials = {
            "gateway_public_key": self.gateway_public_key,
            "gateway_private_key": self.gateway_private_key,
            "gateway_integrity_key": self.gateway_integrity_key,
        }
        return [name for name, value in credentials.items() if not value]


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()
