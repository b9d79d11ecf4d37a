"""Centralized configuration management using Pydantic Settings.

This module provides typed configuration for all application settings,
loaded from environment variables with sensible defaults.

Usage:
    from inkbook.config import get_settings
    settings = get_settings()
    dsn = settings.postgres.get_dsn()
"""

from functools import lru_cache

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _parse_flag(v):
    if isinstance(v, str):
        return v.lower() in ("1", "true", "yes")
    return bool(v)


class RedisSettings(BaseSettings):
    """Redis connection configuration."""

    model_config = SettingsConfigDict(env_prefix="REDIS_", extra="ignore")

    host: str = Field(default="redis", description="Redis host")
    port: int = Field(default=6379, description="Redis port")
    password: str = Field(default="", description="Redis password")
    max_connections: int = Field(default=200, description="Maximum pool connections")
    pool_timeout_sec: float = Field(default=5.0, description="Pool timeout in seconds")
    health_check_interval: int = Field(default=30, description="Health check interval in seconds")
    retry_on_timeout: bool = Field(default=True, description="Retry on timeout")
    socket_timeout: float = Field(default=5.0, description="Socket timeout in seconds")
    socket_connect_timeout: float = Field(default=5.0, description="Socket connect timeout in seconds")


class PostgresSettings(BaseSettings):
    """PostgreSQL connection configuration."""

    model_config = SettingsConfigDict(
        env_prefix="POSTGRES_",
        extra="ignore",
        populate_by_name=True,
    )

    host: str = Field(default="postgres", description="PostgreSQL host")
    port: int = Field(default=5432, description="PostgreSQL port")
    user: str = Field(default="inkbook", description="PostgreSQL user")
    password: str = Field(default="", description="PostgreSQL password")
    database: str = Field(
        default="inkbook",
        validation_alias="POSTGRES_DB",
        description="Database name",
    )
    pool_min_size: int = Field(default=2, description="Minimum pool size")
    pool_max_size: int = Field(default=10, description="Maximum pool size")
    pool_timeout: int = Field(default=30, description="Timeout for acquiring connections")
    pool_max_lifetime: int = Field(
        default=1800, description="Maximum connection lifetime in seconds"
    )
    pool_max_idle: int = Field(
        default=300, description="Maximum idle time before closing connection"
    )
    pool_reconnect_timeout: int = Field(
        default=300, description="Reconnection timeout in seconds"
    )

    def get_dsn(self) -> str:
        """Generate PostgreSQL DSN connection string."""
        return (
            f"host={self.host} port={self.port} user={self.user} "
            f"password={self.password} dbname={self.database} sslmode=disable"
        )


class CorsSettings(BaseSettings):
    """CORS configuration."""

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    origins_raw: str = Field(
        default="http://localhost:5173",
        validation_alias="CORS_ORIGINS",
    )
    origins_regex: str = Field(
        default="",
        validation_alias="CORS_ORIGINS_REGEX",
        description="Regex pattern for origins",
    )

    @property
    def origins(self) -> list[str]:
        """Parse comma-separated origins into list."""
        return [o.strip() for o in self.origins_raw.split(",") if o.strip()]

    @property
    def allow_credentials(self) -> bool:
        """Credentials not allowed with wildcard origins."""
        return self.origins != ["*"] and not self.origins_regex


class DebugSettings(BaseSettings):
    """Debug flags configuration."""

    model_config = SettingsConfigDict(extra="ignore")

    request: bool = Field(default=False, alias="request_debug")
    websocket: bool = Field(default=False, alias="ws_debug")

    @field_validator("*", mode="before")
    @classmethod
    def parse_bool(cls, v):
        return _parse_flag(v)


class FeatureSettings(BaseSettings):
    """Feature flags configuration."""

    model_config = SettingsConfigDict(extra="ignore")

    db: bool = Field(default=True, alias="enable_db")
    realtime: bool = Field(default=True, alias="enable_realtime")

    @field_validator("*", mode="before")
    @classmethod
    def parse_bool(cls, v):
        return _parse_flag(v)


class BookingSettings(BaseSettings):
    """Booking and schedule configuration."""

    model_config = SettingsConfigDict(env_prefix="BOOKING_", extra="ignore")

    slot_minutes: int = Field(default=30, description="Grid size for generated day schedules")
    max_range_days: int = Field(default=62, description="Longest schedule range served at once")
    notifications_page_size: int = Field(default=20, description="Default notifications page size")


class PaymentSettings(BaseSettings):
    """Payment gateway configuration."""

    model_config = SettingsConfigDict(env_prefix="PAYMENT_", extra="ignore")

    gateway_url: str = Field(default="https://api.ikhokha.com/pay")
    api_key: str = Field(default="", description="Gateway bearer token")
    merchant_id: str = Field(default="", description="Gateway merchant id")
    currency: str = Field(default="ZAR")
    description: str = Field(default="Purchase from inkbook")
    timeout_sec: float = Field(default=30.0)

    @property
    def configured(self) -> bool:
        return bool(self.api_key and self.merchant_id)


class GenerationSettings(BaseSettings):
    """Generative content API configuration."""

    model_config = SettingsConfigDict(env_prefix="GENERATION_", extra="ignore")

    base_url: str = Field(default="https://api.openai.com/v1")
    api_key: str = Field(default="", description="Generation API key")
    image_model: str = Field(default="dall-e-3")
    text_model: str = Field(default="gpt-4-turbo-preview")
    image_size: str = Field(default="1024x1024")
    timeout_sec: float = Field(default=60.0)


class CreditPlan(BaseModel):
    id: str
    credits: int
    price: float


def _default_plans() -> list[CreditPlan]:
    return [
        CreditPlan(id="starter", credits=10, price=40.0),
        CreditPlan(id="artist", credits=30, price=100.0),
        CreditPlan(id="studio", credits=100, price=300.0),
    ]


class CreditSettings(BaseSettings):
    """Credits configuration."""

    model_config = SettingsConfigDict(env_prefix="CREDITS_", extra="ignore")

    design_cost: int = Field(default=1, description="Credits spent per generated design")
    plans: list[CreditPlan] = Field(default_factory=_default_plans)

    def get_plan(self, plan_id: str) -> CreditPlan | None:
        for plan in self.plans:
            if plan.id == plan_id:
                return plan
        return None


class Settings:
    """Main application settings combining all configuration sections.

    This is not a BaseSettings subclass to avoid env var conflicts.
    Each subsetting is loaded independently with its own prefix.
    """

    def __init__(self) -> None:
        self.redis = RedisSettings()
        self.postgres = PostgresSettings()
        self.cors = CorsSettings()
        self.debug = DebugSettings()
        self.features = FeatureSettings()
        self.booking = BookingSettings()
        self.payment = PaymentSettings()
        self.generation = GenerationSettings()
        self.credits = CreditSettings()


@lru_cache
def get_settings() -> Settings:
    """Get cached Settings instance (singleton pattern)."""
    return Settings()


def clear_settings_cache() -> None:
    """Clear cached settings (useful for testing)."""
    get_settings.cache_clear()
