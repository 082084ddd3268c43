"""Application configuration management."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from shared.constants import (
    ALERT_METRIC_NAME,
    KLAVIYO_MAX_PAGES,
    KLAVIYO_PAGE_SIZE,
    KLAVIYO_REVISION,
    RECEIVED_EMAIL_METRIC_NAME,
    SHOPIFY_API_VERSION,
    SHOPIFY_ORDER_LIMIT,
    SIGNUP_METRIC_NAME,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # -------------------------------------------------------------------------
    # Application Settings
    # -------------------------------------------------------------------------
    app_name: str = "restock-tracker"
    app_env: Literal["development", "staging", "production", "test"] = "development"
    debug: bool = False
    log_level: str = "INFO"

    # -------------------------------------------------------------------------
    # API Settings
    # -------------------------------------------------------------------------
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_workers: int = 4
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3000"])

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: str | list[str]) -> list[str]:
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",")]
        return v

    # -------------------------------------------------------------------------
    # Klaviyo (event / profile store)
    # -------------------------------------------------------------------------
    klaviyo_private_api_key: str = ""
    klaviyo_api_base_url: str = "https://a.klaviyo.com/api"
    klaviyo_revision: str = KLAVIYO_REVISION
    klaviyo_list_id: str = "XMVuS6"
    klaviyo_page_size: int = KLAVIYO_PAGE_SIZE
    klaviyo_max_pages: int = KLAVIYO_MAX_PAGES

    signup_metric_name: str = SIGNUP_METRIC_NAME
    alert_metric_name: str = ALERT_METRIC_NAME
    received_email_metric_name: str = RECEIVED_EMAIL_METRIC_NAME

    # -------------------------------------------------------------------------
    # Shopify (commerce system)
    # -------------------------------------------------------------------------
    shopify_store_domain: str = ""
    shopify_admin_token: str = ""
    shopify_api_version: str = SHOPIFY_API_VERSION
    shopify_order_limit: int = SHOPIFY_ORDER_LIMIT
    # 0 leaves Shopify fan-out unbounded
    shopify_max_concurrency: int = 0

    @property
    def shopify_base_url(self) -> str:
        """Construct the Shopify Admin REST base URL."""
        return f"https://{self.shopify_store_domain}/admin/api/{self.shopify_api_version}"

    @property
    def shopify_configured(self) -> bool:
        return bool(self.shopify_store_domain and self.shopify_admin_token)

    @property
    def klaviyo_configured(self) -> bool:
        return bool(self.klaviyo_private_api_key)

    # -------------------------------------------------------------------------
    # HTTP
    # -------------------------------------------------------------------------
    http_timeout_seconds: float = 30.0

    # -------------------------------------------------------------------------
    # Redis / Celery
    # -------------------------------------------------------------------------
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: str = ""
    redis_db: int = 0

    @property
    def redis_url(self) -> str:
        """Construct Redis connection URL."""
        if self.redis_password:
            return f"redis://:{self.redis_password}@{self.redis_host}:{self.redis_port}/{self.redis_db}"
        return f"redis://{self.redis_host}:{self.redis_port}/{self.redis_db}"

    celery_broker_url: str = ""
    celery_result_backend: str = ""

    @property
    def celery_broker(self) -> str:
        """Get Celery broker URL, defaulting to Redis URL."""
        return self.celery_broker_url or self.redis_url

    @property
    def celery_backend(self) -> str:
        """Get Celery result backend URL, defaulting to Redis URL."""
        return self.celery_result_backend or self.redis_url


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
