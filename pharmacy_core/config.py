"""Configuration management using Pydantic Settings"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables"""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Remote pharmacy API
    api_base_url: str = "http://localhost:8080/api"

    # Local cart storage
    cart_database_url: str = "sqlite:///./cart.db"
    cart_key: str = "cart"
    cart_reprice_on_add: bool = False  # Re-price an existing line when it is added again
    cart_max_quantity: int = 999  # Per-line cap; larger requests are clamped

    # Back-office cache
    cache_ttl_seconds: float = 60.0

    # Order workflow
    cancel_reason_min_length: int = 5

    # Display
    currency: str = "BDT"
    currency_symbol: str = "৳"

    # Service
    service_name: str = "pharmacy-core"
    log_level: str = "INFO"

    # HTTP Client
    http_timeout_seconds: float = 5.0


settings = Settings()
