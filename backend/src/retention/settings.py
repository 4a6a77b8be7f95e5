"""Application settings and configuration."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "retention-credits"
    env: str = "development"
    log_level: str = "INFO"
    log_format: str = "console"  # json or console
    allowed_origins: str = "http://localhost:3000"

    # Database
    database_url: str = "sqlite:///./retention.db"
    database_echo: bool = False

    # Whop
    whop_api_key: str | None = None
    whop_app_id: str | None = None
    whop_api_base_url: str = "https://api.whop.com/api/v5"
    whop_token_public_key: str | None = None  # PEM, ES256
    whop_token_issuer: str = "urn:whopcom:exp-proxy"
    whop_webhook_secret: str | None = None
    whop_request_timeout_seconds: float = 10.0
    whop_checkout_base_url: str = "https://whop.com/checkout"

    # Pack size -> Whop plan id
    whop_credit_plans: dict[str, str] = Field(
        default_factory=lambda: {
            "10": "plan_TiRTD1hLt3Qms",
            "50": "plan_zcRyWFMoC7qq4",
            "200": "plan_ZkocUylT3Psgd",
        }
    )

    # Credits
    welcome_credits: int = 10
    # Exact payment amount in cents -> credits granted
    credit_tiers: dict[int, int] = Field(
        default_factory=lambda: {
            5000: 10,    # $50
            20000: 50,   # $200
            70000: 200,  # $700
        }
    )
    # Fallback for non-standard amounts: one credit per $5
    cents_per_credit: int = 500

    # Retention offer
    default_discount_percent: int = 30
    claim_rate_limit: str = "30/minute"


# Global settings instance
settings = Settings()
