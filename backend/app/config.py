"""Configuration settings for TalentPay backend."""

from decimal import Decimal
from functools import lru_cache

from pydantic_settings import BaseSettings

from talentpay.config import DEFAULT_PLATFORM_ACCOUNT_ID, CommerceConfig


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # Supabase
    supabase_url: str
    supabase_secret_key: str | None = None  # Backend/admin access
    supabase_service_role_key: str | None = None  # Legacy name for the same key

    # JWT (Supabase auth tokens)
    jwt_secret_key: str  # Required - no default for security
    jwt_algorithm: str = "HS256"
    jwt_audience: str = "authenticated"
    jwt_expire_minutes: int = 60 * 24

    # CHIP payouts and top-up charges
    chip_brand_id: str | None = None
    chip_secret_key: str | None = None
    chip_api_endpoint: str = "https://gate.chip-in.asia/api/v1/charges"
    chip_purchases_endpoint: str = "https://gate.chip-in.asia/api/v1/purchases"

    # Ledger
    platform_account_id: str = DEFAULT_PLATFORM_ACCOUNT_ID
    admin_fee_rate: Decimal = Decimal("0.10")
    currency: str = "MYR"
    payout_max_attempts: int = 3
    review_media_bucket: str = "review-submissions"

    # App
    debug: bool = False
    log_level: str = "INFO"
    # CORS: Allowed origins for cross-origin requests
    cors_origins: list[str] = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"  # Ignore extra env vars not in model

    def commerce_config(self) -> CommerceConfig:
        """Service configuration derived from these settings."""
        return CommerceConfig(
            platform_account_id=self.platform_account_id,
            currency=self.currency,
            admin_fee_rate=self.admin_fee_rate,
            payout_max_attempts=self.payout_max_attempts,
            review_media_bucket=self.review_media_bucket,
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
