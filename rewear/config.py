from typing import Optional

from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # ── Database ──────────────────────────────────────────────
    database_hostname: str = "localhost"
    database_port: str = "5432"
    database_password: str = ""
    database_name: str = "rewear"
    database_username: str = "postgres"
    # Full URL override, e.g. sqlite:// for the test-suite
    sqlalchemy_database_url: Optional[str] = None

    # ── JWT ───────────────────────────────────────────────────
    secret_key: str
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 30

    # ── Razorpay ──────────────────────────────────────────────
    # Empty means payments are off: /health/payment reports degraded and
    # orders and signatures are refused.
    razorpay_key_id: str = ""
    razorpay_key_secret: str = ""

    # ── Points economy ────────────────────────────────────────
    # 1 point = ₹1 unless configured otherwise
    point_price_inr: int = 1
    max_points_per_purchase: int = 100000
    merchant_upi_id: str = ""
    merchant_name: str = "ReWear"

    # ── App ───────────────────────────────────────────────────
    cors_origins: str = "http://localhost:3000"
    log_level: str = "INFO"
    rate_limit_enabled: bool = True
    payment_rate_limit: str = "10/minute"

    @property
    def cors_origins_list(self) -> list[str]:
        """Split comma-separated origins into a list, stripping whitespace."""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @property
    def database_url(self) -> str:
        if self.sqlalchemy_database_url:
            return self.sqlalchemy_database_url
        return (
            f"postgresql://{self.database_username}:{self.database_password}"
            f"@{self.database_hostname}:{self.database_port}/{self.database_name}"
        )

    @property
    def razorpay_configured(self) -> bool:
        return bool(self.razorpay_key_id and self.razorpay_key_secret)

    class Config:
        env_file = ".env"
        # Case-insensitive so RAZORPAY_KEY_ID and razorpay_key_id both work
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """
    Cached settings loader — reads .env once and reuses.
    Use this everywhere instead of instantiating Settings() directly.
    """
    return Settings()


# Module-level singleton for convenience imports
settings = get_settings()
