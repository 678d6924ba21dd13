from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str = Field(..., alias="DATABASE_URL")

    jwt_secret_key: str = Field(..., alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field("HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(15, alias="ACCESS_TOKEN_EXPIRE_MINUTES")

    log_level: str = Field("INFO", alias="LOG_LEVEL")

    # Connection pool
    db_echo: bool = Field(False, alias="DB_ECHO")
    db_pool_pre_ping: bool = Field(True, alias="DB_POOL_PRE_PING")
    db_pool_recycle_seconds: int = Field(300, ge=-1, alias="DB_POOL_RECYCLE_SECONDS")

    # Fee engine tuning
    fee_default_due_day: int = Field(10, ge=1, le=31, alias="FEE_DEFAULT_DUE_DAY")
    fee_payment_max_retries: int = Field(3, ge=1, alias="FEE_PAYMENT_MAX_RETRIES")
    fee_recent_payments_limit: int = Field(10, ge=1, alias="FEE_RECENT_PAYMENTS_LIMIT")
    currency_symbol: Optional[str] = Field("₹", alias="CURRENCY_SYMBOL")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()
