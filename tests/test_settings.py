"""Environment-driven settings and the engine built from them."""

from app.core.config import Settings, settings
from app.db.session import engine


def test_fee_and_pool_defaults(monkeypatch) -> None:
    monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
    monkeypatch.setenv("JWT_SECRET_KEY", "k")
    for name in ("FEE_PAYMENT_MAX_RETRIES", "FEE_RECENT_PAYMENTS_LIMIT", "DB_POOL_RECYCLE_SECONDS"):
        monkeypatch.delenv(name, raising=False)
    s = Settings(_env_file=None)
    assert s.fee_payment_max_retries == 3
    assert s.fee_recent_payments_limit == 10
    assert s.db_pool_pre_ping is True
    assert s.db_pool_recycle_seconds == 300


def test_pool_settings_read_from_environment(monkeypatch) -> None:
    monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
    monkeypatch.setenv("JWT_SECRET_KEY", "k")
    monkeypatch.setenv("DB_POOL_RECYCLE_SECONDS", "60")
    monkeypatch.setenv("DB_POOL_PRE_PING", "false")
    s = Settings(_env_file=None)
    assert s.db_pool_recycle_seconds == 60
    assert s.db_pool_pre_ping is False


def test_engine_uses_configured_recycle() -> None:
    assert engine.pool._recycle == settings.db_pool_recycle_seconds
