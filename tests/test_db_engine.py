"""Engine construction tests — pool options come from settings."""

from eventauth.config import Settings
from eventauth.db.engine import engine_options


def test_postgres_pool_options_from_settings():
    options = engine_options(Settings(
        database_url="postgresql+asyncpg://u:p@db/eventauth",
        db_pool_size=3,
        db_max_overflow=7,
    ))
    assert options["pool_size"] == 3
    assert options["max_overflow"] == 7
    assert options["pool_pre_ping"] is True


def test_sqlite_gets_no_pool_sizing():
    options = engine_options(Settings(database_url="sqlite+aiosqlite:///./dev.db"))
    assert "pool_size" not in options
    assert "max_overflow" not in options


def test_echo_follows_debug():
    assert engine_options(Settings(debug=True))["echo"] is True
    assert engine_options(Settings(debug=False))["echo"] is False
