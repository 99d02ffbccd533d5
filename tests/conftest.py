from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]

if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from ingestion.settings import Settings, reset_settings_cache  # noqa: E402


@pytest.fixture(autouse=True)
def _reset_settings_cache():
    reset_settings_cache()
    yield
    reset_settings_cache()


@pytest.fixture
def make_settings(tmp_path: Path):
    """Build Settings directly, bypassing the environment-backed cache."""

    def _make(**overrides) -> Settings:
        values = {
            "redis_url": "redis://localhost:6379/0",
            "postgres_dsn": f"sqlite:///{tmp_path / 'content.db'}",
            "source_delay_seconds": 0,
            "http_max_attempts": 1,
        }
        values.update(overrides)
        return Settings(**values)

    return _make
