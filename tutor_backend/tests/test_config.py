"""Tests for settings validation and per-action limits."""
import logging

import pytest

from tutor_backend.core.config import Settings, validate_config
from tutor_backend.core.errors import InvalidArgumentError
from tutor_backend.features.quota.limits import action_limits, limit_for
from tutor_backend.features.quota.service import build_store
from tutor_backend.features.quota.store import InMemoryEventStore


def _settings(**overrides):
    values = {"GROQ_API_KEY": "test-key", "QUOTA_STORE": "memory"}
    values.update(overrides)
    return Settings(_env_file=None, **values)


def test_default_limit_applies_to_every_action():
    limits = action_limits(_settings(DAILY_QUOTA_LIMIT=50))
    assert set(limits.values()) == {50}
    assert "chat_request" in limits


def test_action_override_wins():
    cfg = _settings(DAILY_QUOTA_LIMIT=50, QUOTA_LIMIT_IMAGE=10)
    assert limit_for("image", cfg) == 10
    assert limit_for("chat_request", cfg) == 50


def test_unknown_action_raises():
    with pytest.raises(InvalidArgumentError):
        limit_for("teleport", _settings())


def test_validate_config_passes():
    assert validate_config(strict=True, settings_obj=_settings()) is True


def test_validate_config_strict_raises_for_sql_without_url():
    with pytest.raises(RuntimeError):
        validate_config(strict=True, settings_obj=_settings(QUOTA_STORE="sql", DATABASE_URL=None))


def test_validate_config_warns_when_not_strict(caplog):
    with caplog.at_level(logging.WARNING, logger="tutor"):
        ok = validate_config(strict=False, settings_obj=_settings(QUOTA_STORE="redis"))
    assert ok is False
    assert any("QUOTA_STORE" in r.getMessage() for r in caplog.records)


def test_build_store_memory():
    assert isinstance(build_store(_settings()), InMemoryEventStore)


def test_build_store_rejects_unknown_kind():
    with pytest.raises(ValueError):
        build_store(_settings(QUOTA_STORE="redis"))
