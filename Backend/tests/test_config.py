import logging

import pytest
from pydantic import ValidationError

from talentscout.config import LoggingConfig, Settings


def test_defaults():
    settings = Settings(_env_file=None)
    assert settings.MAX_CONCURRENT_REQUESTS == 3
    assert settings.RATE_LIMIT_DELAY_SECONDS == 0.1
    assert settings.CACHE_TTL_SECONDS == 300
    assert settings.SESSION_CLEANUP_DELAY_SECONDS == 30


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("MAX_CONCURRENT_REQUESTS", "5")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    settings = Settings(_env_file=None)
    assert settings.MAX_CONCURRENT_REQUESTS == 5
    assert settings.LOG_LEVEL == "DEBUG"


@pytest.mark.parametrize("overrides", [{"LOG_LEVEL": "LOUD"}, {"MAX_CONCURRENT_REQUESTS": 0}])
def test_invalid_values_are_rejected(overrides):
    with pytest.raises(ValidationError):
        Settings(_env_file=None, **overrides)


def test_setup_logging_does_not_stack_handlers(test_settings):
    LoggingConfig.setup_logging(test_settings)
    logger = LoggingConfig.setup_logging(test_settings)
    assert logger.name == "talentscout"
    assert len(logger.handlers) == 1
    assert logger.level == logging.WARNING
