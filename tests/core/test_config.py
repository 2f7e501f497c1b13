import pytest

from clinic_scheduler.core import config
from clinic_scheduler.core.errors import ConfigurationError


def test_validate_runtime_config_accepts_defaults() -> None:
    config.validate_runtime_config()


def test_validate_runtime_config_rejects_default_secret_in_production(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, 'APP_ENV', 'production')
    monkeypatch.setattr(config, 'JWT_SECRET_KEY', 'change-me')

    with pytest.raises(RuntimeError, match='JWT_SECRET_KEY'):
        config.validate_runtime_config()


@pytest.mark.parametrize(
    ('attribute', 'value', 'message'),
    [
        ('SLOT_CAPACITY', 0, 'SLOT_CAPACITY'),
        ('RATE_LIMIT_BACKEND', 'memcached', 'RATE_LIMIT_BACKEND'),
    ],
)
def test_validate_runtime_config_rejects_bad_values(monkeypatch: pytest.MonkeyPatch, attribute, value, message) -> None:
    monkeypatch.setattr(config, attribute, value)

    with pytest.raises(RuntimeError, match=message):
        config.validate_runtime_config()


def test_validate_runtime_config_rejects_uneven_slot_grid(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, 'SLOT_MINUTES', 45)

    with pytest.raises(ConfigurationError, match='evenly divide'):
        config.validate_runtime_config()


@pytest.mark.parametrize(
    ('raw', 'expected'),
    [(None, False), ('true', True), (' ON ', True), ('0', False)],
)
def test_get_bool(raw, expected) -> None:
    assert config._get_bool(raw) is expected


def test_get_list_splits_and_trims() -> None:
    assert config._get_list(' http://a.test , ,http://b.test', []) == ['http://a.test', 'http://b.test']
    assert config._get_list('', ['fallback']) == ['fallback']
