import logging

import pytest
from pydantic import ValidationError

from idgen.core.config import DEFAULT_EPOCH, Settings, get_settings
from idgen.core.exceptions import ConfigError
from idgen.main import create_id_allocator
from idgen.services.logger import setup_logger
from idgen.services.node_identity import StaticNodeIdentityResolver
from idgen.utils.snowflake import extract_timestamp, extract_worker_id
from tests.conftest import BASE_MILLIS, FakeClock


def test_defaults():
    settings = Settings(_env_file=None)

    assert settings.WORKER_ID is None
    assert settings.DATACENTER_ID is None
    assert settings.EPOCH == DEFAULT_EPOCH == 631123200000
    assert settings.LOG_LEVEL == "INFO"


def test_reads_prefixed_environment(monkeypatch):
    monkeypatch.setenv("IDGEN_WORKER_ID", "3")
    monkeypatch.setenv("IDGEN_DATACENTER_ID", "12")
    monkeypatch.setenv("IDGEN_EPOCH", "0")

    settings = Settings(_env_file=None)

    assert settings.WORKER_ID == 3
    assert settings.DATACENTER_ID == 12
    assert settings.EPOCH == 0


def test_reads_env_file(tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text("IDGEN_WORKER_ID=7\nIDGEN_DATACENTER_ID=8\nIDGEN_LOG_LEVEL=DEBUG\n")

    settings = Settings(_env_file=env_file)

    assert (settings.WORKER_ID, settings.DATACENTER_ID) == (7, 8)
    assert settings.LOG_LEVEL == "DEBUG"


def test_rejects_non_integer_ids(monkeypatch):
    monkeypatch.setenv("IDGEN_WORKER_ID", "first")

    with pytest.raises(ValidationError):
        Settings(_env_file=None)


def test_get_settings_is_cached():
    assert get_settings() is get_settings()


def test_setup_logger_applies_given_level():
    logger = setup_logger("debug")

    assert logger.name == "idgen"
    assert logger.level == logging.DEBUG


def test_log_level_is_case_insensitive(monkeypatch):
    monkeypatch.setenv("IDGEN_LOG_LEVEL", "warning")

    assert Settings(_env_file=None).LOG_LEVEL == "WARNING"


def test_rejects_unknown_log_level(monkeypatch):
    monkeypatch.setenv("IDGEN_LOG_LEVEL", "verbose")

    with pytest.raises(ValidationError):
        Settings(_env_file=None)


def test_create_allocator_applies_log_level_from_given_settings(monkeypatch):
    monkeypatch.setenv("IDGEN_LOG_LEVEL", "ERROR")
    settings = Settings(WORKER_ID=1, DATACENTER_ID=1, LOG_LEVEL="DEBUG", _env_file=None)

    create_id_allocator(settings, clock=FakeClock())

    assert logging.getLogger("idgen").level == logging.DEBUG


def test_create_allocator_ignores_bad_environment_when_settings_given(monkeypatch):
    settings = Settings(WORKER_ID=1, DATACENTER_ID=2, _env_file=None)
    monkeypatch.setenv("IDGEN_WORKER_ID", "first")

    allocator = create_id_allocator(settings, clock=FakeClock())

    assert (allocator.worker_id, allocator.datacenter_id) == (1, 2)


@pytest.mark.parametrize(
    "name, value", [("IDGEN_WORKER_ID", "first"), ("IDGEN_LOG_LEVEL", "verbose")]
)
def test_create_allocator_reports_bad_environment_as_config_error(monkeypatch, name, value):
    monkeypatch.setenv(name, value)

    with pytest.raises(ConfigError, match="Invalid IDGEN_"):
        create_id_allocator()


def test_create_allocator_from_explicit_settings():
    settings = Settings(WORKER_ID=4, DATACENTER_ID=9, EPOCH=0, _env_file=None)

    allocator = create_id_allocator(settings, clock=FakeClock())
    snowflake_id = allocator.next_id()

    assert (allocator.worker_id, allocator.datacenter_id) == (4, 9)
    assert extract_worker_id(snowflake_id) == 4
    assert extract_timestamp(snowflake_id, epoch=0) == BASE_MILLIS


def test_create_allocator_from_environment(monkeypatch):
    monkeypatch.setenv("IDGEN_WORKER_ID", "1")
    monkeypatch.setenv("IDGEN_DATACENTER_ID", "2")

    allocator = create_id_allocator()

    assert (allocator.worker_id, allocator.datacenter_id) == (1, 2)
    assert allocator.epoch == DEFAULT_EPOCH


def test_create_allocator_falls_back_to_resolver():
    settings = Settings(_env_file=None)

    allocator = create_id_allocator(settings, resolver=StaticNodeIdentityResolver(5, 6))

    assert (allocator.worker_id, allocator.datacenter_id) == (5, 6)


def test_create_allocator_returns_independent_instances():
    settings = Settings(WORKER_ID=1, DATACENTER_ID=1, _env_file=None)
    clock = FakeClock()

    first = create_id_allocator(settings, clock=clock)
    second = create_id_allocator(settings, clock=clock)

    assert first is not second
    assert first.next_id() == second.next_id()


@pytest.mark.parametrize(
    "overrides",
    [
        {"WORKER_ID": 1},
        {"DATACENTER_ID": 1},
        {"WORKER_ID": 32, "DATACENTER_ID": 0},
        {"WORKER_ID": 0, "DATACENTER_ID": 0, "EPOCH": -1},
    ],
)
def test_create_allocator_rejects_bad_configuration(overrides):
    settings = Settings(_env_file=None, **overrides)

    with pytest.raises(ConfigError):
        create_id_allocator(settings)
