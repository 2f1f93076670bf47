"""Tests for configuration loading, saving, validation and credentials."""

from pathlib import Path

import keyring
import pytest
from keyring.errors import KeyringError

from smsguard.config import (
    AIConfig,
    Config,
    ConfigError,
    IngestionConfig,
    NotificationConfig,
    get_xdg_config_home,
    get_xdg_data_home,
)


def test_defaults():
    config = Config()

    assert config.ai.rate_limit_ms == 2000
    assert config.ai.trust_threshold == 0.6
    assert config.notifications.max_attempts == 3
    assert config.notifications.queue_capacity == 50
    assert config.notifications.send_delay_ms == 500
    assert not config.ai.is_configured
    assert not config.notifications.is_configured


def test_xdg_paths(monkeypatch, temp_dir):
    monkeypatch.setenv("XDG_CONFIG_HOME", str(temp_dir / "cfg"))
    monkeypatch.setenv("XDG_DATA_HOME", str(temp_dir / "data"))

    assert get_xdg_config_home() == temp_dir / "cfg" / "smsguard"
    assert get_xdg_data_home() == temp_dir / "data" / "smsguard"
    assert Config.config_file_path() == temp_dir / "cfg" / "smsguard" / "config.toml"
    assert Config().resolved_database_path() == temp_dir / "data" / "smsguard" / "smsguard.db"


def test_load_missing_file_returns_defaults(temp_dir):
    assert Config.load(temp_dir / "missing.toml") == Config()


def test_save_and_load_round_trip(temp_dir):
    path = temp_dir / "config.toml"
    config = Config(
        ai=AIConfig(model="gemini-2.0-flash", trust_threshold=0.75, api_key="secret"),
        notifications=NotificationConfig(chat_id="-100123", batch_summary=True, bot_token="token"),
        ingestion=IngestionConfig(backlog_limit=200),
        database_path=Path("/var/lib/smsguard/guard.db"),
    )

    config.save(path)
    loaded = Config.load(path)

    assert loaded.ai.model == "gemini-2.0-flash"
    assert loaded.ai.trust_threshold == 0.75
    assert loaded.notifications.chat_id == "-100123"
    assert loaded.notifications.batch_summary
    assert loaded.ingestion.backlog_limit == 200
    assert loaded.database_path == Path("/var/lib/smsguard/guard.db")


def test_save_never_writes_secrets(temp_dir):
    path = temp_dir / "config.toml"
    Config(
        ai=AIConfig(api_key="gemini-secret"),
        notifications=NotificationConfig(bot_token="telegram-secret"),
    ).save(path)

    content = path.read_text()
    assert "gemini-secret" not in content
    assert "telegram-secret" not in content


def test_numeric_chat_id_is_read_as_string(temp_dir):
    path = temp_dir / "config.toml"
    path.write_text("[notifications]\nchat_id = 12345\n")

    assert Config.load(path).notifications.chat_id == "12345"


def test_invalid_toml_raises(temp_dir):
    path = temp_dir / "config.toml"
    path.write_text("[ai\nmodel = ")

    with pytest.raises(ConfigError):
        Config.load(path)


def test_out_of_range_value_raises(temp_dir):
    path = temp_dir / "config.toml"
    path.write_text("[ingestion]\nbacklog_limit = -1\n")

    with pytest.raises(ConfigError, match="backlog_limit"):
        Config.load(path)


@pytest.mark.parametrize("content", [
    "ai = 5\n",
    'notifications = "telegram"\n',
    "ingestion = [1, 2]\n",
    "storage = true\n",
])
def test_non_table_section_raises(temp_dir, content):
    path = temp_dir / "config.toml"
    path.write_text(content)

    with pytest.raises(ConfigError, match="must be a table"):
        Config.load(path)


@pytest.mark.parametrize("kwargs", [
    {"ai": AIConfig(trust_threshold=1.5)},
    {"ai": AIConfig(trust_threshold=-0.1)},
    {"ai": AIConfig(rate_limit_ms=-1)},
    {"notifications": NotificationConfig(max_attempts=0)},
    {"notifications": NotificationConfig(queue_capacity=0)},
    {"notifications": NotificationConfig(send_delay_ms=-5)},
])
def test_validation(kwargs):
    with pytest.raises(ConfigError):
        Config(**kwargs)


def test_with_credentials_reads_keyring(monkeypatch):
    secrets = {"smsguard:gemini": "g-key", "smsguard:telegram": "t-token"}
    monkeypatch.setattr(keyring, "get_password", lambda service, user: secrets.get(service))

    config = Config(notifications=NotificationConfig(chat_id="42")).with_credentials()

    assert config.ai.api_key == "g-key"
    assert config.ai.is_configured
    assert config.notifications.bot_token == "t-token"
    assert config.notifications.is_configured


def test_with_credentials_survives_keyring_failure(monkeypatch):
    def broken(service, user):
        raise KeyringError("no backend")

    monkeypatch.setattr(keyring, "get_password", broken)

    config = Config().with_credentials()

    assert config.ai.api_key == ""
    assert not config.ai.is_configured


def test_store_credentials(monkeypatch):
    stored = {}
    monkeypatch.setattr(
        keyring, "set_password",
        lambda service, user, secret: stored.__setitem__(service, secret),
    )

    Config.store_credentials(gemini_api_key="g", telegram_bot_token="t")

    assert stored == {"smsguard:gemini": "g", "smsguard:telegram": "t"}


def test_store_credentials_failure(monkeypatch):
    def broken(service, user, secret):
        raise KeyringError("locked")

    monkeypatch.setattr(keyring, "set_password", broken)

    with pytest.raises(ConfigError):
        Config.store_credentials(gemini_api_key="g")
