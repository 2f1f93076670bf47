# =============================================================================
# Configuration Management
# =============================================================================
# Handles loading, saving, and validating SMSGuard configuration.
#
# XDG Base Directory Compliance (https://specifications.freedesktop.org/basedir-spec/):
#   - Config:  $XDG_CONFIG_HOME/smsguard/  (default: ~/.config/smsguard/)
#   - Data:    $XDG_DATA_HOME/smsguard/    (default: ~/.local/share/smsguard/)
#
# Files:
#   - config.toml: User configuration (thresholds, rate limits, chat ID)
#   - smsguard.db: SQLite database (in data directory)
#
# Secrets (Gemini API key, Telegram bot token) never go into config.toml.
# They live in the system keyring and are merged into the snapshot by
# Config.with_credentials().
# =============================================================================

import logging
import os
import tomllib  # Built into Python 3.11+
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import keyring
import tomli_w  # For writing TOML (tomllib is read-only)
from keyring.errors import KeyringError

logger = logging.getLogger(__name__)


# =============================================================================
# XDG Directory Management
# =============================================================================

# Application identifier used in all XDG paths and keyring services
APP_NAME = "smsguard"

# Keyring service names for the two secrets we need
GEMINI_KEYRING_SERVICE = f"{APP_NAME}:gemini"
TELEGRAM_KEYRING_SERVICE = f"{APP_NAME}:telegram"

# Keyring username under which secrets are stored
KEYRING_USERNAME = "default"


def get_xdg_config_home() -> Path:
    """
    Returns the XDG config directory for SMSGuard.

    Respects $XDG_CONFIG_HOME if set, otherwise uses ~/.config/smsguard/
    """
    xdg_config = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config:
        base = Path(xdg_config)
    else:
        base = Path.home() / ".config"
    return base / APP_NAME


def get_xdg_data_home() -> Path:
    """
    Returns the XDG data directory for SMSGuard.

    Respects $XDG_DATA_HOME if set, otherwise uses ~/.local/share/smsguard/
    This is where the SQLite database lives.
    """
    xdg_data = os.environ.get("XDG_DATA_HOME")
    if xdg_data:
        base = Path(xdg_data)
    else:
        base = Path.home() / ".local" / "share"
    return base / APP_NAME


def ensure_directories() -> dict[str, Path]:
    """
    Creates the config and data directories if they don't exist.

    Returns:
        Dictionary mapping directory type to path.
    """
    dirs = {
        "config": get_xdg_config_home(),
        "data": get_xdg_data_home(),
    }

    for dir_path in dirs.values():
        dir_path.mkdir(parents=True, exist_ok=True)

    return dirs


# =============================================================================
# Configuration Data Structures
# =============================================================================
# All sections are frozen: components receive a snapshot and never mutate it.
# Reloading means building a new Config and handing it out again.

@dataclass(frozen=True)
class AIConfig:
    """
    Configuration for the Gemini adjudicator.

    Attributes:
        enabled: Whether AI adjudication may be used at all.
        model: Gemini model name.
        rate_limit_ms: Minimum gap between two AI calls.
        trust_threshold: Local scorer confidence at or above which the AI
                         is not consulted (0.0-1.0).
        timeout_seconds: HTTP timeout for one AI call.
        max_prompt_chars: Message text is truncated to this many characters
                          before being sent.
        api_key: Gemini API key. Loaded from the keyring, never saved.
    """
    enabled: bool = True
    model: str = "gemini-1.5-flash"
    rate_limit_ms: int = 2000           # 2 seconds between calls
    trust_threshold: float = 0.6        # Below this, ask the AI
    timeout_seconds: float = 10.0
    max_prompt_chars: int = 500
    api_key: str = field(default="", repr=False)

    @property
    def is_configured(self) -> bool:
        """True if AI adjudication is enabled and has credentials."""
        return self.enabled and bool(self.api_key)


@dataclass(frozen=True)
class NotificationConfig:
    """
    Configuration for Telegram spam alerts.

    Attributes:
        enabled: Whether alerts are sent at all.
        chat_id: Telegram chat that receives alerts.
        send_delay_ms: Pause between sends while draining the retry queue.
        max_attempts: Retry attempts before a queued alert is dropped.
        queue_capacity: Maximum queued alerts; oldest is evicted when full.
        timeout_seconds: HTTP timeout for one send.
        batch_summary: Send a summary alert after each backlog scan.
        timestamp_format: strftime format for alert timestamps.
        bot_token: Telegram bot token. Loaded from the keyring, never saved.
    """
    enabled: bool = True
    chat_id: str = ""
    send_delay_ms: int = 500
    max_attempts: int = 3
    queue_capacity: int = 50
    timeout_seconds: float = 10.0
    batch_summary: bool = False
    timestamp_format: str = "%Y-%m-%d %H:%M"
    bot_token: str = field(default="", repr=False)

    @property
    def is_configured(self) -> bool:
        """True if alerts are enabled and the bot credentials are present."""
        return self.enabled and bool(self.bot_token) and bool(self.chat_id)


@dataclass(frozen=True)
class IngestionConfig:
    """
    Configuration for message ingestion.

    Attributes:
        backlog_limit: Default number of inbox messages a backlog scan reads.
        pending_limit: Default number of unclassified messages to retry.
    """
    backlog_limit: int = 50
    pending_limit: int = 10


@dataclass(frozen=True)
class Config:
    """
    Main configuration container for SMSGuard.

    Attributes:
        ai: Gemini adjudicator configuration.
        notifications: Telegram alert configuration.
        ingestion: Message ingestion configuration.
        database_path: SQLite database location. None means the XDG default.

    Usage:
        >>> config = Config.load().with_credentials()
        >>> config.ai.is_configured
        True
    """
    ai: AIConfig = field(default_factory=AIConfig)
    notifications: NotificationConfig = field(default_factory=NotificationConfig)
    ingestion: IngestionConfig = field(default_factory=IngestionConfig)
    database_path: Path | None = None

    def __post_init__(self) -> None:
        self.validate()

    # -------------------------------------------------------------------------
    # File Paths
    # -------------------------------------------------------------------------

    @staticmethod
    def config_file_path() -> Path:
        """Returns the path to the main config file."""
        return get_xdg_config_home() / "config.toml"

    @staticmethod
    def default_database_path() -> Path:
        """Returns the default path to the SQLite database."""
        return get_xdg_data_home() / "smsguard.db"

    def resolved_database_path(self) -> Path:
        """Returns the database path, falling back to the XDG default."""
        return self.database_path or self.default_database_path()

    # -------------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------------

    def validate(self) -> None:
        """
        Check value ranges.

        Raises:
            ConfigError: If any setting is out of range.
        """
        if not 0.0 <= self.ai.trust_threshold <= 1.0:
            raise ConfigError(
                f"ai.trust_threshold must be between 0 and 1, got {self.ai.trust_threshold}"
            )

        non_negative = {
            "ai.rate_limit_ms": self.ai.rate_limit_ms,
            "ai.timeout_seconds": self.ai.timeout_seconds,
            "ai.max_prompt_chars": self.ai.max_prompt_chars,
            "notifications.send_delay_ms": self.notifications.send_delay_ms,
            "notifications.timeout_seconds": self.notifications.timeout_seconds,
            "ingestion.backlog_limit": self.ingestion.backlog_limit,
            "ingestion.pending_limit": self.ingestion.pending_limit,
        }
        for name, value in non_negative.items():
            if value < 0:
                raise ConfigError(f"{name} must be >= 0, got {value}")

        if self.notifications.max_attempts < 1:
            raise ConfigError(
                f"notifications.max_attempts must be >= 1, got {self.notifications.max_attempts}"
            )
        if self.notifications.queue_capacity < 1:
            raise ConfigError(
                f"notifications.queue_capacity must be >= 1, got {self.notifications.queue_capacity}"
            )

    # -------------------------------------------------------------------------
    # Loading and Saving
    # -------------------------------------------------------------------------

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """
        Load configuration from a config file.

        If the file doesn't exist, returns default configuration.

        Args:
            path: Config file to read. Defaults to the XDG location.

        Returns:
            Loaded Config object (without secrets).

        Raises:
            ConfigError: If the config file exists but is invalid.
        """
        config_path = path or cls.config_file_path()

        if not config_path.exists():
            # No config file yet - return defaults
            return cls()

        try:
            with open(config_path, "rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Invalid config file: {e}") from e

        return cls._from_dict(data)

    def save(self, path: Path | None = None) -> None:
        """
        Save configuration to a config file.

        Secrets are never written; use store_credentials() for those.

        Args:
            path: Config file to write. Defaults to the XDG location.
        """
        if path is None:
            ensure_directories()
            path = self.config_file_path()
        else:
            path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "wb") as f:
            tomli_w.dump(self._to_dict(), f)

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> "Config":
        """
        Create a Config object from a dictionary (parsed TOML).
        """
        ai = _section(data, "ai")
        notifications = _section(data, "notifications")
        ingestion = _section(data, "ingestion")
        storage = _section(data, "storage")

        try:
            return cls(
                ai=AIConfig(
                    enabled=ai.get("enabled", True),
                    model=ai.get("model", "gemini-1.5-flash"),
                    rate_limit_ms=ai.get("rate_limit_ms", 2000),
                    trust_threshold=ai.get("trust_threshold", 0.6),
                    timeout_seconds=ai.get("timeout_seconds", 10.0),
                    max_prompt_chars=ai.get("max_prompt_chars", 500),
                ),
                notifications=NotificationConfig(
                    enabled=notifications.get("enabled", True),
                    chat_id=str(notifications.get("chat_id", "")),
                    send_delay_ms=notifications.get("send_delay_ms", 500),
                    max_attempts=notifications.get("max_attempts", 3),
                    queue_capacity=notifications.get("queue_capacity", 50),
                    timeout_seconds=notifications.get("timeout_seconds", 10.0),
                    batch_summary=notifications.get("batch_summary", False),
                    timestamp_format=notifications.get("timestamp_format", "%Y-%m-%d %H:%M"),
                ),
                ingestion=IngestionConfig(
                    backlog_limit=ingestion.get("backlog_limit", 50),
                    pending_limit=ingestion.get("pending_limit", 10),
                ),
                database_path=Path(storage["database_path"]) if storage.get("database_path") else None,
            )
        except TypeError as e:
            raise ConfigError(f"Invalid config value: {e}") from e

    def _to_dict(self) -> dict[str, Any]:
        """
        Convert Config to a dictionary for TOML serialization.
        """
        data: dict[str, Any] = {}

        data["ai"] = {
            "enabled": self.ai.enabled,
            "model": self.ai.model,
            "rate_limit_ms": self.ai.rate_limit_ms,
            "trust_threshold": self.ai.trust_threshold,
            "timeout_seconds": self.ai.timeout_seconds,
            "max_prompt_chars": self.ai.max_prompt_chars,
        }

        data["notifications"] = {
            "enabled": self.notifications.enabled,
            "chat_id": self.notifications.chat_id,
            "send_delay_ms": self.notifications.send_delay_ms,
            "max_attempts": self.notifications.max_attempts,
            "queue_capacity": self.notifications.queue_capacity,
            "timeout_seconds": self.notifications.timeout_seconds,
            "batch_summary": self.notifications.batch_summary,
            "timestamp_format": self.notifications.timestamp_format,
        }

        data["ingestion"] = {
            "backlog_limit": self.ingestion.backlog_limit,
            "pending_limit": self.ingestion.pending_limit,
        }

        # TOML has no null, so only write the path when it was customised
        if self.database_path is not None:
            data["storage"] = {"database_path": str(self.database_path)}

        return data

    # -------------------------------------------------------------------------
    # Credentials
    # -------------------------------------------------------------------------

    def with_credentials(self) -> "Config":
        """
        Return a copy of this config with secrets read from the keyring.

        Missing secrets, or an unavailable keyring backend, leave the
        corresponding component unconfigured rather than failing.

        Usage:
            $ keyring set smsguard:gemini default
            $ keyring set smsguard:telegram default
        """
        api_key = _read_secret(GEMINI_KEYRING_SERVICE)
        bot_token = _read_secret(TELEGRAM_KEYRING_SERVICE)

        return replace(
            self,
            ai=replace(self.ai, api_key=api_key or self.ai.api_key),
            notifications=replace(
                self.notifications,
                bot_token=bot_token or self.notifications.bot_token,
            ),
        )

    @staticmethod
    def store_credentials(
        *,
        gemini_api_key: str | None = None,
        telegram_bot_token: str | None = None,
    ) -> None:
        """
        Save secrets to the system keyring.

        Args:
            gemini_api_key: Gemini API key to store (skipped if None).
            telegram_bot_token: Telegram bot token to store (skipped if None).

        Raises:
            ConfigError: If the keyring refuses the write.
        """
        try:
            if gemini_api_key is not None:
                keyring.set_password(GEMINI_KEYRING_SERVICE, KEYRING_USERNAME, gemini_api_key)
            if telegram_bot_token is not None:
                keyring.set_password(TELEGRAM_KEYRING_SERVICE, KEYRING_USERNAME, telegram_bot_token)
        except KeyringError as e:
            raise ConfigError(f"Could not store credentials: {e}") from e


def _read_secret(service: str) -> str:
    """Read one secret from the keyring, returning "" if unavailable."""
    try:
        return keyring.get_password(service, KEYRING_USERNAME) or ""
    except KeyringError as e:
        logger.warning(f"Keyring unavailable for {service}: {e}")
        return ""


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    """Return a top-level TOML table, {} if absent."""
    section = data.get(name, {})
    if not isinstance(section, dict):
        raise ConfigError(f"Invalid config: [{name}] must be a table, got {type(section).__name__}")
    return section


# =============================================================================
# Exceptions
# =============================================================================

class ConfigError(Exception):
    """Raised when there's an error loading or parsing configuration."""
    pass
