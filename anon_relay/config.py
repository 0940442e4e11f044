"""Runtime settings for the relay service.

Values come from (later wins):
  1. built-in defaults
  2. an optional JSON config file with the same keys as ``Settings``
  3. environment variables (``TELEGRAM_BOT_TOKEN``, ``PORT``, ...)
"""
import json
import logging
import os
from dataclasses import dataclass, fields
from typing import Any, Optional

from anon_relay.errors import ConfigError

# Header Telegram uses to echo back the secret passed to setWebhook.
SECRET_TOKEN_HEADER = "X-Telegram-Bot-Api-Secret-Token"

_ENV_VARS = {
    "bot_token": "TELEGRAM_BOT_TOKEN",
    "secret_token": "TELEGRAM_SECRET_TOKEN",
    "host": "HOST",
    "port": "PORT",
    "public_url": "PUBLIC_URL",
    "tls_cert": "TLS_CERT",
    "tls_key": "TLS_KEY",
    "chats_file": "CHATS_FILE",
    "relay_targets_file": "RELAY_TARGETS_FILE",
    "log_level": "LOG_LEVEL",
    "log_file": "LOG_FILE",
}


@dataclass
class Settings:
    bot_token: str
    secret_token: Optional[str] = None
    host: str = "0.0.0.0"
    port: int = 8080
    public_url: Optional[str] = None
    tls_cert: Optional[str] = None
    tls_key: Optional[str] = None
    chats_file: str = "chats.json"
    relay_targets_file: Optional[str] = None
    log_level: str = "INFO"
    log_file: Optional[str] = None

    @property
    def tls_enabled(self) -> bool:
        return bool(self.tls_cert and self.tls_key)

    @property
    def webhook_url(self) -> str:
        if not self.public_url:
            raise ConfigError("PUBLIC_URL is required to register the webhook")
        return f"{self.public_url.rstrip('/')}/update"


def _load_file(config_path: str) -> dict[str, Any]:
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        raise ConfigError(f"Configuration file not found: {config_path}")
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in config file {config_path}: {e}")

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {config_path} must contain a JSON object")

    known = {f.name for f in fields(Settings)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(f"Unknown config keys: {unknown}")
    return data


def load_settings(config_path: Optional[str] = None, environ=None) -> Settings:
    """Build ``Settings`` from an optional JSON file and the environment.

    Raises:
        ConfigError: If the bot token is missing or a value is invalid.
    """
    environ = os.environ if environ is None else environ
    values: dict[str, Any] = _load_file(config_path) if config_path else {}

    for field_name, env_name in _ENV_VARS.items():
        if environ.get(env_name):
            values[field_name] = environ[env_name]

    if not values.get("bot_token"):
        raise ConfigError("TELEGRAM_BOT_TOKEN is not set")

    try:
        values["port"] = int(values.get("port", 8080))
    except (TypeError, ValueError):
        raise ConfigError(f"PORT must be an integer, got: {values.get('port')!r}")

    settings = Settings(**values)
    if not isinstance(logging.getLevelName(settings.log_level.upper()), int):
        raise ConfigError(f"Unknown LOG_LEVEL: {settings.log_level!r}")
    if bool(settings.tls_cert) != bool(settings.tls_key):
        raise ConfigError("TLS_CERT and TLS_KEY must be set together")
    return settings
