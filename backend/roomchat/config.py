"""RoomChat application configuration.

Loads settings from two YAML files:
  * roomchat.settings.yaml: non-secret configuration
  * roomchat.secrets.yaml: secrets (never committed)

Both paths can be overridden with the ROOMCHAT_SETTINGS / ROOMCHAT_SECRETS
environment variables.
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

SETTINGS_FILE = Path("roomchat.settings.yaml")
SECRETS_FILE  = Path("roomchat.secrets.yaml")


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        logger.warning("Config file not found: %s", path)
        return {}
    with path.open(encoding="utf-8") as fh:
        return yaml.safe_load(fh) or {}


# ---------------------------------------------------------------------------
# Secrets models
# ---------------------------------------------------------------------------


class DatabaseSecrets(BaseModel):
    url: Optional[str] = None


class JWTSecrets(BaseModel):
    secret_key: str = "change-me-in-production"
    algorithm:  str = "HS256"


class Secrets(BaseModel):
    database: DatabaseSecrets = Field(default_factory=DatabaseSecrets)
    jwt:      JWTSecrets      = Field(default_factory=JWTSecrets)


# ---------------------------------------------------------------------------
# Settings models
# ---------------------------------------------------------------------------


class ServerSettings(BaseModel):
    host:            str       = "0.0.0.0"
    port:            int       = 3000
    reload:          bool      = False
    allowed_origins: List[str] = Field(default_factory=lambda: ["http://localhost:5173"])


class DatabaseSettings(BaseModel):
    url:           str  = "sqlite+aiosqlite:///./roomchat.db"
    echo_sql:      bool = False
    create_tables: bool = True


class AuthSettings(BaseModel):
    token_expire_minutes: int = 60 * 24
    bcrypt_rounds:        int = Field(default=12, ge=4, le=31)


class RoomSettings(BaseModel):
    """Room directory behaviour.

    ``enforce_capacity`` turns the advisory ``maxUsers`` value of a room into a
    hard limit on concurrent joiners. It is off by default.
    """
    enforce_capacity:  bool = False
    slug_max_attempts: int  = Field(default=5, ge=1)


class ChatSettings(BaseModel):
    history_limit:      int = Field(default=50, ge=1)
    max_message_length: int = Field(default=2000, ge=1)


class LoggingSettings(BaseModel):
    level: str = "info"


class AppSettings(BaseModel):
    server:   ServerSettings   = Field(default_factory=ServerSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    auth:     AuthSettings     = Field(default_factory=AuthSettings)
    rooms:    RoomSettings     = Field(default_factory=RoomSettings)
    chat:     ChatSettings     = Field(default_factory=ChatSettings)
    logging:  LoggingSettings  = Field(default_factory=LoggingSettings)
    secrets:  Secrets          = Field(default_factory=Secrets)

    @property
    def database_url(self) -> str:
        """The secrets file wins over the settings file for the database URL."""
        return self.secrets.database.url or self.database.url


# ---------------------------------------------------------------------------
# Public loader
# ---------------------------------------------------------------------------


def load_config(
    settings_path: Optional[Path] = None,
    secrets_path: Optional[Path] = None,
) -> AppSettings:
    """Load and merge settings + secrets into a single *AppSettings* object."""
    settings_path = Path(settings_path or os.environ.get("ROOMCHAT_SETTINGS", SETTINGS_FILE))
    secrets_path = Path(secrets_path or os.environ.get("ROOMCHAT_SECRETS", SECRETS_FILE))

    settings_data = _load_yaml(settings_path)
    secrets_data  = _load_yaml(secrets_path)

    # Merge: secrets live under the "secrets" key in AppSettings
    settings_data["secrets"] = secrets_data

    app_settings = AppSettings(**settings_data)
    logger.info(
        "Settings loaded (server=%s:%s, rooms.enforce_capacity=%s, chat.history_limit=%s)",
        app_settings.server.host,
        app_settings.server.port,
        app_settings.rooms.enforce_capacity,
        app_settings.chat.history_limit,
    )
    return app_settings


_config: Optional[AppSettings] = None


def get_config() -> AppSettings:
    """Return the process-wide settings, loading them on first use."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def set_config(config: AppSettings) -> None:
    global _config
    _config = config


def reset_config() -> None:
    global _config
    _config = None
