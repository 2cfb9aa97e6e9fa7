"""Configuration management for the ctrlw core."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

import yaml

# Access-token lifetime is deliberately a named constant: keep it short,
# access tokens cannot be revoked before they expire.
ACCESS_TOKEN_TTL_SECONDS = 15 * 60
REFRESH_TOKEN_TTL_SECONDS = 7 * 24 * 60 * 60

TOKEN_ISSUER = "ctrl-w-api"
TOKEN_AUDIENCE = "ctrl-w-client"

ACCESS_SECRET_ENV = "CTRLW_ACCESS_SECRET"
REFRESH_SECRET_ENV = "CTRLW_REFRESH_SECRET"

DEFAULT_RETRY_DELAYS = [0.05, 0.2]


@dataclass
class SessionsConfig:
    """Pairing session configuration."""

    ttl_minutes: int = 30
    max_code_retries: int = 10
    reaper_interval: float = 60.0  # seconds


@dataclass
class TokensConfig:
    """Access/refresh token configuration."""

    access_ttl_seconds: int = ACCESS_TOKEN_TTL_SECONDS
    refresh_ttl_seconds: int = REFRESH_TOKEN_TTL_SECONDS
    issuer: str = TOKEN_ISSUER
    audience: str = TOKEN_AUDIENCE
    access_secret: str | None = None
    refresh_secret: str | None = None


@dataclass
class StoreConfig:
    """Store call timeout and transient retry schedule."""

    op_timeout: float = 5.0  # seconds
    retry_delays: list[float] = field(default_factory=lambda: DEFAULT_RETRY_DELAYS.copy())


@dataclass
class Config:
    """Core configuration."""

    log_level: str = "INFO"
    log_file: str | None = None
    data_dir: str = "~/.config/ctrlw"
    sessions: SessionsConfig = field(default_factory=SessionsConfig)
    tokens: TokensConfig = field(default_factory=TokensConfig)
    store: StoreConfig = field(default_factory=StoreConfig)

    @property
    def identities_path(self) -> Path:
        """Path of the JSON identity file."""
        return Path(self.data_dir).expanduser() / "identities.json"


def get_config_path(custom_path: Path | None = None) -> Path:
    """Get the configuration file path.

    Args:
        custom_path: Override path. If None, returns default.

    Returns:
        Path to config file.
    """
    if custom_path is not None:
        return custom_path
    return Path.home() / ".config" / "ctrlw" / "config.yaml"


def _default_file_reader(path: Path) -> dict[str, Any] | None:
    """Default file reader that loads YAML from disk."""
    if not path.exists():
        return None
    try:
        content = path.read_text()
        if not content.strip():
            return None
        return yaml.safe_load(content)
    except yaml.YAMLError:
        return None


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    """Get a nested config section; anything but a mapping means defaults."""
    section = data.get(name)
    return section if isinstance(section, dict) else {}


def load_config(
    path: Path | None = None,
    file_reader: Callable[[Path], dict[str, Any] | None] | None = None,
    environ: dict[str, str] | None = None,
) -> Config:
    """Load configuration from file.

    Token secrets from the environment take precedence over the file.

    Args:
        path: Path to config file. If None, uses default path.
        file_reader: Injectable file reader for testing.
        environ: Injectable environment mapping for testing.

    Returns:
        Config object with values from file or defaults.
    """
    config_path = get_config_path(path)
    reader = file_reader or _default_file_reader
    env = os.environ if environ is None else environ

    data = reader(config_path)
    if not isinstance(data, dict):
        data = {}

    sessions_data = _section(data, "sessions")
    sessions_config = SessionsConfig(
        ttl_minutes=sessions_data.get("ttl_minutes", SessionsConfig.ttl_minutes),
        max_code_retries=sessions_data.get(
            "max_code_retries", SessionsConfig.max_code_retries
        ),
        reaper_interval=sessions_data.get(
            "reaper_interval", SessionsConfig.reaper_interval
        ),
    )

    tokens_data = _section(data, "tokens")
    tokens_config = TokensConfig(
        access_ttl_seconds=tokens_data.get(
            "access_ttl_seconds", TokensConfig.access_ttl_seconds
        ),
        refresh_ttl_seconds=tokens_data.get(
            "refresh_ttl_seconds", TokensConfig.refresh_ttl_seconds
        ),
        issuer=tokens_data.get("issuer", TokensConfig.issuer),
        audience=tokens_data.get("audience", TokensConfig.audience),
        access_secret=env.get(ACCESS_SECRET_ENV) or tokens_data.get("access_secret"),
        refresh_secret=env.get(REFRESH_SECRET_ENV) or tokens_data.get("refresh_secret"),
    )

    store_data = _section(data, "store")
    store_config = StoreConfig(
        op_timeout=store_data.get("op_timeout", StoreConfig.op_timeout),
        retry_delays=store_data.get("retry_delays", DEFAULT_RETRY_DELAYS.copy()),
    )

    return Config(
        log_level=data.get("log_level", Config.log_level),
        log_file=data.get("log_file", Config.log_file),
        data_dir=data.get("data_dir", Config.data_dir),
        sessions=sessions_config,
        tokens=tokens_config,
        store=store_config,
    )
