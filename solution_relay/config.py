"""Application configuration loaded from the JSON config file and environment."""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config/config.json"
DEFAULT_GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_GEMINI_MODEL = "gemini-1.5-flash"
DEFAULT_UPSTREAM_TIMEOUT_SECONDS = 15.0

DEFAULT_CORS_ORIGINS = [
    "https://jade-puppy-e1cab9.netlify.app",
    "http://localhost:5173",
]
CORS_ALLOW_METHODS = ["GET", "POST", "HEAD", "PUT", "DELETE", "PATCH", "OPTIONS"]
CORS_ALLOW_HEADERS = ["Content-Type", "Accept"]

# Environment variable names
CONFIG_PATH_ENV = "RELAY_CONFIG_PATH"
PORT_ENV = "PORT"
GEMINI_API_KEY_ENV = "GEMINI_API_KEY"
CORS_ALLOW_ORIGINS_ENV = "CORS_ALLOW_ORIGINS"
LOG_LEVEL_ENV = "LOG_LEVEL"


class ConfigError(ValueError):
    """Raised when the config artifact is missing, unreadable or incomplete."""


@dataclass(frozen=True)
class RelayConfig:
    """Read-only process configuration, captured once at startup."""

    server_port: int
    gemini_api_key: str = field(repr=False)
    gemini_model: str = DEFAULT_GEMINI_MODEL
    gemini_base_url: str = DEFAULT_GEMINI_BASE_URL
    upstream_timeout_seconds: float = DEFAULT_UPSTREAM_TIMEOUT_SECONDS


def get_config_path() -> Path:
    """
    Get the config file path.

    Checks RELAY_CONFIG_PATH first, then falls back to config/config.json
    relative to the working directory.
    """
    if env_path := os.getenv(CONFIG_PATH_ENV):
        return Path(env_path)
    return Path(DEFAULT_CONFIG_PATH)


def get_cors_origins() -> List[str]:
    """
    Get the list of origins allowed by the CORS policy.

    CORS_ALLOW_ORIGINS (comma separated) replaces the built-in list when set.
    Trailing slashes are dropped since browsers never send them in Origin.
    """
    env_origins = os.getenv(CORS_ALLOW_ORIGINS_ENV, "").strip()
    origins = env_origins.split(",") if env_origins else DEFAULT_CORS_ORIGINS
    return [o.strip().rstrip("/") for o in origins if o.strip()]


def get_log_level() -> str:
    """Get the log level name, INFO unless LOG_LEVEL says otherwise."""
    return os.getenv(LOG_LEVEL_ENV, "INFO").strip().upper() or "INFO"


def _read_config_file(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
    except OSError as e:
        raise ConfigError(f"cannot open config file: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"cannot decode config file: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigError("cannot decode config file: top level must be a JSON object")
    return raw


def _required_str(raw: Dict[str, Any], key: str, env_name: str) -> str:
    value = os.getenv(env_name) or raw.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"{key} must be specified in config")
    return value.strip()


def _parse_port(value: str) -> int:
    if not value.isdigit() or not 1 <= int(value) <= 65535:
        raise ConfigError(f"server_port must be a port number between 1 and 65535, got '{value}'")
    return int(value)


def _parse_timeout(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ConfigError("upstream_timeout_seconds must be a positive number")
    return float(value)


def load_config(path: Optional[Path] = None) -> RelayConfig:
    """
    Load and validate the relay configuration.

    Values come from the JSON config file, with PORT and GEMINI_API_KEY
    environment variables taking priority over the file.

    Args:
        path: Config file path (defaults to get_config_path())

    Returns:
        Validated RelayConfig

    Raises:
        ConfigError: If the file is unreadable or a required field is missing
    """
    config_path = path or get_config_path()
    raw = _read_config_file(config_path)

    if isinstance(raw.get("server_port"), int) and not isinstance(raw["server_port"], bool):
        raw["server_port"] = str(raw["server_port"])
    port = _parse_port(_required_str(raw, "server_port", PORT_ENV))
    api_key = _required_str(raw, "gemini_api_key", GEMINI_API_KEY_ENV)

    model = raw.get("gemini_model") or DEFAULT_GEMINI_MODEL
    base_url = (raw.get("gemini_base_url") or DEFAULT_GEMINI_BASE_URL).rstrip("/")
    timeout = _parse_timeout(
        raw.get("upstream_timeout_seconds", DEFAULT_UPSTREAM_TIMEOUT_SECONDS)
    )

    logger.info(
        f"Loaded config from {config_path}: port={port} model={model} "
        f"timeout={timeout}s"
    )
    return RelayConfig(
        server_port=port,
        gemini_api_key=api_key,
        gemini_model=model,
        gemini_base_url=base_url,
        upstream_timeout_seconds=timeout,
    )
