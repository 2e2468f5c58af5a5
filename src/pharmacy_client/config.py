"""API client configuration from YAML file.

Loads from config/config.yaml with all client settings in one place:
- Backend base URL and request timeout
- Retry/backoff schedule
- Session storage location and login surface

Environment variables ARE supported using ${VAR_NAME} syntax in YAML files,
and PHARMACY_API_* variables override the file.
"""

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

logger = logging.getLogger(__name__)


def load_yaml(path: Path) -> Dict[str, Any]:
    """Load YAML file and return dict."""
    if not path.exists():
        return {}
    with open(path, "r") as f:
        return yaml.safe_load(f) or {}


def _expand_env_vars(data: Any) -> Any:
    """Recursively expand ${VAR_NAME} and ${VAR_NAME:-default} environment variables in config data."""
    if isinstance(data, dict):
        return {key: _expand_env_vars(value) for key, value in data.items()}
    elif isinstance(data, list):
        return [_expand_env_vars(item) for item in data]
    elif isinstance(data, str):
        pattern = r"\$\{([^}:]+)(?::-(([^}]*))?)?\}"

        def replacer(match):
            var_name = match.group(1)
            default_value = match.group(2) if match.group(2) is not None else match.group(0)
            return os.getenv(var_name, default_value)

        return re.sub(pattern, replacer, data)
    else:
        return data


def _to_bool(value: Any) -> bool:
    # bool("false") would be True
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


# Default config file: config/config.yaml at the repository root
DEFAULT_CONFIG_FILE = Path(__file__).parent.parent.parent / "config" / "config.yaml"

DEFAULT_STORAGE_PATH = Path.home() / ".pharmacy_client" / "session.json"

DEFAULT_PUBLIC_ENDPOINTS = [
    "/auth/login",
    "/auth/register",
    "/auth/forgot-password",
    "/auth/reset-password",
    "/auth/verify-email",
    "/auth/resend-verification",
    "/auth/change-password",
]

# PHARMACY_API_* environment variable -> config field
ENV_OVERRIDES = {
    "PHARMACY_API_BASE_URL": "base_url",
    "PHARMACY_API_TIMEOUT_SECONDS": "timeout_seconds",
    "PHARMACY_API_MAX_ATTEMPTS": "max_attempts",
    "PHARMACY_API_BACKOFF_JITTER": "backoff_jitter",
    "PHARMACY_API_STORAGE_PATH": "storage_path",
    "PHARMACY_API_LOGIN_PATH": "login_path",
}


@dataclass
class ClientConfig:
    """API client configuration.

    Configuration structure:
        api:
          base_url: ...
          timeout_seconds: 60
          retry:
            max_attempts: 3
            backoff_base_seconds: 1.0
            backoff_exponential_base: 2.0
            backoff_jitter: false
          session:
            storage_path: ~/.pharmacy_client/session.json
            login_path: /login
            public_endpoints: [...]
    """

    base_url: str = "http://localhost:8000/api"
    timeout_seconds: float = 60.0

    max_attempts: int = 3
    backoff_base_seconds: float = 1.0
    backoff_exponential_base: float = 2.0
    backoff_jitter: bool = False

    storage_path: Path = DEFAULT_STORAGE_PATH
    login_path: str = "/login"
    public_endpoints: List[str] = field(
        default_factory=lambda: list(DEFAULT_PUBLIC_ENDPOINTS)
    )

    def __post_init__(self):
        """Ensure proper types from YAML/env vars."""
        self.base_url = str(self.base_url)
        self.timeout_seconds = float(self.timeout_seconds)
        self.max_attempts = int(self.max_attempts)
        self.backoff_base_seconds = float(self.backoff_base_seconds)
        self.backoff_exponential_base = float(self.backoff_exponential_base)
        self.backoff_jitter = _to_bool(self.backoff_jitter)
        self.storage_path = Path(self.storage_path).expanduser()
        self.public_endpoints = list(self.public_endpoints)

    @property
    def timeout_ms(self) -> int:
        return int(self.timeout_seconds * 1000)

    def validate(self) -> None:
        """Validate configuration for correctness and constraints."""
        if not self.base_url:
            raise ValueError("api.base_url is required")
        if self.timeout_seconds <= 0:
            raise ValueError(
                f"api.timeout_seconds must be positive, got {self.timeout_seconds}"
            )
        if self.max_attempts < 1:
            raise ValueError(
                f"api.retry.max_attempts must be at least 1, got {self.max_attempts}"
            )
        if self.backoff_base_seconds < 0:
            raise ValueError(
                f"api.retry.backoff_base_seconds must be >= 0, got {self.backoff_base_seconds}"
            )


def load_config(
    config_path: Optional[Path] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> ClientConfig:
    """Load client configuration from config.yaml.

    A missing file is not an error: defaults and environment variables
    still apply. Priority (highest first): overrides, PHARMACY_API_* env
    vars, YAML file, dataclass defaults.
    """
    if config_path is None:
        config_path = DEFAULT_CONFIG_FILE

    if config_path.exists():
        logger.info("Loading configuration from file: %s", config_path)
    else:
        logger.debug("No configuration file at %s, using defaults", config_path)

    yaml_data = _expand_env_vars(load_yaml(config_path))
    api = yaml_data.get("api", {}) or {}
    retry = api.get("retry", {}) or {}
    session = api.get("session", {}) or {}

    values: Dict[str, Any] = {}
    for key in ("base_url", "timeout_seconds"):
        if key in api:
            values[key] = api[key]
    for key in (
        "max_attempts",
        "backoff_base_seconds",
        "backoff_exponential_base",
        "backoff_jitter",
    ):
        if key in retry:
            values[key] = retry[key]
    for key in ("storage_path", "login_path", "public_endpoints"):
        if key in session:
            values[key] = session[key]

    for env_name, key in ENV_OVERRIDES.items():
        env_value = os.getenv(env_name)
        if env_value:
            values[key] = env_value

    if overrides:
        logger.debug("Applying overrides: %s", list(overrides.keys()))
        values.update(overrides)

    config = ClientConfig(**values)
    config.validate()

    logger.debug(
        "Configuration loaded",
        extra={
            "base_url": config.base_url,
            "timeout_seconds": config.timeout_seconds,
            "max_attempts": config.max_attempts,
        },
    )
    return config


_client_config: Optional[ClientConfig] = None


def get_config() -> ClientConfig:
    """Get or load the singleton client config instance."""
    global _client_config
    if _client_config is None:
        _client_config = load_config()
    return _client_config


def set_config(config: Optional[ClientConfig]) -> None:
    """Set the singleton client config instance (useful for testing)."""
    global _client_config
    _client_config = config


__all__ = [
    "ClientConfig",
    "DEFAULT_PUBLIC_ENDPOINTS",
    "load_config",
    "get_config",
    "set_config",
]
