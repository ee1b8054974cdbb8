"""Client configuration from YAML file and environment.

Loads from config/config.yaml (``csrest:`` section) with:
- Team server connection settings (host, port, TLS)
- Credentials used by login
- Retry policy and task polling settings

Environment variables ARE supported using ${VAR_NAME} syntax in YAML files,
and CSREST_* variables override individual settings.
"""

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

# Configure module logger
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
        # Support both ${VAR} and ${VAR:-default} syntax
        pattern = r"\$\{([^}:]+)(?::-(([^}]*))?)?\}"

        def replacer(match):
            var_name = match.group(1)
            default_value = match.group(2) if match.group(2) is not None else match.group(0)
            return os.getenv(var_name, default_value)

        return re.sub(pattern, replacer, data)
    else:
        return data


def _deep_merge(base: Dict[str, Any], overlay: Dict[str, Any]) -> Dict[str, Any]:
    result = base.copy()
    for key, value in overlay.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _parse_bool(value: Any) -> bool:
    """Parse booleans from YAML or env strings (bool('false') would be True)."""
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


# Default config file: config/config.yaml in src/ directory
DEFAULT_CONFIG_FILE = Path(__file__).parent / "config.yaml"

# Setting name -> environment variable overriding it
ENV_OVERRIDES = {
    "host": "CSREST_HOST",
    "port": "CSREST_PORT",
    "username": "CSREST_USERNAME",
    "password": "CSREST_PASSWORD",
    "duration_ms": "CSREST_DURATION_MS",
    "verify_ssl": "CSREST_VERIFY_SSL",
    "ca_bundle": "CSREST_CA_BUNDLE",
    "timeout_seconds": "CSREST_TIMEOUT_SECONDS",
    "max_retries": "CSREST_MAX_RETRIES",
    "retry_delay_seconds": "CSREST_RETRY_DELAY_SECONDS",
    "poll_interval_seconds": "CSREST_POLL_INTERVAL_SECONDS",
    "task_timeout_seconds": "CSREST_TASK_TIMEOUT_SECONDS",
}


@dataclass
class ClientConfig:
    """Team server client configuration.

    Configuration structure:
        csrest:
          host: teamserver.example
          port: 50443
          username: operator
          password: ${CSREST_PASSWORD}
          verify_ssl: false
          timeout_seconds: 30
          retry:
            max_retries: 3
            retry_delay_seconds: 2
          tasks:
            poll_interval_seconds: 2
            timeout_seconds: 300

    All timing values in seconds unless otherwise noted. Settings are read
    once when the client is built; changing them mid-call has no effect.
    """

    # =========================================================================
    # CONNECTION SETTINGS
    # =========================================================================
    host: str = ""
    port: int = 50443
    verify_ssl: bool = True
    ca_bundle: Optional[str] = None
    timeout_seconds: float = 30.0

    # =========================================================================
    # CREDENTIALS
    # =========================================================================
    username: str = ""
    password: str = ""
    duration_ms: Optional[int] = None

    # =========================================================================
    # RETRY POLICY
    # =========================================================================
    max_retries: int = 3
    retry_delay_seconds: float = 2.0

    # =========================================================================
    # TASK POLLING
    # =========================================================================
    poll_interval_seconds: float = 2.0
    task_timeout_seconds: float = 300.0

    def __post_init__(self):
        """Ensure proper types from YAML/env vars."""
        self.port = int(self.port)
        self.verify_ssl = _parse_bool(self.verify_ssl)
        self.timeout_seconds = float(self.timeout_seconds)
        self.max_retries = int(self.max_retries)
        self.retry_delay_seconds = float(self.retry_delay_seconds)
        self.poll_interval_seconds = float(self.poll_interval_seconds)
        self.task_timeout_seconds = float(self.task_timeout_seconds)
        if self.duration_ms is not None and self.duration_ms != "":
            self.duration_ms = int(self.duration_ms)
        else:
            self.duration_ms = None
        if not self.ca_bundle:
            self.ca_bundle = None

    @property
    def base_url(self) -> str:
        return f"https://{self.host}:{self.port}"

    def validate(self) -> None:
        """Validate configuration for correctness and constraints.

        Collects every problem and raises a single ValueError listing them.
        """
        errors = []
        if not self.host:
            errors.append("csrest.host is required")
        if not self.username:
            errors.append("csrest.username is required")
        if not (0 < self.port < 65536):
            errors.append(f"csrest.port must be between 1 and 65535, got {self.port}")
        if self.timeout_seconds <= 0:
            errors.append(f"csrest.timeout_seconds must be > 0, got {self.timeout_seconds}")
        if self.max_retries < 0:
            errors.append(f"csrest.retry.max_retries must be >= 0, got {self.max_retries}")
        if self.retry_delay_seconds < 0:
            errors.append(
                f"csrest.retry.retry_delay_seconds must be >= 0, got {self.retry_delay_seconds}"
            )
        if self.poll_interval_seconds <= 0:
            errors.append(
                f"csrest.tasks.poll_interval_seconds must be > 0, got {self.poll_interval_seconds}"
            )
        if self.task_timeout_seconds <= 0:
            errors.append(
                f"csrest.tasks.timeout_seconds must be > 0, got {self.task_timeout_seconds}"
            )
        if self.ca_bundle and not Path(self.ca_bundle).exists():
            errors.append(f"csrest.ca_bundle not found: {self.ca_bundle}")

        if errors:
            raise ValueError("Invalid configuration:\n  - " + "\n  - ".join(errors))


def _flatten_section(section: Dict[str, Any]) -> Dict[str, Any]:
    """Map the nested YAML layout onto ClientConfig field names."""
    flat = {
        key: value
        for key, value in section.items()
        if key not in ("retry", "tasks") and key in ClientConfig.__dataclass_fields__
    }

    retry = section.get("retry") or {}
    if "max_retries" in retry:
        flat["max_retries"] = retry["max_retries"]
    if "retry_delay_seconds" in retry:
        flat["retry_delay_seconds"] = retry["retry_delay_seconds"]

    tasks = section.get("tasks") or {}
    if "poll_interval_seconds" in tasks:
        flat["poll_interval_seconds"] = tasks["poll_interval_seconds"]
    if "timeout_seconds" in tasks:
        flat["task_timeout_seconds"] = tasks["timeout_seconds"]

    return flat


def load_config(
    config_path: Optional[Path] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> ClientConfig:
    """Load client configuration.

    Priority (highest to lowest): ``overrides`` argument, CSREST_* environment
    variables, the YAML file, dataclass defaults. A missing default config
    file is allowed (environment-only setups); a missing explicit path is not.
    """
    if config_path is not None and not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    path = config_path or DEFAULT_CONFIG_FILE
    logger.info("Loading configuration from file: %s", path)
    yaml_data = _expand_env_vars(load_yaml(path))

    section = yaml_data.get("csrest", {}) if yaml_data else {}
    if yaml_data and "csrest" not in yaml_data:
        raise ValueError(
            f"Invalid config file {path}: missing 'csrest:' section"
        )

    values = _flatten_section(section)

    for key, env_var in ENV_OVERRIDES.items():
        env_value = os.getenv(env_var)
        if env_value:
            values[key] = env_value

    if overrides:
        logger.debug("Applying overrides: %s", list(overrides.keys()))
        values = _deep_merge(values, overrides)

    config = ClientConfig(**values)

    if not config.password:
        logger.warning("Team server password not configured")

    logger.debug(
        "Configuration loaded",
        extra={
            "base_url": config.base_url,
            "verify_ssl": config.verify_ssl,
            "max_retries": config.max_retries,
            "retry_delay_seconds": config.retry_delay_seconds,
        },
    )

    config.validate()
    return config


_client_config: Optional[ClientConfig] = None


def get_config() -> ClientConfig:
    """Get or load the singleton client config instance."""
    global _client_config
    if _client_config is None:
        _client_config = load_config()
    return _client_config


def set_config(config: ClientConfig) -> None:
    """Set the singleton client config instance (useful for testing)."""
    global _client_config
    _client_config = config


def reset_config() -> None:
    """Reset the singleton client config instance."""
    global _client_config
    _client_config = None
