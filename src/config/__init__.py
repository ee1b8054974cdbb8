"""Configuration loading for the csrest client.

Configuration Structure
-----------------------

config/
    config.yaml          # csrest: section with connection, retry and task settings

Main Functions
--------------

    - load_config(): Load client configuration from YAML and environment
    - get_config(): Get or load singleton config instance
    - set_config(): Replace the singleton (tests)
    - reset_config(): Reset singleton config instance

Usage Examples
--------------

    >>> from config import load_config
    >>> from csrest import CSRestClient
    >>>
    >>> config = load_config()
    >>> async with CSRestClient.from_config(config) as client:
    ...     await client.login(config.username, config.password)

Configuration Priority
---------------------

1. Explicit overrides passed to load_config()
2. CSREST_* environment variables
3. YAML configuration file (with ${VAR} expansion)
4. Dataclass defaults
"""

from config.config import (
    ClientConfig,
    get_config,
    load_config,
    reset_config,
    set_config,
)

__all__ = [
    "load_config",
    "get_config",
    "set_config",
    "reset_config",
    "ClientConfig",
]
