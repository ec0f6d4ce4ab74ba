"""Configuration loading for the installed-apps loader.

Main Functions
--------------

    - load_config(): Load configuration from YAML, env vars and overrides
    - LoaderConfig: Effective configuration of one run
    - CacheEndpoint: Parsed ``host:port`` of one cache partition

Configuration Priority
---------------------

1. Command-line flags (passed as overrides)
2. YAML configuration file (``--config``, ``$MEMC_LOAD_CONFIG`` or config/config.yaml)
3. Dataclass defaults

Usage:
    >>> from config import load_config
    >>> config = load_config(overrides={"workers": 8, "dry_run": True})
    >>> config.endpoints()
"""

from config.config import (
    DEFAULT_CACHE_ADDRESSES,
    DEFAULT_PATTERN,
    CacheEndpoint,
    LoaderConfig,
    load_config,
)

__all__ = [
    "load_config",
    "LoaderConfig",
    "CacheEndpoint",
    "DEFAULT_CACHE_ADDRESSES",
    "DEFAULT_PATTERN",
]
