"""Loader configuration from YAML file, environment and command line.

Configuration structure (config/config.yaml):
    memc_load:
      pattern: /data/appsinstalled/*.tsv.gz
      dry_run: false
      workers: 30
      queue_size: 10000
      stats_interval_seconds: 30
      processed_marker: "."
      cache:
        timeout_seconds: 10
        pool_size: 4
        verify_connections: true
        addresses:
          idfa: 127.0.0.1:33013
          ...
      retry:
        max_attempts: 3
        base_delay: 0.1
        max_delay: 2.0

Environment variables ARE supported using ${VAR_NAME} and ${VAR_NAME:-default}
syntax in YAML files.
"""

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from core.errors.exceptions import ConfigurationError
from core.resilience.retry import RetryConfig
from memc_load.schemas.device import DeviceType

logger = logging.getLogger(__name__)

# Environment variable naming an alternative config file
CONFIG_PATH_ENV = "MEMC_LOAD_CONFIG"

# Default config file: config/config.yaml in src/ directory
DEFAULT_CONFIG_FILE = Path(__file__).parent / "config.yaml"

DEFAULT_PATTERN = "/data/appsinstalled/*.tsv.gz"

DEFAULT_CACHE_ADDRESSES: Dict[str, str] = {
    DeviceType.IDFA.value: "127.0.0.1:33013",
    DeviceType.GAID.value: "127.0.0.1:33014",
    DeviceType.ADID.value: "127.0.0.1:33015",
    DeviceType.DVID.value: "127.0.0.1:33016",
}

_ADDRESS_RE = re.compile(r"^(?P<host>[^\s:]+|\[[0-9a-fA-F:]+\]):(?P<port>\d{1,5})$")


# ${VAR} or ${VAR:-default}; an unset VAR without default is left as written
_ENV_REF = re.compile(r"\$\{(?P<name>[^}:]+)(?::-(?P<default>[^}]*))?\}")


def load_yaml(path: Path) -> Dict[str, Any]:
    """Parsed YAML mapping, or an empty dict when the file does not exist."""
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    return yaml.safe_load(text) or {}


def _expand_env_vars(data: Any) -> Any:
    """Substitute environment references in every string of a parsed document."""
    if isinstance(data, str):
        return _ENV_REF.sub(
            lambda m: os.environ.get(m["name"], m["default"] if m["default"] is not None else m[0]),
            data,
        )
    if isinstance(data, dict):
        return {key: _expand_env_vars(value) for key, value in data.items()}
    if isinstance(data, list):
        return [_expand_env_vars(item) for item in data]
    return data


def _deep_merge(base: Dict[str, Any], overlay: Dict[str, Any]) -> Dict[str, Any]:
    """New dict with ``overlay`` applied on ``base``; nested mappings merge key by key."""
    merged = dict(base)
    for key, value in overlay.items():
        current = merged.get(key)
        merged[key] = (
            _deep_merge(current, value)
            if isinstance(current, dict) and isinstance(value, dict)
            else value
        )
    return merged


def _as_bool(value: Any) -> bool:
    # bool('false') would be True, so strings from env expansion need parsing
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class CacheEndpoint:
    """A memcached ``host:port`` address."""

    host: str
    port: int

    @classmethod
    def parse(cls, address: str) -> "CacheEndpoint":
        """Parse ``host:port``; IPv6 hosts must be bracketed (``[::1]:11211``)."""
        match = _ADDRESS_RE.match(address.strip()) if isinstance(address, str) else None
        if match is None:
            raise ConfigurationError(
                f"Invalid cache address '{address}', expected host:port",
                context={"address": address},
            )
        port = int(match.group("port"))
        if not 0 < port < 65536:
            raise ConfigurationError(
                f"Invalid cache port in '{address}'", context={"address": address}
            )
        return cls(host=match.group("host").strip("[]"), port=port)

    def __str__(self) -> str:
        host = f"[{self.host}]" if ":" in self.host else self.host
        return f"{host}:{self.port}"


@dataclass
class LoaderConfig:
    """Installed-apps loader configuration.

    Priority (highest to lowest): command-line flags, YAML file, dataclass
    defaults. All timing values in seconds.
    """

    # =========================================================================
    # SOURCE
    # =========================================================================
    pattern: str = DEFAULT_PATTERN
    processed_marker: str = "."

    # =========================================================================
    # PROCESSING
    # =========================================================================
    dry_run: bool = False
    workers: int = 30
    queue_size: int = 10000
    stats_interval_seconds: float = 30.0

    # =========================================================================
    # CACHE
    # =========================================================================
    cache_addresses: Dict[str, str] = field(
        default_factory=lambda: dict(DEFAULT_CACHE_ADDRESSES)
    )
    timeout_seconds: float = 10.0
    pool_size: int = 4
    verify_connections: bool = True

    # =========================================================================
    # RETRY
    # =========================================================================
    retry_attempts: int = 3
    retry_base_delay: float = 0.1
    retry_max_delay: float = 2.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LoaderConfig":
        """Build config from the ``memc_load:`` section of a YAML document."""
        cache = data.get("cache", {}) or {}
        retry = data.get("retry", {}) or {}
        addresses = dict(DEFAULT_CACHE_ADDRESSES)
        addresses.update({str(k): str(v) for k, v in (cache.get("addresses") or {}).items()})

        defaults = cls()
        return cls(
            pattern=str(data.get("pattern", defaults.pattern)),
            processed_marker=str(data.get("processed_marker", defaults.processed_marker)),
            dry_run=_as_bool(data.get("dry_run", defaults.dry_run)),
            workers=int(data.get("workers", defaults.workers)),
            queue_size=int(data.get("queue_size", defaults.queue_size)),
            stats_interval_seconds=float(
                data.get("stats_interval_seconds", defaults.stats_interval_seconds)
            ),
            cache_addresses=addresses,
            timeout_seconds=float(cache.get("timeout_seconds", defaults.timeout_seconds)),
            pool_size=int(cache.get("pool_size", defaults.pool_size)),
            verify_connections=_as_bool(
                cache.get("verify_connections", defaults.verify_connections)
            ),
            retry_attempts=int(retry.get("max_attempts", defaults.retry_attempts)),
            retry_base_delay=float(retry.get("base_delay", defaults.retry_base_delay)),
            retry_max_delay=float(retry.get("max_delay", defaults.retry_max_delay)),
        )

    def endpoints(self) -> Dict[DeviceType, CacheEndpoint]:
        """Explicit device type -> endpoint mapping."""
        return {
            DeviceType(name): CacheEndpoint.parse(address)
            for name, address in self.cache_addresses.items()
        }

    def retry_config(self) -> RetryConfig:
        return RetryConfig(
            max_attempts=self.retry_attempts,
            base_delay=self.retry_base_delay,
            max_delay=self.retry_max_delay,
        )

    def validate(self) -> None:
        """Validate configuration for correctness and constraints.

        Raises:
            ConfigurationError: On the first invalid setting
        """
        if not self.pattern:
            raise ConfigurationError("pattern must not be empty")
        if not self.processed_marker or os.sep in self.processed_marker:
            raise ConfigurationError(
                f"processed_marker must be a non-empty file name prefix, got '{self.processed_marker}'"
            )

        self._validate_min("workers", self.workers, 1)
        self._validate_min("queue_size", self.queue_size, 1)
        self._validate_min("pool_size", self.pool_size, 1)
        self._validate_min("retry_attempts", self.retry_attempts, 1)

        for name in ("timeout_seconds", "stats_interval_seconds"):
            value = getattr(self, name)
            if value <= 0:
                raise ConfigurationError(f"{name} must be > 0, got {value}")
        if self.retry_base_delay < 0 or self.retry_max_delay < 0:
            raise ConfigurationError("retry delays must be >= 0")

        known = {device.value for device in DeviceType}
        unknown = set(self.cache_addresses) - known
        if unknown:
            raise ConfigurationError(
                f"Unknown device types in cache addresses: {sorted(unknown)}. "
                f"Expected: {sorted(known)}"
            )
        missing = known - set(self.cache_addresses)
        if missing:
            raise ConfigurationError(f"No cache address configured for: {sorted(missing)}")

        # Parses every address, raising on the first malformed one
        self.endpoints()

    @staticmethod
    def _validate_min(name: str, value: int, min_value: int) -> None:
        if value < min_value:
            raise ConfigurationError(f"{name} must be >= {min_value}, got {value}")


def load_config(
    config_path: Optional[Path] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> LoaderConfig:
    """Load loader configuration.

    Reads ``config_path`` (or ``$MEMC_LOAD_CONFIG``, or the bundled
    config/config.yaml), expands environment variables, deep-merges
    ``overrides`` (same nested layout as the ``memc_load:`` section) and
    validates the result.

    Raises:
        ConfigurationError: If an explicit config file is missing or any
            setting is invalid
    """
    explicit = config_path is not None or os.getenv(CONFIG_PATH_ENV)
    if config_path is None:
        env_path = os.getenv(CONFIG_PATH_ENV)
        config_path = Path(env_path) if env_path else DEFAULT_CONFIG_FILE

    if explicit and not config_path.exists():
        raise ConfigurationError(f"Configuration file not found: {config_path}")

    try:
        yaml_data = _expand_env_vars(load_yaml(config_path))
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {config_path}", cause=e) from e

    section = yaml_data.get("memc_load", {}) or {}
    if not isinstance(section, dict):
        raise ConfigurationError(f"Invalid config file {config_path}: 'memc_load' must be a mapping")

    if overrides:
        logger.debug("Applying overrides: %s", sorted(overrides))
        section = _deep_merge(section, overrides)

    try:
        config = LoaderConfig.from_dict(section)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid configuration value: {e}", cause=e) from e

    logger.debug("Configuration loaded from %s", config_path)
    config.validate()
    return config
