"""Provides loading and access for configuration settings.

Supports loading from a YAML configuration file, a .env file and
environment variables. Implements the ConfigurationProvider interface and
turns the raw values into typed, validated settings per component.
"""

import logging
import os
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Any, Optional, Dict, Mapping

import yaml
from dotenv import dotenv_values

from resilayer.domain.errors import ConfigurationError
from resilayer.domain.interfaces.config import ConfigurationProvider

logger = logging.getLogger(__name__)

# --- Configuration Constants ---
DEFAULT_CONFIG_DIR = Path.home() / ".resilayer"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"
ENV_FILE_NAME = ".env"
ENV_PREFIX = "RESILAYER_"

DEFAULT_LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# --- Typed Settings ---

@dataclass(frozen=True)
class CacheConfig:
    """Bounds for an LRU/TTL cache store."""
    max_size: int = 100
    default_ttl: float = 5 * 60  # 5 minutes

    def __post_init__(self):
        if self.max_size <= 0:
            raise ConfigurationError(f"cache.max_size must be greater than 0, got {self.max_size}")
        if self.default_ttl <= 0:
            raise ConfigurationError(f"cache.default_ttl must be greater than 0, got {self.default_ttl}")

@dataclass(frozen=True)
class RateLimitConfig:
    """Sliding window limits per identifier."""
    max_requests: int = 100
    window_seconds: float = 60.0

    def __post_init__(self):
        if self.max_requests <= 0:
            raise ConfigurationError(f"rate_limit.max_requests must be greater than 0, got {self.max_requests}")
        if self.window_seconds <= 0:
            raise ConfigurationError(f"rate_limit.window_seconds must be greater than 0, got {self.window_seconds}")

@dataclass(frozen=True)
class RetryConfig:
    """Default backoff policy for the retry executor."""
    max_retries: int = 3
    retry_delay: float = 1.0
    exponential_backoff: bool = True
    max_delay: float = 60.0

    def __post_init__(self):
        if self.max_retries < 0:
            raise ConfigurationError(f"retry.max_retries must be >= 0, got {self.max_retries}")
        if self.retry_delay < 0:
            raise ConfigurationError(f"retry.retry_delay must be >= 0, got {self.retry_delay}")
        if self.max_delay < 0:
            raise ConfigurationError(f"retry.max_delay must be >= 0, got {self.max_delay}")

@dataclass(frozen=True)
class MetricsConfig:
    """Size of the rolling metrics buffer."""
    max_records: int = 1000

    def __post_init__(self):
        if self.max_records <= 0:
            raise ConfigurationError(f"metrics.max_records must be greater than 0, got {self.max_records}")

@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"
    format: str = DEFAULT_LOG_FORMAT
    file: Optional[str] = None

    def __post_init__(self):
        if not isinstance(logging.getLevelName(str(self.level).upper()), int):
            raise ConfigurationError(f"logging.level '{self.level}' is not a valid logging level")

    @property
    def level_value(self) -> int:
        return logging.getLevelName(str(self.level).upper())

@dataclass(frozen=True)
class ResilienceSettings:
    """All component settings, validated together at construction."""
    cache: CacheConfig = field(default_factory=CacheConfig)
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    metrics: MetricsConfig = field(default_factory=MetricsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def as_dict(self) -> Dict[str, Dict[str, Any]]:
        return asdict(self)

# --- Helpers ---

def flatten_mapping(data: Mapping[str, Any], prefix: str = "") -> Dict[str, Any]:
    """Flattens nested YAML mappings into dotted keys ('cache.max_size')."""
    flat: Dict[str, Any] = {}
    for key, value in data.items():
        dotted = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(value, Mapping):
            flat.update(flatten_mapping(value, dotted))
        else:
            flat[dotted] = value
    return flat

def env_key_for(key: str) -> str:
    """Maps a dotted key to its environment variable name."""
    return ENV_PREFIX + key.upper().replace('.', '_')

def coerce_value(value: str) -> Any:
    """Converts environment strings to bool/int/float where they look like one."""
    if value.lower() == 'true':
        return True
    elif value.lower() == 'false':
        return False
    try:
        if '.' in value:
            return float(value)
        else:
            return int(value)
    except (ValueError, TypeError):
        return value

def find_dotenv_path() -> Optional[Path]:
    """Searches for the .env file upwards from the current directory."""
    cwd = Path.cwd()
    for path in [cwd] + list(cwd.parents):
        env_path = path / ENV_FILE_NAME
        if env_path.is_file():
            return env_path
    return None

# --- Provider ---

class SettingsLoader(ConfigurationProvider):
    """Loads configuration from environment, .env file, and YAML file.

    Priority order (highest to lowest):
    1. Overrides passed to the constructor
    2. Environment Variables (RESILAYER_CACHE_MAX_SIZE, ...)
    3. .env file
    4. YAML configuration file
    5. Default values of the typed settings
    """

    def __init__(
        self,
        config_file: Optional[Path] = DEFAULT_CONFIG_FILE,
        env_file: Optional[Path] = None,
        environ: Optional[Mapping[str, str]] = None,
        overrides: Optional[Dict[str, Any]] = None,
    ):
        self.config_file = Path(config_file) if config_file is not None else None
        self.env_file = Path(env_file) if env_file is not None else None
        self._environ = environ if environ is not None else os.environ
        self._overrides: Dict[str, Any] = dict(overrides or {})
        self._yaml_config: Dict[str, Any] = {}
        self._dotenv_config: Dict[str, str] = {}
        self._loaded = False

    def load_config(self) -> None:
        self._yaml_config = {}
        self._dotenv_config = {}

        # 1. Load from YAML file (Lowest priority)
        if self.config_file is not None and self.config_file.exists():
            try:
                with open(self.config_file, 'r', encoding='utf-8') as f:
                    yaml_config = yaml.safe_load(f)
            except (OSError, yaml.YAMLError) as e:
                raise ConfigurationError(f"Failed to load or parse YAML config {self.config_file}: {e}") from e
            if isinstance(yaml_config, dict):
                self._yaml_config = flatten_mapping(yaml_config)
                logger.info(f"Loaded configuration from YAML: {self.config_file}")
            elif yaml_config is not None:
                logger.warning(f"YAML config file {self.config_file} did not contain a dictionary.")
        elif self.config_file is not None:
            logger.debug(f"YAML config file not found: {self.config_file}")

        # 2. Load from .env file (Medium priority)
        dotenv_path = self.env_file or find_dotenv_path()
        if dotenv_path and dotenv_path.is_file():
            self._dotenv_config = {
                k: v for k, v in dotenv_values(dotenv_path).items() if v is not None
            }
            logger.info(f"Loaded environment variables from: {dotenv_path}")
        else:
            logger.debug("Skipping .env file loading (path not found).")

        # 3. Environment Variables (Highest priority) are read lazily in get()
        self._loaded = True
        logger.debug("Configuration loading process completed.")

    def get(self, key: str, default: Optional[Any] = None) -> Optional[Any]:
        if not self._loaded:
            self.load_config()

        if key in self._overrides:
            return self._overrides[key]

        env_key = env_key_for(key)
        if env_key in self._environ:
            return coerce_value(self._environ[env_key])
        if env_key in self._dotenv_config:
            return coerce_value(self._dotenv_config[env_key])

        if key in self._yaml_config:
            return self._yaml_config[key]

        logger.debug(f"Config key '{key}' not found. Returning default: {default}")
        return default

    def set(self, key: str, value: Any) -> None:
        """Sets an in-memory override for a dotted key."""
        logger.debug(f"Setting config override: {key} = {value!r}")
        self._overrides[key] = value

    def build_settings(self) -> ResilienceSettings:
        """Reads every known key and returns validated, typed settings.

        Raises:
            ConfigurationError: If any value is out of bounds or has the wrong type.
        """
        try:
            return ResilienceSettings(
                cache=CacheConfig(
                    max_size=int(self.get('cache.max_size', CacheConfig.max_size)),
                    default_ttl=float(self.get('cache.default_ttl', CacheConfig.default_ttl)),
                ),
                rate_limit=RateLimitConfig(
                    max_requests=int(self.get('rate_limit.max_requests', RateLimitConfig.max_requests)),
                    window_seconds=float(self.get('rate_limit.window_seconds', RateLimitConfig.window_seconds)),
                ),
                retry=RetryConfig(
                    max_retries=int(self.get('retry.max_retries', RetryConfig.max_retries)),
                    retry_delay=float(self.get('retry.retry_delay', RetryConfig.retry_delay)),
                    exponential_backoff=_as_bool(self.get('retry.exponential_backoff', RetryConfig.exponential_backoff)),
                    max_delay=float(self.get('retry.max_delay', RetryConfig.max_delay)),
                ),
                metrics=MetricsConfig(
                    max_records=int(self.get('metrics.max_records', MetricsConfig.max_records)),
                ),
                logging=LoggingConfig(
                    level=str(self.get('logging.level', LoggingConfig.level)).upper(),
                    format=str(self.get('logging.format', DEFAULT_LOG_FORMAT)),
                    file=self.get('logging.file'),
                ),
            )
        except ConfigurationError:
            raise
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid configuration value: {e}") from e

def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        if value.lower() in ('true', '1', 'yes', 'on'):
            return True
        if value.lower() in ('false', '0', 'no', 'off'):
            return False
        raise ConfigurationError(f"Expected a boolean, got '{value}'")
    return bool(value)

def load_settings(config_file: Optional[Path] = DEFAULT_CONFIG_FILE, env_file: Optional[Path] = None) -> ResilienceSettings:
    """Convenience function: load all sources and build typed settings."""
    loader = SettingsLoader(config_file=config_file, env_file=env_file)
    loader.load_config()
    return loader.build_settings()
