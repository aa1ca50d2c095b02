"""
Configuration management for the conversation context manager.

Configuration precedence (highest to lowest):
1. Keyword overrides passed to ``load_config``
2. Environment variables (``CONTEXT_*``, ``LOG_LEVEL`` and the Redis variables)
3. Configuration file (YAML or JSON)
4. Default values
"""

import os
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union
from urllib.parse import quote

from dotenv import load_dotenv

from .exceptions import ConfigurationError, ValidationError
from .utils import load_config_file, merge_configs, parse_env_value, validate_enum, validate_range

logger = logging.getLogger(__name__)


class LogLevel(Enum):
    """Logging levels for the context manager."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


def resolve_redis_url(env: Optional[Mapping[str, str]] = None) -> Optional[str]:
    """
    Resolve the durable cache URL from the environment.

    Public URLs win over the internal ``REDIS_URL``; host-style settings are
    assembled into a URL, with ``REDIS_TLS=true`` selecting ``rediss://``.
    Returns None when nothing is configured.
    """
    env = os.environ if env is None else env

    for key in ("REDIS_PUBLIC_URL", "REDIS_URL_PUBLIC", "REDIS_URL"):
        if env.get(key):
            return env[key]

    # Railway-style names first, then the underscored convention
    for host_key, port_key, user_key in (
        ("REDISHOST", "REDISPORT", "REDISUSER"),
        ("REDIS_HOST", "REDIS_PORT", "REDIS_USER"),
    ):
        host = env.get(host_key)
        if not host:
            continue

        port = env.get(port_key) or "6379"
        user = env.get(user_key) or ""
        password = env.get("REDIS_PASSWORD") or env.get("REDISPASSWORD") or ""
        scheme = "rediss" if env.get("REDIS_TLS", "").lower() == "true" else "redis"

        auth = ""
        if user or password:
            auth = f"{quote(user, safe='')}:{quote(password, safe='')}@"
        return f"{scheme}://{auth}{host}:{port}"

    return None


@dataclass
class CacheConfig:
    """Configuration for the durable (Redis) cache."""
    enabled: bool = True
    redis_url: Optional[str] = None
    connect_timeout: float = 10.0
    command_timeout: float = 5.0
    db: int = 0
    client_name: str = "conversation-context"

    def __post_init__(self):
        if self.redis_url is None:
            self.redis_url = resolve_redis_url()
        validate_range(self.connect_timeout, 0.0, None, "cache.connect_timeout")
        validate_range(self.command_timeout, 0.0, None, "cache.command_timeout")
        validate_range(self.db, 0, 15, "cache.db")

    @property
    def is_configured(self) -> bool:
        return bool(self.enabled and self.redis_url)


@dataclass
class ContextManagerConfig:
    """Configuration for the conversation context manager."""

    # Lifetimes (seconds)
    context_ttl: int = 3600
    short_term_memory_ttl: int = 3600
    archive_memory_ttl: int = 86400

    # Window sizes
    max_turns: int = 50
    max_short_term_memory: int = 10
    max_long_term_memory: int = 100
    sentiment_history_size: int = 10
    max_intent_history: Optional[int] = 100
    max_entity_snippets: int = 10

    # Truncation
    entity_snippet_length: int = 50
    memory_content_length: int = 100

    # Scoring
    promotion_threshold: float = 0.7
    archive_importance: float = 0.5
    inferred_entity_confidence: float = 0.8
    asserted_entity_confidence: float = 0.95
    fact_confidence: float = 0.9

    # Persistence
    key_prefix: str = "context:"
    cache: CacheConfig = field(default_factory=CacheConfig)

    log_level: LogLevel = LogLevel.INFO

    def __post_init__(self):
        if isinstance(self.cache, dict):
            self.cache = CacheConfig(**self.cache)
        self.log_level = validate_enum(self.log_level, LogLevel, "log_level")

        validate_range(self.context_ttl, 1, None, "context_ttl")
        validate_range(self.short_term_memory_ttl, 1, None, "short_term_memory_ttl")
        validate_range(self.archive_memory_ttl, 1, None, "archive_memory_ttl")
        validate_range(self.max_turns, 1, None, "max_turns")
        validate_range(self.max_short_term_memory, 1, None, "max_short_term_memory")
        validate_range(self.max_long_term_memory, 1, None, "max_long_term_memory")
        validate_range(self.sentiment_history_size, 1, None, "sentiment_history_size")
        validate_range(self.max_entity_snippets, 1, None, "max_entity_snippets")
        if self.max_intent_history is not None:
            validate_range(self.max_intent_history, 1, None, "max_intent_history")

        for name in (
            "promotion_threshold",
            "archive_importance",
            "inferred_entity_confidence",
            "asserted_entity_confidence",
            "fact_confidence",
        ):
            validate_range(getattr(self, name), 0.0, 1.0, name)

        if not self.key_prefix:
            raise ValidationError("key_prefix", self.key_prefix, "must not be empty")


# Environment variable -> config field
ENV_OVERRIDES = {
    "CONTEXT_TTL": "context_ttl",
    "CONTEXT_MAX_TURNS": "max_turns",
    "CONTEXT_MAX_SHORT_TERM_MEMORY": "max_short_term_memory",
    "CONTEXT_MAX_LONG_TERM_MEMORY": "max_long_term_memory",
    "CONTEXT_PROMOTION_THRESHOLD": "promotion_threshold",
    "CONTEXT_SHORT_TERM_MEMORY_TTL": "short_term_memory_ttl",
    "CONTEXT_ARCHIVE_MEMORY_TTL": "archive_memory_ttl",
    "CONTEXT_KEY_PREFIX": "key_prefix",
    "LOG_LEVEL": "log_level",
}


def _env_settings(env: Mapping[str, str]) -> Dict[str, Any]:
    settings: Dict[str, Any] = {}

    for env_key, field_name in ENV_OVERRIDES.items():
        raw = env.get(env_key)
        if raw is None or raw == "":
            continue
        if field_name == "log_level":
            settings[field_name] = raw.upper()
        elif field_name == "key_prefix":
            settings[field_name] = raw
        else:
            settings[field_name] = parse_env_value(raw)

    cache_settings: Dict[str, Any] = {}
    enabled = env.get("CONTEXT_CACHE_ENABLED")
    if enabled:
        cache_settings["enabled"] = parse_env_value(enabled) is True
    redis_url = resolve_redis_url(env)
    if redis_url:
        cache_settings["redis_url"] = redis_url
    if cache_settings:
        settings["cache"] = cache_settings

    return settings


def load_config(
    path: Optional[Union[str, Path]] = None,
    env: Optional[Mapping[str, str]] = None,
    **overrides: Any
) -> ContextManagerConfig:
    """
    Build a ContextManagerConfig from defaults, a file, the environment and overrides.

    Args:
        path: Optional YAML/JSON configuration file
        env: Environment mapping (defaults to ``os.environ`` after loading ``.env``)
        **overrides: Field values that take precedence over every other source

    Returns:
        Validated configuration

    Raises:
        ConfigurationError: If the sources cannot be combined into a valid config
    """
    if env is None:
        load_dotenv()
        env = os.environ

    file_settings: Dict[str, Any] = {}
    if path is not None:
        try:
            file_settings = load_config_file(path)
        except (FileNotFoundError, ValueError) as e:
            raise ConfigurationError(f"Failed to load configuration file: {e}", {"path": str(path)})

    settings = merge_configs(file_settings, _env_settings(env), overrides)

    cache_settings = settings.pop("cache", {})
    try:
        if isinstance(cache_settings, CacheConfig):
            cache = cache_settings
        else:
            if "redis_url" not in cache_settings:
                # Empty string keeps CacheConfig from falling back to os.environ
                cache_settings["redis_url"] = resolve_redis_url(env) or ""
            cache = CacheConfig(**cache_settings)
        config = ContextManagerConfig(cache=cache, **settings)
    except ValidationError:
        raise
    except TypeError as e:
        raise ConfigurationError(f"Failed to create configuration: {e}")

    logger.debug(
        f"Loaded context manager config (ttl={config.context_ttl}s, "
        f"max_turns={config.max_turns}, cache_configured={config.cache.is_configured})"
    )
    return config
