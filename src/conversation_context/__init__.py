"""
Conversation context management for chat agents.

Tracks dialogue turns, entities, sentiment trend, intent chains and tiered
memory per session, with a Redis-backed durable cache and in-process fallback.
"""

from .cache import DurableCache, RedisCache, create_cache
from .classifiers import FactMatch, RuleBasedClassifier, TextClassifier
from .config import CacheConfig, ContextManagerConfig, LogLevel, load_config, resolve_redis_url
from .exceptions import (
    CacheOperationError,
    CacheUnavailableError,
    ConfigurationError,
    ContextDeserializationError,
    ContextManagerError,
    ValidationError
)
from .logging_config import LogFormat, LogOutput, LoggingConfig, apply_log_level, setup_logging
from .manager import ConversationContextManager
from .models import (
    CommunicationStyle,
    ConversationContext,
    ConversationMemory,
    ConversationTurn,
    EntityInfo,
    EntityType,
    FactItem,
    IntentChain,
    MemoryItem,
    ResponseLength,
    SentimentLabel,
    SentimentReading,
    SentimentTrend,
    TurnInput,
    UserPreferences
)
from .serialization import deserialize_context, serialize_context
from .store import ContextStore

__version__ = "0.1.0"

__all__ = [
    'CacheConfig',
    'CacheOperationError',
    'CacheUnavailableError',
    'CommunicationStyle',
    'ConfigurationError',
    'ContextDeserializationError',
    'ContextManagerConfig',
    'ContextManagerError',
    'ContextStore',
    'ConversationContext',
    'ConversationContextManager',
    'ConversationMemory',
    'ConversationTurn',
    'DurableCache',
    'EntityInfo',
    'EntityType',
    'FactItem',
    'FactMatch',
    'IntentChain',
    'LogFormat',
    'LogLevel',
    'LogOutput',
    'LoggingConfig',
    'MemoryItem',
    'RedisCache',
    'ResponseLength',
    'RuleBasedClassifier',
    'SentimentLabel',
    'SentimentReading',
    'SentimentTrend',
    'TextClassifier',
    'TurnInput',
    'UserPreferences',
    'ValidationError',
    'apply_log_level',
    'create_cache',
    'deserialize_context',
    'load_config',
    'resolve_redis_url',
    'serialize_context',
    'setup_logging',
]
