"""
Shared test fixtures for the conversation context manager tests.

Provides configuration, in-memory stand-ins for the durable cache and turn
builders reused across the unit test modules.
"""

import os
import sys
from typing import Any, Dict, List, Optional, Tuple

import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(__file__)), 'src'))

from conversation_context.cache import DurableCache
from conversation_context.config import CacheConfig, ContextManagerConfig
from conversation_context.exceptions import CacheOperationError, CacheUnavailableError
from conversation_context.manager import ConversationContextManager
from conversation_context.models import TurnInput


# ============================================================================
# DURABLE CACHE STAND-INS
# ============================================================================

class FakeDurableCache(DurableCache):
    """Dictionary-backed cache that records every write."""

    name = "fake"

    def __init__(self):
        self.data: Dict[str, str] = {}
        self.ttls: Dict[str, int] = {}
        self.get_calls: List[str] = []
        self.set_calls: List[Tuple[str, int]] = []
        self.closed = False

    async def get(self, key: str) -> Optional[str]:
        self.get_calls.append(key)
        return self.data.get(key)

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self.set_calls.append((key, ttl_seconds))
        self.data[key] = value
        self.ttls[key] = ttl_seconds

    async def close(self) -> None:
        self.closed = True


class FailingDurableCache(DurableCache):
    """Cache whose every command fails with a transient I/O error."""

    name = "failing"

    def __init__(self):
        self.attempts = 0

    async def get(self, key: str) -> Optional[str]:
        self.attempts += 1
        raise CacheOperationError("get", key, ConnectionResetError("connection reset"))

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self.attempts += 1
        raise CacheOperationError("set", key, ConnectionResetError("connection reset"))


class UnreachableDurableCache(DurableCache):
    """Cache that cannot be constructed or reached at all."""

    name = "unreachable"

    def __init__(self):
        self.attempts = 0

    async def get(self, key: str) -> Optional[str]:
        self.attempts += 1
        raise CacheUnavailableError(self.name, "connection refused")

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self.attempts += 1
        raise CacheUnavailableError(self.name, "connection refused")


class RefusingDurableCache(DurableCache):
    """Third-party style adapter that raises plain connection errors."""

    name = "refusing"

    def __init__(self):
        self.attempts = 0

    async def get(self, key: str) -> Optional[str]:
        self.attempts += 1
        raise ConnectionError("refused")

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self.attempts += 1
        raise ConnectionError("refused")


# ============================================================================
# CONFIGURATION FIXTURES
# ============================================================================

@pytest.fixture
def config() -> ContextManagerConfig:
    """Default limits with the Redis cache disabled."""
    return ContextManagerConfig(cache=CacheConfig(enabled=False, redis_url=""))


@pytest.fixture
def small_config() -> ContextManagerConfig:
    """Tiny windows so overflow paths are reached quickly."""
    return ContextManagerConfig(
        max_turns=2,
        max_short_term_memory=3,
        max_long_term_memory=4,
        cache=CacheConfig(enabled=False, redis_url="")
    )


@pytest.fixture
def fake_cache() -> FakeDurableCache:
    return FakeDurableCache()


@pytest.fixture
def failing_cache() -> FailingDurableCache:
    return FailingDurableCache()


@pytest.fixture
def unreachable_cache() -> UnreachableDurableCache:
    return UnreachableDurableCache()


@pytest.fixture
def refusing_cache() -> RefusingDurableCache:
    return RefusingDurableCache()


@pytest.fixture
def manager(config) -> ConversationContextManager:
    """Manager running in in-process-only mode."""
    return ConversationContextManager(config=config)


@pytest.fixture
def cached_manager(config, fake_cache) -> ConversationContextManager:
    """Manager backed by the dictionary cache."""
    return ConversationContextManager(config=config, cache=fake_cache)


# ============================================================================
# TURN BUILDERS
# ============================================================================

def make_turn(
    user_message: str = "I need help with my invoice",
    bot_response: str = "Sure, let me look into that.",
    intent: str = "support",
    entities: Optional[List[str]] = None,
    sentiment: str = "neutral",
    confidence: float = 0.8,
    **kwargs: Any
) -> TurnInput:
    return TurnInput(
        user_message=user_message,
        bot_response=bot_response,
        intent=intent,
        entities=entities or [],
        sentiment=sentiment,
        skills_used=kwargs.pop("skills_used", ["responder"]),
        confidence=confidence,
        response_time=kwargs.pop("response_time", 0.25),
        **kwargs
    )


@pytest.fixture
def turn_factory():
    """Expose ``make_turn`` to tests as a fixture."""
    return make_turn
