"""
Context Store

Resolves a session id to its ConversationContext using an in-process map
(authoritative while warm) backed by an optional durable cache shared across
processes. Every durable-cache problem degrades to in-process-only behavior;
nothing infrastructure-related is raised to callers.
"""

import logging
import time
from typing import Dict, List, Optional

from .cache import DurableCache
from .config import ContextManagerConfig
from .exceptions import CacheOperationError, CacheUnavailableError, ContextDeserializationError
from .models import ConversationContext
from .serialization import deserialize_context, serialize_context


class ContextStore:
    """Two-tier store: in-process map in front of an optional durable cache."""

    def __init__(
        self,
        config: Optional[ContextManagerConfig] = None,
        cache: Optional[DurableCache] = None
    ):
        self.config = config or ContextManagerConfig()
        self._cache = cache
        self._contexts: Dict[str, ConversationContext] = {}
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

        if cache is None:
            self.logger.info("Durable cache not configured, using in-memory cache")

    @property
    def durable_cache_available(self) -> bool:
        return self._cache is not None

    def cache_key(self, session_id: str) -> str:
        return f"{self.config.key_prefix}{session_id}"

    def _disable_cache(self, error: CacheUnavailableError) -> None:
        self.logger.error(f"{error}. Falling back to in-memory cache")
        self._cache = None

    async def get_context(
        self,
        session_id: str,
        product_key: str,
        user_id: Optional[str] = None
    ) -> ConversationContext:
        """
        Get or create the context for a session.

        Resolution order: in-process map, durable cache, new context.
        Never raises for cache problems.
        """
        context = self._contexts.get(session_id)

        if context is None:
            context = await self._load_from_cache(session_id)
            if context is not None:
                self._contexts[session_id] = context

        if context is None:
            context = self._create_context(session_id, product_key, user_id)
        else:
            context.touch()

        if user_id and not context.user_id:
            context.user_id = user_id

        return context

    async def _load_from_cache(self, session_id: str) -> Optional[ConversationContext]:
        if self._cache is None:
            return None

        try:
            stored = await self._cache.get(self.cache_key(session_id))
        except CacheUnavailableError as e:
            self._disable_cache(e)
            return None
        except CacheOperationError as e:
            self.logger.error(f"Failed to get context from durable cache: {e}")
            return None
        except Exception as e:
            # Adapters outside this package may raise their own I/O errors
            self.logger.error(f"Failed to get context from durable cache: {type(e).__name__}: {e}")
            return None

        if stored is None:
            return None

        try:
            context = deserialize_context(stored, session_id)
        except ContextDeserializationError as e:
            self.logger.warning(f"Discarding stored context: {e}")
            return None

        self.logger.debug(f"Loaded context from durable cache: {session_id}")
        return context

    def _create_context(
        self,
        session_id: str,
        product_key: str,
        user_id: Optional[str]
    ) -> ConversationContext:
        now = time.time()
        context = ConversationContext(
            session_id=session_id,
            product_key=product_key,
            user_id=user_id,
            start_time=now,
            last_activity=now
        )
        self._contexts[session_id] = context
        self.logger.debug(f"Created new context: {session_id}")
        return context

    async def save_context(self, context: ConversationContext) -> bool:
        """
        Persist a context to the durable cache with a sliding TTL.

        Returns:
            True if the write succeeded; False when the cache is unavailable or failed
        """
        if self._cache is None:
            return False

        try:
            payload = serialize_context(context)
        except (TypeError, ValueError) as e:
            self.logger.error(f"Failed to serialize context {context.session_id}: {e}")
            return False

        try:
            await self._cache.set(
                self.cache_key(context.session_id),
                payload,
                self.config.context_ttl
            )
        except CacheUnavailableError as e:
            self._disable_cache(e)
            return False
        except CacheOperationError as e:
            self.logger.error(f"Failed to save context to durable cache: {e}")
            return False
        except Exception as e:
            self.logger.error(f"Failed to save context to durable cache: {type(e).__name__}: {e}")
            return False

        return True

    def clear_expired(self, now: Optional[float] = None) -> List[str]:
        """
        Evict contexts idle for longer than ``context_ttl`` from the in-process map.

        The durable cache expires its own entries.

        Returns:
            Session ids that were evicted
        """
        now = time.time() if now is None else now
        expired = [
            session_id for session_id, context in self._contexts.items()
            if context.is_expired(self.config.context_ttl, now)
        ]
        for session_id in expired:
            del self._contexts[session_id]

        if expired:
            self.logger.info(f"Cleared {len(expired)} expired contexts")
        return expired

    def evict(self, session_id: str) -> bool:
        """Drop a session from the in-process map."""
        return self._contexts.pop(session_id, None) is not None

    def cached_sessions(self) -> List[str]:
        return list(self._contexts)

    def peek(self, session_id: str) -> Optional[ConversationContext]:
        """Return the warm context for a session without touching it."""
        return self._contexts.get(session_id)

    async def close(self) -> None:
        if self._cache is not None:
            await self._cache.close()
