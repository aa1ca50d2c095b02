"""
Conversation Context Manager

Per-session state service for a chat agent. Records dialogue turns and fans
each one out to the entity, sentiment, intent-chain and memory trackers, then
persists the context through the ContextStore. Also exposes the read-only
derived views (summary, relevant context, next-intent prediction, ending
detection, greeting).

The manager is constructed explicitly by the host application and closed from
its shutdown hook:

    manager = ConversationContextManager.from_config(load_config())
    ...
    await manager.close()
"""

import asyncio
import logging
import secrets
import time
from typing import Any, Dict, List, Mapping, Optional, Union

from . import insights, trackers
from .cache import DurableCache, create_cache
from .classifiers import RuleBasedClassifier, TextClassifier
from .config import ContextManagerConfig
from .logging_config import apply_log_level, session_logging_context
from .models import ConversationContext, ConversationTurn, TurnInput
from .store import ContextStore


def generate_turn_id(now: Optional[float] = None) -> str:
    """Unique turn id: epoch milliseconds plus a random suffix."""
    now = time.time() if now is None else now
    return f"turn-{int(now * 1000)}-{secrets.token_hex(5)}"


class ConversationContextManager:
    """
    Tracks multi-turn conversation context per session.

    Writes for the same session are serialized with a per-session lock; reads
    of derived views are pure and never touch storage.
    """

    def __init__(
        self,
        config: Optional[ContextManagerConfig] = None,
        cache: Optional[DurableCache] = None,
        classifier: Optional[TextClassifier] = None
    ):
        self.config = config or ContextManagerConfig()
        self.classifier = classifier or RuleBasedClassifier()
        self.store = ContextStore(self.config, cache)
        self._session_locks: Dict[str, asyncio.Lock] = {}
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @classmethod
    def from_config(
        cls,
        config: Optional[ContextManagerConfig] = None,
        classifier: Optional[TextClassifier] = None
    ) -> 'ConversationContextManager':
        """
        Build a manager from configuration.

        The durable cache is created from ``config.cache`` and ``config.log_level``
        is applied to the package logger.
        """
        config = config or ContextManagerConfig()
        apply_log_level(config.log_level.value)
        return cls(config=config, cache=create_cache(config.cache), classifier=classifier)

    async def __aenter__(self) -> 'ConversationContextManager':
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def _lock_for(self, session_id: str) -> asyncio.Lock:
        lock = self._session_locks.get(session_id)
        if lock is None:
            lock = asyncio.Lock()
            self._session_locks[session_id] = lock
        return lock

    async def get_context(
        self,
        session_id: str,
        product_key: str,
        user_id: Optional[str] = None
    ) -> ConversationContext:
        """Get or create the context for a session. Never fails for cache reasons."""
        return await self.store.get_context(session_id, product_key, user_id)

    async def save_context(self, context: ConversationContext) -> bool:
        """Persist a context; failures are logged and reported as False."""
        return await self.store.save_context(context)

    async def add_turn(
        self,
        session_id: str,
        turn: Union[TurnInput, Mapping[str, Any]],
        product_key: str = "",
        user_id: Optional[str] = None
    ) -> ConversationContext:
        """
        Record a dialogue turn and update every tracker.

        Args:
            session_id: Session the turn belongs to
            turn: Turn fields (everything except id and timestamp)
            product_key: Product scope used if the session is new
            user_id: Optional user id recorded on the context

        Returns:
            The updated context
        """
        if not isinstance(turn, TurnInput):
            turn = TurnInput.from_mapping(turn)

        with session_logging_context(session_id):
            async with self._lock_for(session_id):
                context = await self.store.get_context(session_id, product_key, user_id)
                self._record_turn(context, turn)
                persisted = await self.store.save_context(context)

            self.logger.debug(
                f"Recorded turn {context.turns[-1].id} "
                f"(turns={len(context.turns)}, persisted={persisted})"
            )

        return context

    def _record_turn(self, context: ConversationContext, turn: TurnInput) -> ConversationTurn:
        now = time.time()
        new_turn = ConversationTurn(
            id=generate_turn_id(now),
            timestamp=now,
            user_message=turn.user_message,
            bot_response=turn.bot_response,
            intent=turn.intent,
            entities=list(turn.entities),
            sentiment=turn.sentiment,
            skills_used=list(turn.skills_used),
            confidence=turn.confidence,
            response_time=turn.response_time
        )

        trackers.append_turn(context, new_turn, self.config)
        trackers.update_entities(
            context,
            new_turn.entities,
            new_turn.user_message,
            self.classifier,
            self.config,
            entity_types=turn.entity_types,
            now=now
        )
        trackers.update_sentiment(context, new_turn.sentiment, self.config, now=now)
        trackers.update_intent_chain(context, new_turn.intent, self.config)
        trackers.extract_facts(context, new_turn.user_message, self.classifier, self.config, now=now)
        trackers.update_memory(context, new_turn, self.config)

        context.touch(now)
        return new_turn

    def get_summary(self, context: ConversationContext) -> str:
        return insights.get_summary(context)

    def get_relevant_context(self, context: ConversationContext, current_message: str) -> Dict[str, Any]:
        return insights.get_relevant_context(
            context,
            current_message,
            classifier=self.classifier,
            promotion_threshold=self.config.promotion_threshold
        )

    def predict_next_intent(self, context: ConversationContext) -> List[str]:
        return insights.predict_next_intent(context)

    def is_conversation_ending(self, context: ConversationContext) -> bool:
        return insights.is_conversation_ending(context)

    def get_personalized_greeting(self, context: ConversationContext) -> str:
        return insights.get_personalized_greeting(context)

    async def clear_expired_contexts(self) -> int:
        """
        Evict in-process contexts idle for longer than ``context_ttl``.

        Returns:
            Number of contexts evicted
        """
        expired = self.store.clear_expired()
        for session_id in expired:
            lock = self._session_locks.get(session_id)
            if lock is not None and not lock.locked():
                del self._session_locks[session_id]
        return len(expired)

    def get_metrics(self) -> Dict[str, Any]:
        """Get context manager metrics."""
        return {
            "active_sessions": len(self.store.cached_sessions()),
            "durable_cache_available": self.store.durable_cache_available,
            "context_ttl": self.config.context_ttl,
            "max_turns": self.config.max_turns,
            "max_short_term_memory": self.config.max_short_term_memory,
            "max_long_term_memory": self.config.max_long_term_memory,
        }

    async def close(self) -> None:
        """Release the durable cache connection."""
        await self.store.close()
        self.logger.info("Conversation context manager closed")
