"""
Context trackers applied for every recorded turn.

Each tracker mutates one part of a ``ConversationContext`` in place:
the turn window (with archival), entities and topics, the sentiment trend,
the intent chain, extracted facts and short-term/long-term memory.
Inputs are assumed well formed; validation belongs to the calling API layer.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Iterable, List, Mapping, Optional

from .classifiers import TextClassifier
from .config import ContextManagerConfig
from .insights import predict_next_intent
from .models import (
    ConversationContext, ConversationTurn, EntityInfo, EntityType, FactItem,
    MemoryItem, SentimentLabel, SentimentReading
)

logger = logging.getLogger(__name__)


SENTIMENT_SCORES = {
    SentimentLabel.POSITIVE: 1.0,
    SentimentLabel.NEUTRAL: 0.0,
    SentimentLabel.NEGATIVE: -1.0,
}

ARCHIVE_CATEGORY = "archive"


def _now(now: Optional[float]) -> float:
    return time.time() if now is None else now


def _enforce_long_term_bound(context: ConversationContext, config: ContextManagerConfig) -> None:
    long_term = context.memory.long_term
    overflow = len(long_term) - config.max_long_term_memory
    if overflow > 0:
        del long_term[:overflow]


def append_turn(
    context: ConversationContext,
    turn: ConversationTurn,
    config: ContextManagerConfig
) -> List[ConversationTurn]:
    """
    Append a turn, archiving the oldest turns beyond the window.

    Returns:
        The turns moved out of the window (oldest first)
    """
    context.turns.append(turn)

    overflow = len(context.turns) - config.max_turns
    if overflow <= 0:
        return []

    old_turns = context.turns[:overflow]
    del context.turns[:overflow]
    archive_turns(context, old_turns, config)
    return old_turns


def archive_turns(
    context: ConversationContext,
    turns: Iterable[ConversationTurn],
    config: ContextManagerConfig
) -> None:
    """Move turns into long-term memory as archive entries."""
    archived = 0
    for turn in turns:
        stamp = datetime.fromtimestamp(turn.timestamp, tz=timezone.utc).isoformat()
        context.memory.long_term.append(MemoryItem(
            id=turn.id,
            content=f"[{stamp}] {turn.intent}: {turn.user_message[:50]}",
            timestamp=turn.timestamp,
            importance=config.archive_importance,
            category=ARCHIVE_CATEGORY,
            ttl=config.archive_memory_ttl
        ))
        archived += 1

    context.memory.archived_turns += archived
    _enforce_long_term_bound(context, config)
    logger.debug(f"Archived {archived} turns for session {context.session_id}")


def update_entities(
    context: ConversationContext,
    entities: Iterable[str],
    message: str,
    classifier: TextClassifier,
    config: ContextManagerConfig,
    entity_types: Optional[Mapping[str, str]] = None,
    now: Optional[float] = None
) -> None:
    """Record entity mentions and any newly seen topics in ``message``."""
    now = _now(now)
    entity_types = entity_types or {}
    snippet = message[:config.entity_snippet_length]

    for entity in entities:
        info = context.entities.get(entity)
        if info is not None:
            info.last_mentioned = now
            info.frequency += 1
            info.context.append(snippet)
            if len(info.context) > config.max_entity_snippets:
                del info.context[:len(info.context) - config.max_entity_snippets]
            continue

        asserted = entity_types.get(entity)
        if asserted is not None:
            entity_type = EntityType(asserted)
            confidence = config.asserted_entity_confidence
        else:
            entity_type = classifier.detect_entity_type(entity)
            confidence = config.inferred_entity_confidence

        context.entities[entity] = EntityInfo(
            value=entity,
            type=entity_type,
            confidence=confidence,
            first_mentioned=now,
            last_mentioned=now,
            frequency=1,
            context=[snippet]
        )

    for topic in classifier.extract_topics(message):
        if topic not in context.topics:
            context.topics.append(topic)


def update_sentiment(
    context: ConversationContext,
    sentiment: str,
    config: ContextManagerConfig,
    now: Optional[float] = None
) -> None:
    """Append a sentiment reading and recompute the running mean and trend."""
    label = SentimentLabel(sentiment)
    trend = context.sentiment

    trend.history.append(SentimentReading(sentiment=label, timestamp=_now(now)))
    overflow = len(trend.history) - config.sentiment_history_size
    if overflow > 0:
        del trend.history[:overflow]

    scores = [SENTIMENT_SCORES[reading.sentiment] for reading in trend.history]
    trend.overall = sum(scores) / len(scores)
    trend.current = label

    if len(scores) > 2:
        recent = scores[-3:]
        trend.improving = sum(recent) / 3 > trend.overall


def update_intent_chain(
    context: ConversationContext,
    intent: str,
    config: ContextManagerConfig
) -> None:
    """Advance the intent chain and refresh its predictions."""
    chain = context.intent
    previous_intent = chain.current

    chain.previous.append(previous_intent)
    if config.max_intent_history is not None and len(chain.previous) > config.max_intent_history:
        del chain.previous[:len(chain.previous) - config.max_intent_history]
    chain.current = intent

    pattern = f"{previous_intent}->{intent}"
    chain.patterns[pattern] = chain.patterns.get(pattern, 0) + 1

    chain.predicted = predict_next_intent(context)


def extract_facts(
    context: ConversationContext,
    user_message: str,
    classifier: TextClassifier,
    config: ContextManagerConfig,
    now: Optional[float] = None
) -> int:
    """
    Upsert facts found in the user's message.

    Returns:
        Number of facts written
    """
    now = _now(now)
    matches = classifier.extract_facts(user_message)

    for match in matches:
        context.memory.facts[match.key] = FactItem(
            fact=match.value,
            confidence=config.fact_confidence,
            source="user",
            timestamp=now,
            verified=False
        )

    return len(matches)


def update_memory(
    context: ConversationContext,
    turn: ConversationTurn,
    config: ContextManagerConfig
) -> Optional[MemoryItem]:
    """
    Add a short-term memory entry for ``turn``.

    Returns:
        The item promoted to long-term memory, if the insertion caused one
    """
    memory = context.memory
    memory.short_term.append(MemoryItem(
        id=turn.id,
        content=f"User: {turn.user_message[:config.memory_content_length]}",
        timestamp=turn.timestamp,
        importance=turn.confidence,
        category=turn.intent,
        ttl=config.short_term_memory_ttl
    ))

    if len(memory.short_term) <= config.max_short_term_memory:
        return None

    removed = memory.short_term.pop(0)
    if removed.importance > config.promotion_threshold:
        memory.long_term.append(removed)
        _enforce_long_term_bound(context, config)
        return removed

    return None
