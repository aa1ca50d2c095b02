"""
Wire format for persisted conversation contexts.

Mapping-valued fields are written as ordered ``[key, value]`` pair lists and
rebuilt into dictionaries on load, so keys that are not strings survive the
JSON round trip. Enums are written as their values and timestamps as epoch
seconds. The format is an internal storage representation, not a public
contract.
"""

import json
from typing import Any, Dict, List, Mapping, Optional

from .exceptions import ContextDeserializationError
from .models import (
    CommunicationStyle, ConversationContext, ConversationMemory, ConversationTurn,
    EntityInfo, FactItem, IntentChain, MemoryItem, ResponseLength,
    SentimentTrend, UserPreferences
)


FORMAT_VERSION = 1


def _pairs(mapping: Mapping[Any, Any]) -> List[List[Any]]:
    return [[key, value] for key, value in mapping.items()]


def _from_pairs(pairs: List[List[Any]]) -> Dict[Any, Any]:
    return {_hashable(key): value for key, value in pairs}


def _hashable(key: Any) -> Any:
    # JSON turns tuple keys into lists
    if isinstance(key, list):
        return tuple(_hashable(k) for k in key)
    return key


def context_to_wire(context: ConversationContext) -> Dict[str, Any]:
    """Convert a context into a JSON-safe dictionary."""
    memory = context.memory
    preferences = context.preferences

    return {
        "version": FORMAT_VERSION,
        "session_id": context.session_id,
        "product_key": context.product_key,
        "user_id": context.user_id,
        "start_time": context.start_time,
        "last_activity": context.last_activity,
        "turns": [turn.to_dict() for turn in context.turns],
        "entities": [[key, info.to_dict()] for key, info in context.entities.items()],
        "topics": list(context.topics),
        "sentiment": context.sentiment.to_dict(),
        "intent": {
            "current": context.intent.current,
            "previous": list(context.intent.previous),
            "predicted": list(context.intent.predicted),
            "patterns": _pairs(context.intent.patterns),
        },
        "memory": {
            "short_term": [item.to_dict() for item in memory.short_term],
            "long_term": [item.to_dict() for item in memory.long_term],
            "facts": [[key, fact.to_dict()] for key, fact in memory.facts.items()],
            "preferences": _pairs(memory.preferences),
            "archived_turns": memory.archived_turns,
        },
        "preferences": {
            "communication_style": preferences.communication_style.value,
            "response_length": preferences.response_length.value,
            "preferred_channels": list(preferences.preferred_channels),
            "language": preferences.language,
            "timezone": preferences.timezone,
            "custom_settings": _pairs(preferences.custom_settings),
        },
        "metadata": context.metadata,
    }


def _expect(value: Any, expected_type: type, field_name: str) -> Any:
    if not isinstance(value, expected_type):
        raise TypeError(
            f"'{field_name}' must be {expected_type.__name__}, got {type(value).__name__}"
        )
    return value


def context_from_wire(data: Dict[str, Any]) -> ConversationContext:
    """
    Rebuild a context from the dictionary produced by ``context_to_wire``.

    Raises:
        KeyError, TypeError, ValueError: If a field is missing or has the wrong type
    """
    intent = _expect(data["intent"], dict, "intent")
    memory = _expect(data["memory"], dict, "memory")
    preferences = _expect(data["preferences"], dict, "preferences")
    metadata = data.get("metadata") or {}

    return ConversationContext(
        session_id=_expect(data["session_id"], str, "session_id"),
        product_key=_expect(data["product_key"], str, "product_key"),
        user_id=data.get("user_id"),
        start_time=float(data["start_time"]),
        last_activity=float(data["last_activity"]),
        turns=[ConversationTurn.from_dict(turn) for turn in _expect(data["turns"], list, "turns")],
        entities={
            key: EntityInfo.from_dict(info)
            for key, info in _expect(data["entities"], list, "entities")
        },
        topics=list(_expect(data["topics"], list, "topics")),
        sentiment=SentimentTrend.from_dict(_expect(data["sentiment"], dict, "sentiment")),
        intent=IntentChain(
            current=_expect(intent["current"], str, "intent.current"),
            previous=list(_expect(intent["previous"], list, "intent.previous")),
            predicted=list(_expect(intent["predicted"], list, "intent.predicted")),
            patterns={
                key: int(count)
                for key, count in _from_pairs(_expect(intent["patterns"], list, "intent.patterns")).items()
            },
        ),
        memory=ConversationMemory(
            short_term=[
                MemoryItem.from_dict(item)
                for item in _expect(memory["short_term"], list, "memory.short_term")
            ],
            long_term=[
                MemoryItem.from_dict(item)
                for item in _expect(memory["long_term"], list, "memory.long_term")
            ],
            facts={
                key: FactItem.from_dict(fact)
                for key, fact in _expect(memory["facts"], list, "memory.facts")
            },
            preferences=_from_pairs(_expect(memory["preferences"], list, "memory.preferences")),
            archived_turns=int(memory.get("archived_turns", 0)),
        ),
        preferences=UserPreferences(
            communication_style=CommunicationStyle(preferences["communication_style"]),
            response_length=ResponseLength(preferences["response_length"]),
            preferred_channels=list(
                _expect(preferences["preferred_channels"], list, "preferences.preferred_channels")
            ),
            language=preferences["language"],
            timezone=preferences["timezone"],
            custom_settings=_from_pairs(
                _expect(preferences["custom_settings"], list, "preferences.custom_settings")
            ),
        ),
        metadata=_expect(metadata, dict, "metadata"),
    )


def serialize_context(context: ConversationContext) -> str:
    """Encode a context as a JSON string for the durable cache."""
    return json.dumps(context_to_wire(context), ensure_ascii=False)


def deserialize_context(raw: str, session_id: Optional[str] = None) -> ConversationContext:
    """
    Decode a stored context.

    Raises:
        ContextDeserializationError: If the payload is not a valid stored context
    """
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise ContextDeserializationError(f"invalid JSON ({e})", session_id)

    if not isinstance(data, dict):
        raise ContextDeserializationError(f"expected an object, got {type(data).__name__}", session_id)

    try:
        return context_from_wire(data)
    except (KeyError, TypeError, ValueError) as e:
        raise ContextDeserializationError(f"{type(e).__name__}: {e}", session_id)
