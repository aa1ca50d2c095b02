"""
Read-only views derived from a conversation context.

None of these functions mutate the context they are given.
"""

import time
from collections import Counter
from typing import Any, Dict, List, Optional

from .classifiers import RuleBasedClassifier, TextClassifier
from .models import ConversationContext, MemoryItem, DEFAULT_INTENT
from .utils import format_elapsed


# Canonical next steps for well-known intents
INTENT_FLOWS: Dict[str, List[str]] = {
    "purchase": ["payment", "shipping", "confirmation"],
    "support": ["troubleshooting", "escalation", "resolution"],
    "information": ["details", "comparison", "decision"],
    "account": ["update", "security", "preferences"],
}

ENDING_PHRASES = [
    "bye", "goodbye", "thanks", "thank you", "done",
    "finished", "that's all", "nothing else",
]

MAX_PREDICTIONS = 3

_default_classifier = RuleBasedClassifier()


def predict_next_intent(context: ConversationContext) -> List[str]:
    """
    Predict the user's next intents.

    Observed transitions out of the current intent come first (most frequent
    first), followed by the canonical flow for that intent.
    """
    current = context.intent.current
    prefix = f"{current}->"

    transitions = [
        (pattern[len(prefix):], count)
        for pattern, count in context.intent.patterns.items()
        if pattern.startswith(prefix)
    ]
    transitions.sort(key=lambda item: item[1], reverse=True)

    predictions = [target for target, _ in transitions[:MAX_PREDICTIONS]]
    predictions.extend(INTENT_FLOWS.get(current, []))

    return list(dict.fromkeys(predictions))[:MAX_PREDICTIONS]


def most_frequent_intent(context: ConversationContext) -> str:
    counts = Counter(turn.intent for turn in context.turns)
    if not counts:
        return DEFAULT_INTENT
    return counts.most_common(1)[0][0]


def get_summary(context: ConversationContext, now: Optional[float] = None) -> str:
    """Human-readable one-paragraph summary of the conversation so far."""
    now = time.time() if now is None else now
    topics = ", ".join(dict.fromkeys(context.topics))

    return (
        f"Conversation started {format_elapsed(now - context.start_time)}. "
        f"Main topics: {topics or 'general discussion'}. "
        f"User intent: {most_frequent_intent(context)}. "
        f"Sentiment: {context.sentiment.current.value}. "
        f"{len(context.turns)} exchanges so far."
    )


def get_important_memory(
    context: ConversationContext,
    promotion_threshold: float = 0.7,
    limit: int = 5
) -> List[MemoryItem]:
    """Highest-importance items from short-term and important long-term memory."""
    candidates = list(context.memory.short_term)
    candidates.extend(m for m in context.memory.long_term if m.importance > promotion_threshold)
    candidates.sort(key=lambda m: m.importance, reverse=True)
    return candidates[:limit]


def get_relevant_context(
    context: ConversationContext,
    current_message: str,
    classifier: Optional[TextClassifier] = None,
    promotion_threshold: float = 0.7
) -> Dict[str, Any]:
    """
    Bundle the parts of a context needed to generate the next response.

    Args:
        context: The session context
        current_message: The message being answered
        classifier: Classifier used to tag the current message's topics
        promotion_threshold: Minimum importance for long-term memory to be included

    Returns:
        Dictionary with recent turns, entities, facts, preferences, sentiment,
        intent history, topics and important memory
    """
    classifier = classifier or _default_classifier

    return {
        "recent_turns": context.turns[-3:],
        "entities": [
            {"name": name, **info.to_dict()}
            for name, info in context.entities.items()
        ],
        "facts": [
            {"key": key, **fact.to_dict()}
            for key, fact in context.memory.facts.items()
        ],
        "preferences": context.preferences,
        "sentiment": context.sentiment.current.value,
        "intent_history": context.intent.previous[-3:],
        "topics": context.topics[-5:],
        "important_memory": get_important_memory(context, promotion_threshold),
        "current_topics": classifier.extract_topics(current_message),
    }


def is_conversation_ending(context: ConversationContext) -> bool:
    """True if the last user message contains a closing phrase."""
    if not context.turns:
        return False

    user_message = context.turns[-1].user_message.lower()
    return any(phrase in user_message for phrase in ENDING_PHRASES)


def get_time_of_day(now: Optional[float] = None) -> str:
    hour = time.localtime(now).tm_hour
    if hour < 12:
        return "morning"
    if hour < 17:
        return "afternoon"
    return "evening"


def remembered_name(context: ConversationContext) -> Optional[str]:
    """The user's name from the ``userName`` entity or a "my name is" fact."""
    entity = context.entities.get("userName")
    if entity is not None:
        return entity.value

    for key, fact in context.memory.facts.items():
        if key.lower().startswith("my name is"):
            return fact.fact
    return None


def get_personalized_greeting(context: ConversationContext, now: Optional[float] = None) -> str:
    """Greeting that welcomes back returning users or greets new ones by time of day."""
    name = remembered_name(context)
    name_part = f" {name}" if name else ""

    if context.turns:
        last_topic = context.topics[-1] if context.topics else "your query"
        return (
            f"Welcome back{name_part}! "
            f"I see we were discussing {last_topic}. "
            "How can I continue helping you?"
        )

    return (
        f"Good {get_time_of_day(now)}{name_part}! "
        "I'm here to help you with anything you need. What can I assist you with today?"
    )
