"""
Text classification hooks used by the context trackers.

The trackers never inspect message text themselves; they ask a
``TextClassifier`` for entity types, topics and facts. ``RuleBasedClassifier``
is the baseline implementation built from keyword tables and regular
expressions. A model-backed classifier can be substituted without touching the
tracker logic.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Union

from .models import EntityType


DEFAULT_TOPIC_KEYWORDS: Dict[str, List[str]] = {
    "payment": ["pay", "payment", "invoice", "bill"],
    "support": ["help", "support", "issue", "problem"],
    "product": ["product", "feature", "service"],
    "account": ["account", "profile", "settings"],
}

DEFAULT_FACT_PATTERNS: List[str] = [
    r"my name is (\w+)",
    r"i live in ([\w\s]+)",
    r"i work at ([\w\s]+)",
    r"my email is ([\w@.]+)",
]

PHONE_PATTERN = re.compile(r"^\d{3}-?\d{3}-?\d{4}$")
NUMBER_PATTERN = re.compile(r"^\d+$")
DATE_PATTERN = re.compile(r"\d{1,2}/\d{1,2}/\d{2,4}")


@dataclass(frozen=True)
class FactMatch:
    """A fact pattern hit: the matched text and the captured value."""
    key: str
    value: str


class TextClassifier(ABC):
    """Maps raw text to structured hints for the trackers."""

    @abstractmethod
    def detect_entity_type(self, value: str) -> EntityType:
        """Infer the type of an entity value."""
        pass

    @abstractmethod
    def extract_topics(self, text: str) -> List[str]:
        """Return the topics mentioned in ``text``, in table order."""
        pass

    @abstractmethod
    def extract_facts(self, text: str) -> List[FactMatch]:
        """Return every fact pattern found in ``text``."""
        pass


class RuleBasedClassifier(TextClassifier):
    """
    Keyword and regex classifier.

    Extra topics and fact patterns extend the defaults; a topic that already
    exists gets the extra keywords appended.
    """

    def __init__(
        self,
        topic_keywords: Optional[Mapping[str, Iterable[str]]] = None,
        fact_patterns: Optional[Iterable[Union[str, re.Pattern]]] = None,
        include_defaults: bool = True
    ):
        self.topic_keywords: Dict[str, List[str]] = {}
        if include_defaults:
            self.topic_keywords = {topic: list(words) for topic, words in DEFAULT_TOPIC_KEYWORDS.items()}
        for topic, words in (topic_keywords or {}).items():
            self.topic_keywords.setdefault(topic, []).extend(word.lower() for word in words)

        patterns: List[Union[str, re.Pattern]] = list(DEFAULT_FACT_PATTERNS) if include_defaults else []
        patterns.extend(fact_patterns or [])
        self.fact_patterns: List[re.Pattern] = [
            p if isinstance(p, re.Pattern) else re.compile(p, re.IGNORECASE)
            for p in patterns
        ]

    def detect_entity_type(self, value: str) -> EntityType:
        if "@" in value:
            return EntityType.EMAIL
        if PHONE_PATTERN.search(value):
            return EntityType.PHONE
        if NUMBER_PATTERN.search(value):
            return EntityType.NUMBER
        if DATE_PATTERN.search(value):
            return EntityType.DATE
        return EntityType.CUSTOM

    def extract_topics(self, text: str) -> List[str]:
        lower_text = text.lower()
        return [
            topic for topic, keywords in self.topic_keywords.items()
            if any(keyword in lower_text for keyword in keywords)
        ]

    def extract_facts(self, text: str) -> List[FactMatch]:
        matches = []
        for pattern in self.fact_patterns:
            match = pattern.search(text)
            if not match:
                continue
            value = match.group(1) if pattern.groups else match.group(0)
            matches.append(FactMatch(key=match.group(0), value=value))
        return matches
