"""
Conversation Context Data Model

Dataclasses describing the full mutable state tracked for one chat session:
dialogue turns, entities, sentiment trend, intent chain, tiered memory and
user preferences. Timestamps are POSIX epoch seconds.
"""

import time
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional


class EntityType(Enum):
    """Types of tracked entities."""
    PERSON = "person"
    LOCATION = "location"
    DATE = "date"
    NUMBER = "number"
    EMAIL = "email"
    PHONE = "phone"
    PRODUCT = "product"
    CUSTOM = "custom"


class SentimentLabel(Enum):
    """Sentiment labels attached to turns."""
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"


class CommunicationStyle(Enum):
    FORMAL = "formal"
    CASUAL = "casual"
    TECHNICAL = "technical"


class ResponseLength(Enum):
    BRIEF = "brief"
    DETAILED = "detailed"
    MODERATE = "moderate"


DEFAULT_INTENT = "general"


def _expect_list(value: Any, field_name: str) -> List[Any]:
    if not isinstance(value, list):
        raise TypeError(f"'{field_name}' must be a list, got {type(value).__name__}")
    return value


@dataclass(frozen=True)
class ConversationTurn:
    """One user-message/bot-response exchange. Immutable once recorded."""
    id: str
    timestamp: float
    user_message: str
    bot_response: str
    intent: str
    entities: List[str] = field(default_factory=list)
    sentiment: str = SentimentLabel.NEUTRAL.value
    skills_used: List[str] = field(default_factory=list)
    confidence: float = 0.0
    response_time: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ConversationTurn':
        data = dict(data)
        data['timestamp'] = float(data['timestamp'])
        data['confidence'] = float(data.get('confidence', 0.0))
        data['response_time'] = float(data.get('response_time', 0.0))
        data['entities'] = list(_expect_list(data.get('entities', []), 'entities'))
        data['skills_used'] = list(_expect_list(data.get('skills_used', []), 'skills_used'))
        return cls(**data)


@dataclass
class TurnInput:
    """Caller-supplied fields of a turn; id and timestamp are generated."""
    user_message: str
    bot_response: str
    intent: str
    entities: List[str] = field(default_factory=list)
    sentiment: str = SentimentLabel.NEUTRAL.value
    skills_used: List[str] = field(default_factory=list)
    confidence: float = 0.0
    response_time: float = 0.0
    # Entity value -> type name asserted by an upstream extractor
    entity_types: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> 'TurnInput':
        return cls(**dict(data))


@dataclass
class EntityInfo:
    """A recognized entity and its mention history."""
    value: str
    type: EntityType
    confidence: float
    first_mentioned: float
    last_mentioned: float
    frequency: int = 1
    context: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['type'] = self.type.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'EntityInfo':
        data = dict(data)
        data['type'] = EntityType(data['type'])
        data['confidence'] = float(data['confidence'])
        data['first_mentioned'] = float(data['first_mentioned'])
        data['last_mentioned'] = float(data['last_mentioned'])
        data['frequency'] = int(data.get('frequency', 1))
        data['context'] = list(_expect_list(data.get('context', []), 'context'))
        return cls(**data)


@dataclass
class SentimentReading:
    sentiment: SentimentLabel
    timestamp: float

    def to_dict(self) -> Dict[str, Any]:
        return {'sentiment': self.sentiment.value, 'timestamp': self.timestamp}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SentimentReading':
        return cls(sentiment=SentimentLabel(data['sentiment']), timestamp=float(data['timestamp']))


@dataclass
class SentimentTrend:
    """Bounded sentiment history with its running mean (-1 to 1)."""
    current: SentimentLabel = SentimentLabel.NEUTRAL
    history: List[SentimentReading] = field(default_factory=list)
    overall: float = 0.0
    improving: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            'current': self.current.value,
            'history': [reading.to_dict() for reading in self.history],
            'overall': self.overall,
            'improving': self.improving
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SentimentTrend':
        return cls(
            current=SentimentLabel(data['current']),
            history=[SentimentReading.from_dict(h) for h in _expect_list(data.get('history', []), 'history')],
            overall=float(data.get('overall', 0.0)),
            improving=data.get('improving', False)
        )


@dataclass
class IntentChain:
    """Current intent, its history and the transition-frequency table."""
    current: str = DEFAULT_INTENT
    previous: List[str] = field(default_factory=list)
    predicted: List[str] = field(default_factory=list)
    patterns: Dict[str, int] = field(default_factory=dict)


@dataclass
class MemoryItem:
    id: str
    content: str
    timestamp: float
    importance: float
    category: str
    ttl: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MemoryItem':
        data = dict(data)
        data['timestamp'] = float(data['timestamp'])
        data['importance'] = float(data['importance'])
        return cls(**data)


@dataclass
class FactItem:
    """A fact extracted from the conversation. Never auto-verified."""
    fact: str
    confidence: float
    source: str
    timestamp: float
    verified: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'FactItem':
        data = dict(data)
        data['timestamp'] = float(data['timestamp'])
        data['confidence'] = float(data['confidence'])
        return cls(**data)


@dataclass
class ConversationMemory:
    """Two-tier memory: short-term ring buffer and long-term archive."""
    short_term: List[MemoryItem] = field(default_factory=list)
    long_term: List[MemoryItem] = field(default_factory=list)
    facts: Dict[str, FactItem] = field(default_factory=dict)
    preferences: Dict[Any, Any] = field(default_factory=dict)
    # Turns ever moved out of the turn window, including archive entries
    # later evicted from long_term
    archived_turns: int = 0


@dataclass
class UserPreferences:
    communication_style: CommunicationStyle = CommunicationStyle.CASUAL
    response_length: ResponseLength = ResponseLength.MODERATE
    preferred_channels: List[str] = field(default_factory=lambda: ["web"])
    language: str = "en"
    timezone: str = "UTC"
    custom_settings: Dict[Any, Any] = field(default_factory=dict)


@dataclass
class ConversationContext:
    """The full mutable state tracked for one chat session."""
    session_id: str
    product_key: str
    user_id: Optional[str] = None
    start_time: float = field(default_factory=time.time)
    last_activity: float = field(default_factory=time.time)
    turns: List[ConversationTurn] = field(default_factory=list)
    entities: Dict[str, EntityInfo] = field(default_factory=dict)
    topics: List[str] = field(default_factory=list)
    sentiment: SentimentTrend = field(default_factory=SentimentTrend)
    intent: IntentChain = field(default_factory=IntentChain)
    memory: ConversationMemory = field(default_factory=ConversationMemory)
    preferences: UserPreferences = field(default_factory=UserPreferences)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def touch(self, now: Optional[float] = None) -> None:
        """Mark the context as active."""
        self.last_activity = time.time() if now is None else now

    def idle_seconds(self, now: Optional[float] = None) -> float:
        """Seconds since the context was last read or written."""
        return (time.time() if now is None else now) - self.last_activity

    def is_expired(self, ttl: float, now: Optional[float] = None) -> bool:
        return self.idle_seconds(now) > ttl

    @property
    def total_turns(self) -> int:
        """Turns ever recorded, including those archived out of the window."""
        return len(self.turns) + self.memory.archived_turns
