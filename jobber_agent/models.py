"""
In-memory data model for the webhook pipeline.

Nothing here is persisted: queue entries, decisions and history live only for
the lifetime of the process.
"""
import uuid
from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union


class Topic(str, Enum):
    JOB_CREATE = "JOB_CREATE"
    JOB_UPDATE = "JOB_UPDATE"
    CLIENT_CREATE = "CLIENT_CREATE"
    CLIENT_UPDATE = "CLIENT_UPDATE"
    QUOTE_CREATE = "QUOTE_CREATE"
    QUOTE_UPDATE = "QUOTE_UPDATE"
    INVOICE_CREATE = "INVOICE_CREATE"
    INVOICE_UPDATE = "INVOICE_UPDATE"

    @classmethod
    def parse(cls, value: str) -> Union["Topic", str]:
        """Return the matching Topic, or the raw string for topics we don't know."""
        try:
            return cls(value)
        except ValueError:
            return value


def topic_name(topic) -> str:
    """Plain string form of a Topic or raw topic string."""
    return topic.value if isinstance(topic, Topic) else str(topic)


class Outcome(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass(frozen=True)
class Event:
    """A webhook notification as received. Never mutated after intake."""
    topic: Union[Topic, str]
    item_id: str
    user_id: str = "unknown"
    user_name: str = "Unknown User"
    occurred_at: Optional[datetime] = None
    app_id: Optional[str] = None
    account_id: Optional[str] = None

    @property
    def topic_name(self) -> str:
        return topic_name(self.topic)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "topic": self.topic_name,
            "item_id": self.item_id,
            "user_id": self.user_id,
            "user_name": self.user_name,
            "occurred_at": self.occurred_at.isoformat() if self.occurred_at else None,
            "app_id": self.app_id,
            "account_id": self.account_id,
        }


def _new_entry_id() -> str:
    return f"webhook-{uuid.uuid4().hex[:12]}"


@dataclass
class QueueEntry:
    """An Event waiting in the queue, with its retry bookkeeping."""
    event: Event
    id: str = field(default_factory=_new_entry_id)
    received_at: datetime = field(default_factory=datetime.utcnow)
    retries: int = 0
    next_retry_at: Optional[datetime] = None


@dataclass
class EnrichedData:
    """An Event plus the entity snapshot fetched for it."""
    event: Event
    entity: Optional[Dict[str, Any]] = None
    all_users: List[Dict[str, Any]] = field(default_factory=list)
    created_by_user: Optional[Dict[str, Any]] = None


@dataclass
class Decision:
    """One rule that matched one FeatureSet."""
    rule: str
    priority: int
    actions: Tuple[str, ...]
    reasoning: str
    # Rule settings the actions read (rates, response windows)
    parameters: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["actions"] = list(self.actions)
        return data


@dataclass
class ActionResult:
    action: str
    success: bool
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {"action": self.action, "success": self.success}
        if self.success:
            data["result"] = self.result
        else:
            data["error"] = self.error
        return data


@dataclass
class DecisionRecord:
    """A past analysis kept for the historical-success heuristic."""
    event: Event
    decisions: List[Decision]
    confidence: float
    features: Dict[str, Any]
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: datetime = field(default_factory=datetime.utcnow)
    outcome: Outcome = Outcome.PENDING
    error: Optional[str] = None

    @property
    def rule_names(self) -> List[str]:
        return [d.rule for d in self.decisions]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "event": self.event.to_dict(),
            "decisions": [d.to_dict() for d in self.decisions],
            "confidence": self.confidence,
            "outcome": self.outcome.value,
            "error": self.error,
        }


@dataclass
class AnalysisResult:
    """Everything one analysis produced, whether or not actions were run."""
    event: Event
    features: Dict[str, Any]
    decisions: List[Decision]
    confidence: float
    should_execute: bool
    analysis_time_ms: float = 0.0
    record_id: Optional[str] = None
    error: Optional[str] = None
    action_results: List[ActionResult] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": self.event.to_dict(),
            "decisions": [d.to_dict() for d in self.decisions],
            "confidence": self.confidence,
            "should_execute": self.should_execute,
            "analysis_time_ms": self.analysis_time_ms,
            "record_id": self.record_id,
            "error": self.error,
            "action_results": [r.to_dict() for r in self.action_results],
        }
