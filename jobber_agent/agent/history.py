"""
Bounded history of past decisions and their reported outcomes.
"""
import threading
from collections import deque
from typing import Any, Dict, List, Optional

from jobber_agent.logging_config import get_logger
from jobber_agent.models import Decision, DecisionRecord, Event, Outcome

logger = get_logger(__name__)

DEFAULT_MAX_HISTORY_SIZE = 1000


class DecisionHistory:
    """
    Ring buffer of DecisionRecords.

    When full, the oldest inserted record is evicted (FIFO, not LRU).
    Lookups are linear scans, which is fine at the default size; a much larger
    cap would want an index keyed by (job_status, is_weekend, rule).
    """

    def __init__(self, max_size: int = DEFAULT_MAX_HISTORY_SIZE):
        self.max_size = max_size
        self._records = deque(maxlen=max_size)
        self._lock = threading.Lock()

    def __len__(self):
        with self._lock:
            return len(self._records)

    def records(self) -> List[DecisionRecord]:
        """Snapshot of the history, oldest first."""
        with self._lock:
            return list(self._records)

    def record(self, event: Event, decisions: List[Decision], confidence: float,
               features: Dict[str, Any], error: Optional[str] = None) -> DecisionRecord:
        record = DecisionRecord(
            event=event,
            decisions=list(decisions),
            confidence=confidence,
            features=dict(features),
            error=error,
        )
        with self._lock:
            self._records.append(record)
        logger.debug("Decision recorded", record_id=record.id, rules=record.rule_names)
        return record

    def get(self, record_id: str) -> Optional[DecisionRecord]:
        with self._lock:
            return next((r for r in self._records if r.id == record_id), None)

    def update_outcome(self, record_id: str, outcome) -> bool:
        """
        Set the outcome of a recorded decision.

        Returns False when the record is unknown (or already evicted).
        Raises ValueError for an outcome that isn't pending/success/failure.
        """
        outcome = Outcome(outcome)
        with self._lock:
            record = next((r for r in self._records if r.id == record_id), None)
            if record is None:
                return False
            record.outcome = outcome
        logger.info("Decision outcome updated", record_id=record_id, outcome=outcome.value)
        return True

    def historical_success(self, decisions: List[Decision], features: Dict[str, Any]) -> Optional[float]:
        """
        Success ratio of comparable resolved decisions, or None if there are none.

        Comparable = same job status, same weekend flag, and at least one rule
        in common with the current decisions. Records still pending feedback
        are not counted.
        """
        current_rules = {d.rule for d in decisions}
        similar = [
            r for r in self.records()
            if r.outcome != Outcome.PENDING
            and r.features.get("job_status") == features.get("job_status")
            and r.features.get("is_weekend") == features.get("is_weekend")
            and current_rules.intersection(r.rule_names)
        ]
        if not similar:
            return None
        successes = sum(1 for r in similar if r.outcome == Outcome.SUCCESS)
        return successes / len(similar)

    def performance_metrics(self) -> Dict[str, Any]:
        records = self.records()
        total = len(records)
        successful = sum(1 for r in records if r.outcome == Outcome.SUCCESS)
        failed = sum(1 for r in records if r.outcome == Outcome.FAILURE)
        pending = sum(1 for r in records if r.outcome == Outcome.PENDING)

        return {
            "total": total,
            "successful": successful,
            "failed": failed,
            "pending": pending,
            "success_rate": successful / total if total else 0,
            "average_confidence": sum(r.confidence for r in records) / total if total else 0,
        }
