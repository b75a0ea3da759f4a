"""
Confidence scoring: the gate between "rules matched" and "actions executed".
"""
from typing import Any, Dict, List

from jobber_agent.models import Decision

BASE_CONFIDENCE = 0.5
COMPLETENESS_BONUS = 0.1
PER_MATCH_BONUS = 0.05
MAX_MATCH_BONUS = 0.2
RULE_WEIGHT = 0.7
HISTORY_WEIGHT = 0.3
# Prior used when no comparable history exists
DEFAULT_HISTORICAL_SUCCESS = 0.75
DEFAULT_THRESHOLD = 0.75


class ConfidenceScorer:
    def __init__(self, history, threshold: float = DEFAULT_THRESHOLD):
        self.history = history
        self.threshold = threshold

    def data_score(self, decisions: List[Decision], features: Dict[str, Any]) -> float:
        """Completeness and rule-match part of the score, before blending."""
        score = BASE_CONFIDENCE
        if features.get("job_title"):
            score += COMPLETENESS_BONUS
        if features.get("client_name"):
            score += COMPLETENESS_BONUS
        if features.get("created_by_user_id"):
            score += COMPLETENESS_BONUS
        if decisions:
            score += min(MAX_MATCH_BONUS, len(decisions) * PER_MATCH_BONUS)
        return score

    def historical_success(self, decisions: List[Decision], features: Dict[str, Any]) -> float:
        ratio = self.history.historical_success(decisions, features)
        return DEFAULT_HISTORICAL_SUCCESS if ratio is None else ratio

    def score(self, decisions: List[Decision], features: Dict[str, Any]) -> float:
        blended = (
            self.data_score(decisions, features) * RULE_WEIGHT
            + self.historical_success(decisions, features) * HISTORY_WEIGHT
        )
        # Rounded so float noise can't flip the threshold comparison
        return round(min(1.0, max(0.0, blended)), 6)

    def should_execute(self, confidence: float) -> bool:
        return confidence >= self.threshold
