"""
Decision engine: enrichment -> features -> rules -> confidence -> dispatch.
"""
import time
from typing import Any, Dict, List, Optional

from jobber_agent.agent.features import extract_features
from jobber_agent.errors import AnalysisError, EnrichmentError
from jobber_agent.logging_config import get_logger
from jobber_agent.models import AnalysisResult, Decision, Event

logger = get_logger(__name__)


class DecisionEngine:
    """
    Analyzes events and, when confident enough, executes the matched actions.

    Enrichment failures (EnrichmentError) propagate so the queue can retry
    the event. Any other failure during analysis yields a zero-confidence
    result that is recorded but never dispatched.
    """

    def __init__(self, gateway, rule_engine, scorer, history, dispatcher,
                 autonomous_mode: bool = True, learning_enabled: bool = True):
        self.gateway = gateway
        self.rule_engine = rule_engine
        self.scorer = scorer
        self.history = history
        self.dispatcher = dispatcher
        self.autonomous_mode = autonomous_mode
        self.learning_enabled = learning_enabled
        self.paused = False

    @property
    def confidence_threshold(self) -> float:
        return self.scorer.threshold

    def analyze(self, event: Event, context: Optional[Dict[str, Any]] = None) -> AnalysisResult:
        context = context or {}
        start = time.monotonic()
        logger.info("Analyzing event", topic=event.topic_name, item_id=event.item_id, user_id=event.user_id)

        try:
            enriched = self.gateway.enrich(event)
        except EnrichmentError:
            raise
        except Exception as e:
            return self._failed_analysis(event, AnalysisError(f"Enrichment failed unexpectedly: {e}"), start)

        try:
            features = extract_features(enriched, context)
            decisions = self.rule_engine.evaluate(features)
            confidence = self.scorer.score(decisions, features)
        except Exception as e:
            return self._failed_analysis(event, AnalysisError(f"Analysis failed: {e}"), start)

        record_id = None
        if self.learning_enabled:
            record_id = self.history.record(event, decisions, confidence, features).id

        analysis_time_ms = (time.monotonic() - start) * 1000
        logger.info(
            "Analysis completed",
            item_id=event.item_id,
            rules=[d.rule for d in decisions],
            confidence=confidence,
            analysis_time_ms=round(analysis_time_ms, 2),
        )
        return AnalysisResult(
            event=event,
            features=features,
            decisions=decisions,
            confidence=confidence,
            should_execute=self.scorer.should_execute(confidence),
            analysis_time_ms=analysis_time_ms,
            record_id=record_id,
        )

    def _failed_analysis(self, event: Event, error: AnalysisError, start: float) -> AnalysisResult:
        logger.error("Decision analysis failed", item_id=event.item_id, error=str(error), exc_info=True)
        record_id = None
        if self.learning_enabled:
            record_id = self.history.record(event, [], 0.0, {}, error=str(error)).id
        return AnalysisResult(
            event=event,
            features={},
            decisions=[],
            confidence=0.0,
            should_execute=False,
            analysis_time_ms=(time.monotonic() - start) * 1000,
            record_id=record_id,
            error=str(error),
        )

    def execute_decisions(self, decisions: List[Decision], event: Event,
                          features: Dict[str, Any], context: Optional[Dict[str, Any]] = None):
        return self.dispatcher.execute_decisions(decisions, event, features, extra=context)

    def process(self, event: Event, context: Optional[Dict[str, Any]] = None) -> AnalysisResult:
        """Analyze an event and dispatch its actions if the gate allows it."""
        result = self.analyze(event, context)

        if not result.decisions:
            return result
        if not result.should_execute:
            logger.info(
                "Confidence below threshold, decisions recorded only",
                item_id=event.item_id,
                confidence=result.confidence,
                threshold=self.confidence_threshold,
            )
            return result
        if self.paused or not self.autonomous_mode:
            logger.info(
                "Dispatch suppressed",
                item_id=event.item_id,
                paused=self.paused,
                autonomous_mode=self.autonomous_mode,
            )
            return result

        result.action_results = self.execute_decisions(result.decisions, event, result.features, context)
        return result

    def pause(self):
        self.paused = True
        logger.info("Agent paused")

    def resume(self):
        self.paused = False
        logger.info("Agent resumed")

    def update_outcome(self, record_id: str, outcome) -> bool:
        return self.history.update_outcome(record_id, outcome)

    def get_performance_metrics(self) -> Dict[str, Any]:
        return self.history.performance_metrics()
