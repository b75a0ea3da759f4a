"""
The agent facade: intake, queue, decision engine, stats and the externally
supplied scheduling context, wired together.
"""
import threading
import time
from typing import Any, Dict, List, Optional

from jobber_agent.agent.actions import ActionDispatcher
from jobber_agent.agent.confidence import ConfidenceScorer
from jobber_agent.agent.engine import DecisionEngine
from jobber_agent.agent.enrichment import EnrichmentGateway
from jobber_agent.agent.history import DecisionHistory
from jobber_agent.agent.rules import RuleEngine
from jobber_agent.agent.stats import Stats
from jobber_agent.config import export_safe_config
from jobber_agent.event_queue import EventQueue
from jobber_agent.logging_config import get_logger
from jobber_agent.models import AnalysisResult, Event, QueueEntry

logger = get_logger(__name__)


class PipelineContext:
    """Capacity and technician availability, as last reported by the scheduler side."""

    def __init__(self, current_capacity: float = 0.0, weekly_capacity: float = 0.0,
                 available_techs: Optional[List[Dict[str, Any]]] = None):
        self._lock = threading.Lock()
        self._values = {
            "current_capacity": current_capacity,
            "weekly_capacity": weekly_capacity,
            "available_techs": list(available_techs or []),
        }

    def update(self, **values):
        unknown = set(values) - set(self._values)
        if unknown:
            raise ValueError(f"Unknown context fields: {', '.join(sorted(unknown))}")
        with self._lock:
            self._values.update(values)

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "current_capacity": self._values["current_capacity"],
                "weekly_capacity": self._values["weekly_capacity"],
                "available_techs": list(self._values["available_techs"]),
            }


class JobberAgent:
    """Owns the queue and the shared Stats/History for one process."""

    def __init__(self, engine: DecisionEngine, stats: Stats, context: PipelineContext,
                 config=None, jobber=None):
        self.engine = engine
        self.stats = stats
        self.context = context
        self.config = config
        self.jobber = jobber
        self.queue: Optional[EventQueue] = None
        self.started_at = time.monotonic()

    def receive(self, event: Event) -> QueueEntry:
        """Intake: queue the event. Never waits for processing."""
        return self.queue.enqueue(event)

    def process_entry(self, entry: QueueEntry) -> AnalysisResult:
        """Run one queued event through the decision engine (drain thread only)."""
        event = entry.event
        context = self.context.snapshot()
        context.update({
            "user_id": event.user_id,
            "user_name": event.user_name,
            "received_at": entry.received_at,
            "retries": entry.retries,
        })
        result = self.engine.process(event, context)
        if result.error:
            self.stats.analysis_failed()
        return result

    def process(self, event: Event, context: Optional[Dict[str, Any]] = None) -> AnalysisResult:
        """
        Process an event synchronously, bypassing the queue.

        Counted in Stats like a queued event. An EnrichmentError is counted as
        failed and re-raised; there is no retry on this path.
        """
        self.stats.event_received(event)
        merged = self.context.snapshot()
        merged.update(context or {})
        try:
            result = self.engine.process(event, merged)
        except Exception:
            self.stats.entry_failed()
            raise
        if result.error:
            self.stats.analysis_failed()
        self.stats.entry_processed()
        return result

    def uptime(self) -> float:
        return time.monotonic() - self.started_at

    def get_stats(self) -> Dict[str, Any]:
        return self.stats.snapshot()

    def get_performance_metrics(self) -> Dict[str, Any]:
        return self.engine.get_performance_metrics()

    def is_healthy(self) -> bool:
        return not self.queue.closed

    def check_api_health(self) -> Dict[str, Any]:
        if self.jobber is None:
            return {"status": "unhealthy", "api": "not configured"}
        return self.jobber.health_check()

    def get_config(self) -> Dict[str, Any]:
        exported = export_safe_config(self.config) if self.config is not None else {}
        exported.update({
            "paused": self.engine.paused,
            "autonomous_mode": self.engine.autonomous_mode,
            "confidence_threshold": self.engine.confidence_threshold,
            "rules": self.engine.rule_engine.rule_names(),
            "multi_user_enabled": True,
        })
        return exported

    def pause(self):
        self.engine.pause()

    def resume(self):
        self.engine.resume()

    def shutdown(self, timeout: Optional[float] = None) -> bool:
        return self.queue.shutdown(timeout)


def build_agent(config, jobber=None, notifier=None) -> JobberAgent:
    """Assemble the full pipeline from a config class."""
    if jobber is None:
        from jobber_agent.jobber.client import get_jobber_client
        jobber = get_jobber_client(config)
    if notifier is None:
        from jobber_agent.notifications import build_notifier
        notifier = build_notifier(config)

    history = DecisionHistory(max_size=config.MAX_HISTORY_SIZE)
    engine = DecisionEngine(
        gateway=EnrichmentGateway(jobber),
        rule_engine=RuleEngine.from_config(config),
        scorer=ConfidenceScorer(history, threshold=config.CONFIDENCE_THRESHOLD),
        history=history,
        dispatcher=ActionDispatcher(jobber=jobber, notifier=notifier),
        autonomous_mode=config.AUTONOMOUS_MODE,
        learning_enabled=config.LEARNING_ENABLED,
    )
    stats = Stats()
    agent = JobberAgent(engine, stats, PipelineContext(), config=config, jobber=jobber)
    agent.queue = EventQueue(
        agent.process_entry,
        stats,
        max_size=config.QUEUE_MAX_SIZE,
        max_attempts=config.RETRY_ATTEMPTS,
        delay_seconds=config.QUEUE_DELAY_MS / 1000.0,
        honor_retry_delay=config.QUEUE_HONOR_RETRY_DELAY,
    )
    logger.info(
        "Agent built",
        rules=engine.rule_engine.rule_names(),
        confidence_threshold=config.CONFIDENCE_THRESHOLD,
        queue_max_size=config.QUEUE_MAX_SIZE,
    )
    return agent
