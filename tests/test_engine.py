"""
Tests for the decision engine.
"""
from unittest.mock import Mock

import pytest

from jobber_agent.agent.actions import ActionDispatcher
from jobber_agent.agent.confidence import ConfidenceScorer
from jobber_agent.agent.engine import DecisionEngine
from jobber_agent.agent.enrichment import EnrichmentGateway
from jobber_agent.agent.history import DecisionHistory
from jobber_agent.agent.rules import RuleEngine
from jobber_agent.errors import EnrichmentError
from jobber_agent.models import Outcome

EMERGENCY_ACTIONS = ["notify_on_call", "assign_nearest_tech", "send_emergency_alert"]


@pytest.fixture
def history():
    return DecisionHistory()


@pytest.fixture
def engine(mock_jobber, mock_notifier, history):
    return DecisionEngine(
        gateway=EnrichmentGateway(mock_jobber),
        rule_engine=RuleEngine(),
        scorer=ConfidenceScorer(history),
        history=history,
        dispatcher=ActionDispatcher(jobber=mock_jobber, notifier=mock_notifier),
    )


class TestAnalyze:
    """Tests for DecisionEngine.analyze."""

    def test_emergency_job(self, engine, make_event, history):
        """An emergency title puts emergency_response first and clears the threshold."""
        result = engine.analyze(make_event(item_id="j1", user_id="u-austin"))

        assert result.features["has_emergency_keywords"] is True
        assert result.decisions[0].rule == "emergency_response"
        assert result.decisions[0].priority == 100
        # base 0.5 + three completeness bonuses + one match, blended with the 0.75 prior
        assert result.confidence >= 0.82
        assert result.should_execute is True
        assert result.error is None
        assert history.get(result.record_id).features["job_title"] == "emergency leak in basement"

    def test_enrichment_error_propagates(self, engine, make_event, mock_jobber, history):
        mock_jobber.get_job.side_effect = EnrichmentError("down")

        with pytest.raises(EnrichmentError):
            engine.analyze(make_event())
        assert len(history) == 0

    def test_analysis_failure_yields_zero_confidence(self, engine, make_event, history):
        engine.rule_engine = Mock()
        engine.rule_engine.evaluate.side_effect = RuntimeError("bad rule")

        result = engine.analyze(make_event())

        assert result.confidence == 0.0
        assert result.decisions == []
        assert result.should_execute is False
        assert "bad rule" in result.error
        record = history.get(result.record_id)
        assert record.error == result.error
        assert record.outcome == Outcome.PENDING

    def test_learning_disabled_records_nothing(self, engine, make_event, history):
        engine.learning_enabled = False

        result = engine.analyze(make_event())

        assert result.record_id is None
        assert len(history) == 0


class TestProcess:
    """Tests for DecisionEngine.process dispatch gating."""

    def test_emergency_actions_dispatched(self, engine, make_event, mock_notifier):
        result = engine.process(make_event())

        executed = [r.action for r in result.action_results]
        assert executed[:3] == EMERGENCY_ACTIONS
        assert all(r.success for r in result.action_results)
        assert mock_notifier.send.called

    def test_repeated_emergency_jobs_both_dispatch(self, engine, make_event, history):
        """A pending record from the first job does not lower the second job's confidence."""
        first = engine.process(make_event(item_id="j1"))
        second = engine.process(make_event(item_id="j2"))

        assert len(history) == 2
        assert second.confidence == first.confidence
        assert second.should_execute is True
        assert [r.action for r in second.action_results][:3] == EMERGENCY_ACTIONS

    def test_paused_engine_does_not_dispatch(self, engine, make_event, mock_notifier):
        engine.pause()

        result = engine.process(make_event())

        assert result.decisions
        assert result.action_results == []
        mock_notifier.send.assert_not_called()

    def test_resume(self, engine, make_event):
        engine.pause()
        engine.resume()

        assert engine.process(make_event()).action_results

    def test_autonomous_mode_off_does_not_dispatch(self, engine, make_event):
        engine.autonomous_mode = False

        assert engine.process(make_event()).action_results == []

    def test_below_threshold_does_not_dispatch(self, engine, make_event):
        engine.scorer.threshold = 0.99

        result = engine.process(make_event())

        assert result.should_execute is False
        assert result.action_results == []

    def test_outcome_feedback(self, engine, make_event):
        result = engine.process(make_event())

        assert engine.update_outcome(result.record_id, "success") is True
        assert engine.get_performance_metrics()["successful"] == 1
