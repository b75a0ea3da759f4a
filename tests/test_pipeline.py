"""
End-to-end tests through the agent: intake, queue, engine and stats.
"""
from unittest.mock import patch

import pytest
import requests

from jobber_agent.agent import PipelineContext, build_agent
from jobber_agent.config import TestingConfig
from jobber_agent.errors import EnrichmentError
from jobber_agent.models import Topic


class TestMultiUser:
    """Events from every Jobber user are processed and counted."""

    def test_events_from_two_users(self, agent, make_event):
        agent.receive(make_event(item_id="j1", user_id="u-angelo", user_name="Angelo"))
        agent.receive(make_event(item_id="j2", user_id="u-austin", user_name="Austin"))

        assert agent.queue.wait_until_idle(5)
        stats = agent.get_stats()
        assert stats["by_user"] == {"u-angelo": 1, "u-austin": 1}
        assert stats["unique_users"] == 2
        assert stats["total"]["received"] == 2
        assert stats["total"]["processed"] == 2
        assert stats["total"]["success_rate"] == "100.00%"

    def test_by_topic_and_most_active_user(self, agent, make_event):
        agent.receive(make_event(item_id="j1", user_id="u-angelo"))
        agent.receive(make_event(topic=Topic.CLIENT_CREATE, item_id="c1", user_id="u-angelo"))
        agent.receive(make_event(item_id="j2", user_id="u-austin"))

        assert agent.queue.wait_until_idle(5)
        stats = agent.get_stats()
        assert stats["by_topic"] == {"JOB_CREATE": 2, "CLIENT_CREATE": 1}
        assert stats["most_active_user"] == "u-angelo"


class TestQueuedProcessing:
    """Tests for processing through the queue."""

    def test_emergency_job_dispatches_actions(self, agent, make_event, mock_notifier):
        agent.receive(make_event())

        assert agent.queue.wait_until_idle(5)
        assert mock_notifier.send.called
        assert agent.get_performance_metrics()["total"] == 1

    def test_enrichment_retry_then_success(self, agent, make_event, mock_jobber, job_entity):
        mock_jobber.get_job.side_effect = [requests.ConnectionError("down"), job_entity]

        entry = agent.receive(make_event())

        assert agent.queue.wait_until_idle(5)

        assert entry.retries == 1
        stats = agent.get_stats()["total"]
        assert stats["retried"] == 1
        assert stats["processed"] == 1
        assert stats["failed"] == 0

    def test_analysis_error_counted(self, agent, make_event):
        with patch.object(agent.engine.rule_engine, "evaluate", side_effect=RuntimeError("bad rule")):
            agent.receive(make_event())
            assert agent.queue.wait_until_idle(5)

        stats = agent.get_stats()["total"]
        assert stats["analysis_errors"] == 1
        assert stats["processed"] == 1

    def test_context_reaches_features(self, agent, make_event, mock_jobber):
        agent.context.update(available_techs=[{"id": "t1"}])

        result = agent.process(make_event())

        assert result.features["available_techs"] == [{"id": "t1"}]
        assert "auto_assignment" in [d.rule for d in result.decisions]
        mock_jobber.assign_job.assert_called_with("j1", "t1")


class TestSynchronousProcessing:
    """Events processed without the queue still show up in stats."""

    def test_counts_users(self, agent, make_event):
        agent.process(make_event(item_id="j1", user_id="u-angelo"))
        agent.process(make_event(item_id="j2", user_id="u-austin"))

        stats = agent.get_stats()
        assert stats["unique_users"] == 2
        assert stats["total"]["received"] == 2
        assert stats["total"]["processed"] == 2

    def test_enrichment_error_counted_as_failed(self, agent, make_event, mock_jobber):
        mock_jobber.get_job.side_effect = requests.ConnectionError("down")

        with pytest.raises(EnrichmentError):
            agent.process(make_event())

        stats = agent.get_stats()["total"]
        assert stats["received"] == 1
        assert stats["failed"] == 1
        assert stats["processed"] == 0


class TestPipelineContext:
    def test_update_rejects_unknown_fields(self):
        context = PipelineContext()

        with pytest.raises(ValueError, match="Unknown context fields"):
            context.update(capacity=0.5)

    def test_snapshot_is_a_copy(self):
        context = PipelineContext(available_techs=[{"id": "t1"}])
        snapshot = context.snapshot()
        snapshot["available_techs"].append({"id": "t2"})

        assert context.snapshot()["available_techs"] == [{"id": "t1"}]


class TestAgentConfig:
    def test_config_excludes_secrets(self, agent):
        config = agent.get_config()

        assert "JOBBER_CLIENT_SECRET" not in config
        assert "JOBBER_WEBHOOK_SECRET" not in config
        assert config["multi_user_enabled"] is True
        assert config["paused"] is False
        assert "emergency_response" in config["rules"]

    def test_build_agent_uses_config(self, mock_jobber, mock_notifier):
        class SmallQueueConfig(TestingConfig):
            QUEUE_MAX_SIZE = 5
            CONFIDENCE_THRESHOLD = 0.9

        agent = build_agent(SmallQueueConfig, jobber=mock_jobber, notifier=mock_notifier)
        try:
            assert agent.queue.max_size == 5
            assert agent.engine.confidence_threshold == 0.9
        finally:
            agent.shutdown(timeout=1)

    def test_api_health(self, agent):
        assert agent.check_api_health()["status"] == "healthy"
        assert agent.is_healthy() is True
