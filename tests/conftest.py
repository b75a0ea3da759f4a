"""
Shared fixtures: events, a mocked Jobber client and Slack notifier, and an
application wired with TestingConfig.
"""
import pytest
from unittest.mock import Mock

from jobber_agent import create_app
from jobber_agent.agent import build_agent
from jobber_agent.config import TestingConfig
from jobber_agent.models import Event, Topic


@pytest.fixture
def make_event():
    """Factory for webhook events."""
    def _make_event(topic=Topic.JOB_CREATE, item_id="j1", user_id="u-austin", user_name="Austin"):
        return Event(topic=topic, item_id=item_id, user_id=user_id, user_name=user_name)
    return _make_event


@pytest.fixture
def job_entity():
    """A Jobber job as returned by the GET_JOB query."""
    return {
        "id": "j1",
        "title": "Emergency leak in basement",
        "description": "Water coming through the foundation",
        "status": "active",
        "total": 1200.0,
        "client": {
            "id": "c1",
            "name": "Jane Smith",
            "email": "jane@example.com",
            "totalRevenue": 4800.0,
            "jobCount": 5,
        },
        "property": {"address": {"street": "1 Main St", "city": "Denver"}},
        "assignedTo": None,
    }


@pytest.fixture
def users():
    return [
        {"id": "u-austin", "name": "Austin", "role": "admin"},
        {"id": "u-angelo", "name": "Angelo", "role": "technician"},
    ]


@pytest.fixture
def mock_jobber(job_entity, users):
    """Mock JobberAPI: answers every query without touching the network."""
    jobber = Mock()
    jobber.get_job.return_value = job_entity
    jobber.get_client.return_value = job_entity["client"]
    jobber.get_quote.return_value = {"id": "q1", "title": "Quote", "client": job_entity["client"]}
    jobber.get_invoice.return_value = {"id": "i1", "client": job_entity["client"]}
    jobber.get_users.return_value = users
    jobber.assign_job.return_value = {"id": "j1"}
    jobber.health_check.return_value = {"status": "healthy", "api": "connected"}
    return jobber


@pytest.fixture
def mock_notifier():
    notifier = Mock()
    notifier.send.return_value = True
    return notifier


@pytest.fixture
def agent(mock_jobber, mock_notifier):
    """Fully wired agent using mocked external clients."""
    agent = build_agent(TestingConfig, jobber=mock_jobber, notifier=mock_notifier)
    yield agent
    agent.shutdown(timeout=5)


@pytest.fixture
def app(agent):
    """Create Flask application for testing."""
    app = create_app(TestingConfig, agent=agent)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    """Create test client."""
    return app.test_client()
