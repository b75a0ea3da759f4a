"""
Tests for feature extraction.
"""
from datetime import datetime

from jobber_agent.agent.features import day_of_week, extract_features, safe_float
from jobber_agent.models import EnrichedData, Topic

SATURDAY = datetime(2024, 1, 6, 10, 0)
MONDAY = datetime(2024, 1, 8, 10, 0)
MONDAY_EVENING = datetime(2024, 1, 8, 20, 0)


class TestTemporalFeatures:
    """Tests for time-derived features."""

    def test_day_of_week_is_sunday_based(self):
        assert day_of_week(datetime(2024, 1, 7)) == 0
        assert day_of_week(SATURDAY) == 6
        assert day_of_week(MONDAY) == 1

    def test_weekend(self, make_event):
        features = extract_features(EnrichedData(make_event()), now=SATURDAY)

        assert features["is_weekend"] is True
        assert features["day_of_week"] == 6

    def test_weekday_business_hours(self, make_event):
        features = extract_features(EnrichedData(make_event()), now=MONDAY)

        assert features["is_weekend"] is False
        assert features["is_after_hours"] is False
        assert features["time_of_day"] == 10

    def test_after_hours(self, make_event):
        features = extract_features(EnrichedData(make_event()), now=MONDAY_EVENING)

        assert features["is_after_hours"] is True


class TestEntityFeatures:
    """Tests for features derived from the fetched entity."""

    def test_job_features(self, make_event, job_entity, users):
        enriched = EnrichedData(make_event(), entity=job_entity, all_users=users, created_by_user=users[0])

        features = extract_features(enriched, now=MONDAY)

        assert features["job_title"] == "emergency leak in basement"
        assert features["job_status"] == "active"
        assert features["job_value"] == 1200.0
        assert features["has_emergency_keywords"] is True
        assert features["client_name"] == "Jane Smith"
        assert features["client_lifetime_value"] == 4800.0
        assert features["is_new_client"] is False
        assert features["created_by_user_id"] == "u-austin"
        assert features["created_by_user_role"] == "admin"
        assert features["is_assigned"] is False
        assert features["city"] == "Denver"

    def test_emergency_keyword_in_description(self, make_event):
        entity = {"title": "Service call", "description": "Possible ELECTRICAL HAZARD in panel"}

        features = extract_features(EnrichedData(make_event(), entity=entity), now=MONDAY)

        assert features["has_emergency_keywords"] is True

    def test_missing_entity_gives_neutral_values(self, make_event):
        """Rules never see missing data: every feature has a neutral default."""
        features = extract_features(EnrichedData(make_event(user_id="u-angelo")), now=MONDAY)

        assert features["job_title"] == ""
        assert features["job_value"] == 0.0
        assert features["client_name"] == ""
        assert features["is_new_client"] is False
        assert features["has_emergency_keywords"] is False
        assert features["is_assigned"] is False
        assert features["available_techs"] == []
        assert features["created_by_user_id"] == "u-angelo"
        assert features["created_by_user_name"] == "Unknown"

    def test_client_topic_uses_entity_as_client(self, make_event):
        entity = {"id": "c1", "name": "New Co", "totalRevenue": "0", "jobCount": 1}
        event = make_event(topic=Topic.CLIENT_CREATE, item_id="c1")

        features = extract_features(EnrichedData(event, entity=entity), now=MONDAY)

        assert features["client_name"] == "New Co"
        assert features["is_new_client"] is True

    def test_job_type_from_title(self, make_event):
        entity = {"title": "Kitchen remodel"}

        features = extract_features(EnrichedData(make_event(), entity=entity), now=MONDAY)

        assert features["job_type"] == "kitchen"

    def test_context_features(self, make_event):
        context = {"current_capacity": 0.9, "weekly_capacity": "0.5", "available_techs": [{"id": "t1"}]}

        features = extract_features(EnrichedData(make_event()), context, now=MONDAY)

        assert features["current_capacity"] == 0.9
        assert features["weekly_capacity"] == 0.5
        assert features["available_techs"] == [{"id": "t1"}]


class TestSafeFloat:
    def test_unparseable_values_are_zero(self):
        assert safe_float(None) == 0.0
        assert safe_float("n/a") == 0.0
        assert safe_float(True) == 0.0
        assert safe_float("12.5") == 12.5
