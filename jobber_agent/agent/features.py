"""
Feature extraction: flatten EnrichedData + pipeline context into the attribute
set rules are evaluated against.

Entity-derived features always fall back to neutral values so rules never see
missing data.
"""
from datetime import datetime
from typing import Any, Dict, Optional

from jobber_agent.agent.enrichment import topic_prefix
from jobber_agent.models import EnrichedData

EMERGENCY_KEYWORDS = ("emergency", "urgent", "leak", "flood", "fire", "electrical hazard")
INSPECTION_JOB_TYPES = ("bathroom", "kitchen")

# Days are numbered 0 = Sunday ... 6 = Saturday
WEEKEND_DAYS = (0, 6)
BUSINESS_HOURS_START = 8
BUSINESS_HOURS_END = 17


def day_of_week(moment: datetime) -> int:
    """Sunday-based weekday number."""
    return moment.isoweekday() % 7


def safe_float(value) -> float:
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        return float(value)
    except (ValueError, TypeError):
        return 0.0


def _lower_text(value) -> str:
    return str(value).lower() if value else ""


def _as_dict(value) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def contains_any(texts, keywords) -> bool:
    return any(keyword in text for text in texts for keyword in keywords)


def extract_features(enriched: EnrichedData, context: Optional[Dict[str, Any]] = None,
                     now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Build the FeatureSet for one processing attempt.

    Args:
        enriched: Event plus fetched entity (entity may be None)
        context: current_capacity, weekly_capacity, available_techs, user_id
        now: evaluation time; defaults to the current local time

    Returns:
        Flat dict of feature name -> value
    """
    context = context or {}
    now = now or datetime.now()
    event = enriched.event
    entity = _as_dict(enriched.entity)

    if topic_prefix(event) == "CLIENT":
        client = entity
    else:
        client = _as_dict(entity.get("client"))

    creator = _as_dict(enriched.created_by_user)
    assigned_to = _as_dict(entity.get("assignedTo"))
    address = _as_dict(_as_dict(entity.get("property")).get("address"))

    job_title = _lower_text(entity.get("title"))
    job_description = _lower_text(entity.get("description"))
    hour = now.hour
    weekday = day_of_week(now)

    job_count = client.get("jobCount")
    job_type = next(
        (t for t in INSPECTION_JOB_TYPES if contains_any((job_title, job_description), (t,))),
        "",
    )

    features = {
        # Temporal features
        "time_of_day": hour,
        "day_of_week": weekday,
        "is_weekend": weekday in WEEKEND_DAYS,
        "is_after_hours": hour < BUSINESS_HOURS_START or hour >= BUSINESS_HOURS_END,

        # Job features
        "job_title": job_title,
        "job_description": job_description,
        "job_status": entity.get("status") or "",
        "job_value": safe_float(entity.get("total")),
        "job_type": job_type,
        "has_emergency_keywords": contains_any((job_title, job_description), EMERGENCY_KEYWORDS),

        # Client features
        "client_name": client.get("name") or "",
        "client_email": client.get("email") or "",
        "client_lifetime_value": safe_float(client.get("totalRevenue")),
        "is_new_client": job_count is not None and safe_float(job_count) <= 1,

        # User features
        "created_by_user_id": creator.get("id") or context.get("user_id") or event.user_id or "",
        "created_by_user_name": creator.get("name") or "Unknown",
        "created_by_user_role": creator.get("role") or "Unknown",

        # Assignment features
        "is_assigned": bool(assigned_to.get("id")),
        "assigned_to_id": assigned_to.get("id"),
        "assigned_to_name": assigned_to.get("name") or "",

        # Location features
        "property_address": address,
        "city": address.get("city") or "",

        # System features
        "current_capacity": safe_float(context.get("current_capacity")),
        "weekly_capacity": safe_float(context.get("weekly_capacity")),
        "available_techs": list(context.get("available_techs") or []),
    }
    return features
