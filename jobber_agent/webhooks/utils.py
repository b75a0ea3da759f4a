import json
from datetime import datetime

from jobber_agent.errors import InvalidPayloadError
from jobber_agent.models import Event, Topic


def parse_occurred_at(value):
    """Parse an ISO timestamp (with or without 'Z'); None if absent or unreadable."""
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    except ValueError:
        return None


def parse_webhook_data(data):
    """
    Parses Jobber webhook data into an Event.

    Jobber wraps the event as {"data": {"webHookEvent": {...}}}; a bare event
    object is accepted as well.
    """
    if not isinstance(data, dict):
        raise InvalidPayloadError("Webhook payload must be a JSON object")

    envelope = data.get("data")
    webhook_event = envelope.get("webHookEvent") if isinstance(envelope, dict) else None
    if not isinstance(webhook_event, dict):
        webhook_event = data

    topic = webhook_event.get("topic")
    item_id = webhook_event.get("itemId")
    if not topic or not item_id:
        raise InvalidPayloadError("Webhook event is missing 'topic' or 'itemId'")

    return Event(
        topic=Topic.parse(str(topic).upper()),
        item_id=str(item_id),
        user_id=str(webhook_event.get("userId") or "unknown"),
        user_name=webhook_event.get("userName") or "Unknown User",
        occurred_at=parse_occurred_at(webhook_event.get("occurredAt")),
        app_id=webhook_event.get("appId"),
        account_id=webhook_event.get("accountId"),
    )


def parse_raw_webhook(raw_body: bytes):
    """Decode the raw request body and parse it into an Event."""
    try:
        data = json.loads(raw_body)
    except (ValueError, UnicodeDecodeError) as e:
        raise InvalidPayloadError(f"Webhook body is not valid JSON: {e}")
    return parse_webhook_data(data)
