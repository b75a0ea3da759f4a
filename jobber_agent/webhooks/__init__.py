from datetime import datetime

from flask import Blueprint, request, current_app, jsonify

from jobber_agent.errors import AuthenticationError, InvalidPayloadError, QueueClosedError, QueueFullError
from jobber_agent.logging_config import get_logger
from jobber_agent.models import Event, Topic
from jobber_agent.webhooks.signature import SIGNATURE_HEADER, validate_signature
from jobber_agent.webhooks.utils import parse_raw_webhook

logger = get_logger(__name__)

# Blueprint for Jobber webhook routes
webhooks_bp = Blueprint("webhooks", __name__)


def get_agent():
    return current_app.extensions["jobber_agent"]


def _queue_event(event: Event):
    """Hand the event to the queue and turn intake errors into responses."""
    try:
        entry = get_agent().receive(event)
    except QueueFullError as e:
        logger.warning("Webhook queue is full; rejecting event", topic=event.topic_name, error=str(e))
        return None, (jsonify({"status": "overloaded"}), 429)
    except QueueClosedError:
        logger.warning("Webhook received during shutdown; rejecting", topic=event.topic_name)
        return None, (jsonify({"status": "shutting_down"}), 503)
    return entry, None


@webhooks_bp.route("/webhooks/jobber", methods=["HEAD", "POST"])
def jobber_webhook():
    """
    Receives webhooks for ALL Jobber users of the connected account.

    The signature is checked against the raw body, the event is queued, and
    200 is returned before any processing happens.
    """
    if request.method == "HEAD":
        return "", 200

    raw_body = request.get_data(cache=True)
    try:
        validate_signature(
            raw_body,
            request.headers.get(SIGNATURE_HEADER),
            current_app.config.get("JOBBER_WEBHOOK_SECRET"),
        )
        event = parse_raw_webhook(raw_body)
    except AuthenticationError as e:
        logger.warning("Rejected webhook with invalid signature", error=str(e), remote_addr=request.remote_addr)
        return jsonify({"error": "Invalid signature"}), 401
    except InvalidPayloadError as e:
        logger.warning("Rejected malformed webhook", error=str(e))
        return jsonify({"error": str(e)}), 400

    logger.info(
        "Webhook received",
        topic=event.topic_name,
        item_id=event.item_id,
        user_id=event.user_id,
        user_name=event.user_name,
    )
    entry, error_response = _queue_event(event)
    if error_response:
        return error_response
    return jsonify({"received": True, "id": entry.id}), 200


@webhooks_bp.route("/test/webhook", methods=["POST"])
def test_webhook():
    """Queue a synthetic JOB_CREATE event for the given user (manual testing)."""
    if not current_app.config.get("TEST_ENDPOINTS_ENABLED"):
        return jsonify({"error": "Endpoint not found"}), 404

    body = request.get_json(silent=True) or {}
    now = datetime.utcnow()
    event = Event(
        topic=Topic.JOB_CREATE,
        item_id=body.get("itemId") or f"test-job-{int(now.timestamp() * 1000)}",
        user_id=body.get("userId") or "test-user",
        user_name=body.get("userName") or "Test User",
        occurred_at=now,
        app_id="test-app",
        account_id="test-account",
    )
    entry, error_response = _queue_event(event)
    if error_response:
        return error_response
    return jsonify({"message": "Test webhook queued", "id": entry.id, "event": event.to_dict()}), 200
