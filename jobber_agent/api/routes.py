"""
Status and control routes for the running agent.
"""
from datetime import datetime

from flask import jsonify, request, current_app

from jobber_agent.api import api_bp
from jobber_agent.logging_config import get_logger

logger = get_logger(__name__)

QUEUE_DEGRADED_LENGTH = 100
# Check values that count as healthy when computing the overall status
OK_STATUSES = ("healthy", "idle", "busy", "enabled")


def get_agent():
    return current_app.extensions["jobber_agent"]


@api_bp.route("/health", methods=["GET"])
def health():
    """
    Component health checks. Returns 200 when every check is ok, 503 otherwise.
    """
    agent = get_agent()
    checks = {
        "server": "healthy",
        "queue": "healthy" if len(agent.queue) < QUEUE_DEGRADED_LENGTH else "degraded",
        "processing": "busy" if agent.queue.processing else "idle",
        "agent": "healthy" if agent.is_healthy() else "unhealthy",
        "multiUser": "enabled",
    }
    try:
        checks["jobberAPI"] = agent.check_api_health().get("status", "unhealthy")
    except Exception as e:
        logger.warning("Jobber API health check failed", error=str(e))
        checks["jobberAPI"] = "unhealthy"

    overall = "healthy" if all(value in OK_STATUSES for value in checks.values()) else "degraded"
    return jsonify({
        "status": overall,
        "timestamp": datetime.utcnow().isoformat(),
        "uptime": agent.uptime(),
        "checks": checks,
    }), 200 if overall == "healthy" else 503


@api_bp.route("/status", methods=["GET"])
def status():
    agent = get_agent()
    return jsonify({
        "uptime": agent.uptime(),
        "stats": agent.get_stats(),
        "queueLength": len(agent.queue),
        "processing": agent.queue.processing,
        "paused": agent.engine.paused,
        "multiUserEnabled": True,
        "version": current_app.config.get("AGENT_VERSION"),
    }), 200


@api_bp.route("/metrics", methods=["GET"])
def metrics():
    agent = get_agent()
    return jsonify({
        "webhooks": agent.get_stats()["total"],
        "performance": agent.get_performance_metrics(),
        "queue": agent.queue.snapshot(),
    }), 200


@api_bp.route("/agent/pause", methods=["POST"])
def pause_agent():
    get_agent().pause()
    return jsonify({"status": "paused"}), 200


@api_bp.route("/agent/resume", methods=["POST"])
def resume_agent():
    get_agent().resume()
    return jsonify({"status": "resumed"}), 200


@api_bp.route("/agent/config", methods=["GET"])
def agent_config():
    """Current agent settings with secrets removed."""
    try:
        return jsonify(get_agent().get_config()), 200
    except Exception as e:
        logger.error("Error in /agent/config", error=str(e), exc_info=True)
        return jsonify({"error": str(e)}), 500


@api_bp.route("/agent/context", methods=["GET", "PUT"])
def agent_context():
    """
    Read or update the scheduling context (capacity and available techs)
    used during feature extraction.

    PUT body: any of current_capacity, weekly_capacity, available_techs.
    """
    agent = get_agent()
    if request.method == "GET":
        return jsonify(agent.context.snapshot()), 200

    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        return jsonify({"error": "Request body must be a JSON object"}), 400
    try:
        agent.context.update(**body)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    logger.info("Scheduling context updated", fields=sorted(body))
    return jsonify(agent.context.snapshot()), 200


@api_bp.route("/decisions/<record_id>/outcome", methods=["POST"])
def decision_outcome(record_id):
    """
    Report the outcome of a recorded decision.

    Body: {"outcome": "success" | "failure" | "pending"}
    """
    body = request.get_json(silent=True) or {}
    outcome = body.get("outcome")
    if not outcome:
        return jsonify({"error": "Missing 'outcome'"}), 400

    try:
        updated = get_agent().engine.update_outcome(record_id, outcome)
    except ValueError:
        return jsonify({"error": f"Invalid outcome: {outcome}"}), 400

    if not updated:
        return jsonify({"error": "Decision not found"}), 404
    return jsonify({"id": record_id, "outcome": outcome}), 200
