import atexit
import os

from flask import Flask, jsonify
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

# scheduler imports
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.executors.pool import ThreadPoolExecutor

from jobber_agent.logging_config import configure_logging, get_logger

logger = get_logger(__name__)


def init_scheduler(app, agent):
    """Initialize the scheduler (heartbeat logging queue and stats snapshots)."""

    # Only run the scheduler on one worker: the reloader child in dev,
    # or the instance flagged as scheduler in deployment
    if app.debug and os.environ.get("WERKZEUG_RUN_MAIN") != "true" and not os.environ.get("IS_SCHEDULER"):
        logger.info("Skipping scheduler startup on this worker")
        return None

    def heartbeat():
        stats = agent.get_stats()
        logger.info(
            "Scheduler heartbeat: alive",
            queue=agent.queue.snapshot(),
            webhooks=stats["total"],
            unique_users=stats["unique_users"],
            paused=agent.engine.paused,
        )

    executors = {"default": ThreadPoolExecutor(1)}
    scheduler = BackgroundScheduler(executors=executors)
    scheduler.add_job(
        func=heartbeat,
        trigger="interval",
        minutes=app.config.get("HEARTBEAT_MINUTES", 30),
        id="heartbeat",
        replace_existing=True,
    )

    scheduler.start()
    atexit.register(lambda: scheduler.shutdown(wait=False))

    logger.info("Scheduler started (heartbeat only)")
    return scheduler


def create_app(config_class=None, agent=None):
    """
    Application factory.

    Args:
        config_class: Config class to load; defaults to get_config() from the environment.
        agent: Pre-built JobberAgent (tests inject one with mocked Jobber/Slack clients).
    """
    from jobber_agent.config import get_config
    from jobber_agent.agent import build_agent
    from jobber_agent.api import api_bp
    from jobber_agent.webhooks import webhooks_bp

    config_class = config_class or get_config()

    app = Flask(__name__)
    app.config.from_object(config_class)

    configure_logging(log_level=config_class.LOG_LEVEL, log_file=config_class.LOG_FILE)
    logger.info(f"Starting {config_class.AGENT_NAME} in {config_class.ENV} environment")

    # Get allowed origins from environment variable
    allowed_origins = app.config.get("CORS_ORIGINS", "*")
    if allowed_origins != "*":
        # Parse comma-separated list if provided
        allowed_origins = [origin.strip() for origin in allowed_origins.split(",")]

    CORS(app,
         resources={r"/*": {"origins": allowed_origins}},
         allow_headers=["Content-Type", "Authorization"],
         methods=["GET", "POST", "PUT", "OPTIONS"])

    if agent is None:
        agent = build_agent(config_class)
    app.extensions["jobber_agent"] = agent

    app.register_blueprint(webhooks_bp)
    app.register_blueprint(api_bp)

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({"error": "Endpoint not found"}), 404

    @app.errorhandler(Exception)
    def handle_exception(e):
        if isinstance(e, HTTPException):
            return e
        logger.error("Unhandled error", error=str(e), exc_info=True)
        return jsonify({"error": "Internal server error"}), 500

    if app.config.get("SCHEDULER_ENABLED"):
        init_scheduler(app, agent)

    # Stop intake and give queued webhooks a chance to finish
    atexit.register(agent.shutdown, app.config.get("SHUTDOWN_TIMEOUT"))

    logger.info(
        "Webhook endpoint ready",
        path=app.config.get("JOBBER_WEBHOOK_PATH"),
        autonomous_mode=app.config.get("AUTONOMOUS_MODE"),
    )
    return app
