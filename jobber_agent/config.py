import os
from dotenv import load_dotenv

load_dotenv()


def _env_flag(name, default):
    """Read a boolean flag from the environment ('true'/'false', case-insensitive)."""
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Base configuration class with common settings."""
    # Jobber configuration
    JOBBER_CLIENT_ID = os.environ.get("JOBBER_CLIENT_ID")
    JOBBER_CLIENT_SECRET = os.environ.get("JOBBER_CLIENT_SECRET")
    JOBBER_API_URL = os.environ.get("JOBBER_API_URL", "https://api.getjobber.com/api")
    JOBBER_GRAPHQL_URL = os.environ.get("JOBBER_GRAPHQL_URL", "https://api.getjobber.com/api/graphql")
    JOBBER_API_VERSION = os.environ.get("JOBBER_API_VERSION", "2023-11-15")
    JOBBER_WEBHOOK_PATH = "/webhooks/jobber"
    # Webhooks are signed with the app's client secret
    JOBBER_WEBHOOK_SECRET = os.environ.get("JOBBER_WEBHOOK_SECRET") or JOBBER_CLIENT_SECRET
    API_REQUESTS_PER_MINUTE = int(os.environ.get("API_REQUESTS_PER_MINUTE", "120"))
    REQUEST_TIMEOUT = int(os.environ.get("REQUEST_TIMEOUT", "30"))

    # Slack configuration
    SLACK_WEBHOOK_URL = os.environ.get("SLACK_WEBHOOK_URL")
    SLACK_CHANNEL = os.environ.get("SLACK_CHANNEL", "#jobber-agent")
    SLACK_USERNAME = os.environ.get("SLACK_USERNAME", "Jobber Agent")
    SLACK_ICON = os.environ.get("SLACK_ICON", ":robot_face:")

    # Agent configuration
    AGENT_NAME = os.environ.get("AGENT_NAME", "Jobber Autonomous Agent")
    AGENT_VERSION = "2.0.0"
    AUTONOMOUS_MODE = _env_flag("AUTONOMOUS_MODE", True)
    LEARNING_ENABLED = _env_flag("LEARNING_ENABLED", True)
    CONFIDENCE_THRESHOLD = float(os.environ.get("CONFIDENCE_THRESHOLD", "0.75"))
    MAX_HISTORY_SIZE = int(os.environ.get("MAX_HISTORY_SIZE", "1000"))

    # Queue configuration
    QUEUE_MAX_SIZE = int(os.environ.get("QUEUE_MAX_SIZE", "1000"))
    QUEUE_DELAY_MS = int(os.environ.get("QUEUE_DELAY_MS", "100"))
    RETRY_ATTEMPTS = int(os.environ.get("RETRY_ATTEMPTS", "3"))
    QUEUE_HONOR_RETRY_DELAY = _env_flag("QUEUE_HONOR_RETRY_DELAY", False)
    SHUTDOWN_TIMEOUT = int(os.environ.get("SHUTDOWN_TIMEOUT", "30"))

    # Feature flags (rules)
    FEATURE_EMERGENCY = _env_flag("FEATURE_EMERGENCY", True)
    FEATURE_VIP = _env_flag("FEATURE_VIP", True)
    FEATURE_WEEKEND = _env_flag("FEATURE_WEEKEND", True)
    FEATURE_ONBOARDING = _env_flag("FEATURE_ONBOARDING", True)
    FEATURE_CAPACITY = _env_flag("FEATURE_CAPACITY", True)
    FEATURE_AUTO_ASSIGNMENT = _env_flag("FEATURE_AUTO_ASSIGNMENT", True)
    FEATURE_QUALITY = _env_flag("FEATURE_QUALITY", True)

    # Logging
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
    LOG_FILE = os.environ.get("LOG_FILE")

    # Scheduler heartbeat (minutes)
    HEARTBEAT_MINUTES = int(os.environ.get("HEARTBEAT_MINUTES", "30"))
    SCHEDULER_ENABLED = _env_flag("SCHEDULER_ENABLED", True)

    # CORS configuration
    CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*")

    # Synthetic webhook endpoint for manual testing
    TEST_ENDPOINTS_ENABLED = _env_flag("TEST_ENDPOINTS_ENABLED", True)


class LocalConfig(Config):
    """Configuration for local development."""
    ENV = "local"
    DEBUG = True


class SandboxConfig(Config):
    """Configuration for sandbox/staging environment."""
    ENV = "sandbox"
    DEBUG = False


class ProductionConfig(Config):
    """Configuration for production environment."""
    ENV = "production"
    DEBUG = False
    TEST_ENDPOINTS_ENABLED = _env_flag("TEST_ENDPOINTS_ENABLED", False)


class TestingConfig(Config):
    """Configuration for the test suite: no scheduler, no queue delay."""
    ENV = "testing"
    DEBUG = False
    TESTING = True
    JOBBER_CLIENT_ID = "test-client-id"
    JOBBER_CLIENT_SECRET = "test-client-secret"
    JOBBER_WEBHOOK_SECRET = "test-client-secret"
    SLACK_WEBHOOK_URL = None
    QUEUE_DELAY_MS = 0
    SCHEDULER_ENABLED = False
    LOG_FILE = None


# Keys removed from exported configuration
SECRET_KEYS = (
    "JOBBER_CLIENT_SECRET",
    "JOBBER_WEBHOOK_SECRET",
    "SLACK_WEBHOOK_URL",
)


def export_safe_config(config_class):
    """
    Return the public settings of a config class as a dict, without secrets.

    Only UPPERCASE attributes are exported, matching Flask's from_object().
    """
    exported = {}
    for key in dir(config_class):
        if not key.isupper() or key in SECRET_KEYS:
            continue
        exported[key] = getattr(config_class, key)
    return exported


def get_config():
    """Get the appropriate configuration class based on environment variable.

    Environment is determined by FLASK_ENV or ENVIRONMENT variable:
    - 'local' or 'development' -> LocalConfig
    - 'sandbox' or 'staging' -> SandboxConfig
    - 'production' or 'prod' -> ProductionConfig
    - 'test' or 'testing' -> TestingConfig

    Defaults to LocalConfig if not set.
    """
    env = (os.environ.get("FLASK_ENV") or os.environ.get("ENVIRONMENT", "local")).lower()

    if env in ["local", "development", "dev"]:
        return LocalConfig
    elif env in ["sandbox", "staging", "stage"]:
        return SandboxConfig
    elif env in ["production", "prod"]:
        return ProductionConfig
    elif env in ["test", "testing"]:
        return TestingConfig
    else:
        # Default to local for safety
        return LocalConfig
