# Package
from flask import Blueprint

from jobber_agent.logging_config import get_logger

logger = get_logger(__name__)

api_bp = Blueprint("api", __name__)

from jobber_agent.api import routes
