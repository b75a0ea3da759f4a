# Package
from jobber_agent.jobber.api import JobberAPI, JobberAPIError
from jobber_agent.jobber.auth import JobberTokenProvider
from jobber_agent.jobber.client import get_jobber_client
