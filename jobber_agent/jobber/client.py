from jobber_agent.jobber.api import JobberAPI
from jobber_agent.jobber.auth import JobberTokenProvider

_client = None


def get_jobber_client(config=None):
    '''
    Returns a singleton instance of the JobberAPI class.
    '''
    global _client
    if _client is None:
        if config is None:
            from jobber_agent.config import Config as config
        token_provider = JobberTokenProvider(
            config.JOBBER_CLIENT_ID,
            config.JOBBER_CLIENT_SECRET,
            config.JOBBER_API_URL,
            timeout=config.REQUEST_TIMEOUT,
        )
        _client = JobberAPI(
            token_provider,
            config.JOBBER_GRAPHQL_URL,
            api_version=config.JOBBER_API_VERSION,
            timeout=config.REQUEST_TIMEOUT,
            requests_per_minute=config.API_REQUESTS_PER_MINUTE,
        )
    return _client
