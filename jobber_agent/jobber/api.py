import time
import threading
import requests
from typing import Optional, Dict, List
from requests.exceptions import ConnectionError, Timeout, RequestException
from urllib3.exceptions import ProtocolError

from jobber_agent.jobber import queries
from jobber_agent.logging_config import get_logger

logger = get_logger(__name__)


class JobberAPIError(Exception):
    """Jobber answered, but with GraphQL errors or an unsuccessful mutation."""


class RateLimiter:
    """Fixed one-minute window request budget."""

    def __init__(self, max_requests: int = 120, window_seconds: float = 60.0):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.requests = 0
        self.reset_time = time.monotonic() + window_seconds
        self._lock = threading.Lock()

    def acquire(self):
        with self._lock:
            now = time.monotonic()
            if now > self.reset_time:
                self.requests = 0
                self.reset_time = now + self.window_seconds

            if self.requests >= self.max_requests:
                wait_time = self.reset_time - now
                logger.warning("Jobber rate limit reached", wait_seconds=round(wait_time, 2))
                time.sleep(max(wait_time, 0))
                self.requests = 0
                self.reset_time = time.monotonic() + self.window_seconds

            self.requests += 1


class JobberAPI:
    """Jobber GraphQL connection layer utilizing a requests session."""

    def __init__(self, token_provider, graphql_url, api_version="2023-11-15",
                 timeout=30, requests_per_minute=120):
        if not graphql_url:
            raise ValueError("Missing Jobber GraphQL URL")

        self.token_provider = token_provider
        self.graphql_url = graphql_url
        self.api_version = api_version
        self.timeout = timeout
        self.rate_limiter = RateLimiter(max_requests=requests_per_minute)

        # Reusable HTTP session
        self.session = requests.Session()

    def _update_auth_header(self, force_refresh: bool = False):
        '''Adds the Authorization header to the session'''
        if force_refresh:
            token = self.token_provider.get_access_token_force_refresh()
        else:
            token = self.token_provider.get_access_token()
        self.session.headers.update({
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "X-JOBBER-GRAPHQL-VERSION": self.api_version,
        })

    def _request(self, payload: Dict, max_retries: int = 3, retry_delay: float = 1.0):
        """
        POST a GraphQL payload with retry logic for connection errors.

        Args:
            payload: {"query": ..., "variables": ...}
            max_retries: Maximum number of attempts for connection errors
            retry_delay: Initial delay between retries (exponential backoff)
        """
        self._update_auth_header()

        for attempt in range(max_retries):
            try:
                self.rate_limiter.acquire()
                r = self.session.post(self.graphql_url, json=payload, timeout=self.timeout)

                if r.status_code == 401:
                    # Token expired or invalid, force refresh once
                    self._update_auth_header(force_refresh=True)
                    r = self.session.post(self.graphql_url, json=payload, timeout=self.timeout)

                r.raise_for_status()
                return r.json() if r.text else {}

            except (ConnectionError, ProtocolError, Timeout) as e:
                # Connection errors - retry with exponential backoff
                if attempt < max_retries - 1:
                    wait_time = retry_delay * (2 ** attempt)
                    logger.warning(
                        "Jobber connection error, retrying",
                        attempt=attempt + 1,
                        wait_seconds=wait_time,
                        error=str(e),
                    )
                    time.sleep(wait_time)
                    continue
                raise requests.ConnectionError(
                    f"Connection error after {max_retries} attempts: {str(e)}"
                ) from e
            except RequestException:
                # HTTP errors (4xx, 5xx) and other request exceptions - don't retry
                raise

    def graphql_request(self, query: str, variables: Optional[Dict] = None) -> Dict:
        """Run a query or mutation and return its `data` member."""
        body = self._request({"query": query, "variables": variables or {}})
        if body.get("errors"):
            raise JobberAPIError(f"GraphQL errors: {body['errors']}")
        return body.get("data") or {}

    # -------------------------
    # Entities
    # -------------------------
    def get_job(self, job_id: str) -> Optional[Dict]:
        return self.graphql_request(queries.GET_JOB, {"id": job_id}).get("job")

    def get_client(self, client_id: str) -> Optional[Dict]:
        return self.graphql_request(queries.GET_CLIENT, {"id": client_id}).get("client")

    def get_quote(self, quote_id: str) -> Optional[Dict]:
        return self.graphql_request(queries.GET_QUOTE, {"id": quote_id}).get("quote")

    def get_invoice(self, invoice_id: str) -> Optional[Dict]:
        return self.graphql_request(queries.GET_INVOICE, {"id": invoice_id}).get("invoice")

    # -------------------------
    # Users
    # -------------------------
    def get_users(self) -> List[Dict]:
        data = self.graphql_request(queries.GET_USERS)
        users = data.get("users") or {}
        return users.get("nodes") or []

    # -------------------------
    # Mutations
    # -------------------------
    def assign_job(self, job_id: str, user_id: str) -> Dict:
        data = self.graphql_request(queries.ASSIGN_JOB, {"jobId": job_id, "userId": user_id})
        result = data.get("jobAssign") or {}
        if not result.get("success"):
            raise JobberAPIError(f"Failed to assign job: {result.get('errors')}")
        return result.get("job") or {}

    # -------------------------
    # Health
    # -------------------------
    def health_check(self) -> Dict:
        try:
            self.graphql_request(queries.HEALTH_CHECK)
            return {"status": "healthy", "api": "connected"}
        except (RequestException, JobberAPIError, ValueError) as e:
            return {"status": "unhealthy", "api": "disconnected", "error": str(e)}
