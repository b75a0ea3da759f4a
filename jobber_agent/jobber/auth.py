import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

import requests

from jobber_agent.logging_config import get_logger

logger = get_logger(__name__)

TOKEN_REFRESH_BUFFER_SECONDS = 60


@dataclass
class JobberToken:
    access_token: str
    expires_at: datetime
    token_type: str = "Bearer"


class JobberTokenProvider:
    """OAuth client-credentials token source, cached in memory."""

    def __init__(self, client_id, client_secret, api_url, timeout=30):
        self.client_id = client_id
        self.client_secret = client_secret
        self.token_url = f"{api_url.rstrip('/')}/oauth/token"
        self.timeout = timeout
        self._token: Optional[JobberToken] = None
        self._lock = threading.Lock()

    def _request_client_credentials_token(self):
        """Request a new OAuth access token via client credentials flow."""
        if not self.client_id or not self.client_secret:
            raise ValueError("Missing Jobber client credentials")

        payload = {
            "grant_type": "client_credentials",
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "scope": "read write",
        }
        response = requests.post(self.token_url, json=payload, timeout=self.timeout)
        response.raise_for_status()
        data = response.json()
        access_token = data.get("access_token")
        if not access_token:
            raise ValueError(f"Jobber token response has no access_token: {data.get('error', data)}")
        expires_in = data.get("expires_in", 3600)
        token_type = data.get("token_type", "Bearer")
        return access_token, expires_in, token_type

    def get_access_token(self) -> str:
        """Return a valid access token, refreshing with client credentials if needed."""
        return self._ensure_token().access_token

    def get_access_token_force_refresh(self) -> str:
        """Force retrieval of a fresh access token."""
        return self._ensure_token(force_refresh=True).access_token

    def _ensure_token(self, force_refresh: bool = False) -> JobberToken:
        with self._lock:
            token = self._token
            needs_refresh = force_refresh or token is None or self._is_expiring(token)

            if needs_refresh:
                access_token, expires_in, token_type = self._request_client_credentials_token()
                expires_at = datetime.utcnow() + timedelta(seconds=expires_in)
                token = JobberToken(access_token, expires_at, token_type or "Bearer")
                self._token = token
                logger.info("Jobber access token refreshed", expires_at=expires_at.isoformat())

            return token

    @staticmethod
    def _is_expiring(token: JobberToken) -> bool:
        buffer_time = datetime.utcnow() + timedelta(seconds=TOKEN_REFRESH_BUFFER_SECONDS)
        return token.expires_at is None or token.expires_at <= buffer_time
