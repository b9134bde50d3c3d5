"""
Carrier API client for reading and creating orders on the transport platform.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from functools import lru_cache
from typing import Optional

import httpx
from django.conf import settings
from django.utils import timezone

from loads.services.normalization import clean_text, first_present, unwrap_carrier_response

logger = logging.getLogger(__name__)


class UpstreamFetchError(Exception):
    """Raised when the carrier API cannot be reached or answers non-2xx."""

    def __init__(self, message: str, status_code: Optional[int] = None, response_body: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body

    @property
    def not_found(self) -> bool:
        return self.status_code == 404


@dataclass
class TokenCache:
    """Access token for the carrier API and the moment it stops being usable."""

    access_token: Optional[str] = None
    expires_at: Optional[datetime] = None
    leeway_seconds: int = 60

    def is_valid(self, now: Optional[datetime] = None) -> bool:
        if not self.access_token or not self.expires_at:
            return False
        now = now or timezone.now()
        return now + timedelta(seconds=self.leeway_seconds) < self.expires_at

    def store(self, access_token: str, expires_in: int, now: Optional[datetime] = None) -> None:
        now = now or timezone.now()
        self.access_token = access_token
        self.expires_at = now + timedelta(seconds=int(expires_in))

    def clear(self) -> None:
        self.access_token = None
        self.expires_at = None


class CarrierClient:
    """
    Thin wrapper over the carrier REST API.

    Authenticates with a static API key when one is configured, otherwise
    with OAuth client credentials, refreshing the token lazily on expiry.
    """

    def __init__(
        self,
        base_url: str,
        token_url: str = '',
        client_id: str = '',
        client_secret: str = '',
        api_key: str = '',
        timeout: float = 30.0,
    ):
        self.base_url = base_url.rstrip('/')
        self.token_url = token_url
        self.client_id = client_id
        self.client_secret = client_secret
        self.api_key = api_key
        self.timeout = timeout
        self.token_cache = TokenCache()

    @classmethod
    def from_settings(cls) -> 'CarrierClient':
        return cls(
            base_url=settings.CARRIER_API_URL,
            token_url=settings.CARRIER_TOKEN_URL,
            client_id=settings.CARRIER_CLIENT_ID,
            client_secret=settings.CARRIER_CLIENT_SECRET,
            api_key=settings.CARRIER_API_KEY,
            timeout=settings.CARRIER_API_TIMEOUT,
        )

    def _access_token(self) -> str:
        if self.api_key:
            return self.api_key
        if self.token_cache.is_valid():
            return self.token_cache.access_token

        logger.info("Requesting carrier API access token")
        try:
            response = httpx.post(
                self.token_url,
                data={'grant_type': 'client_credentials'},
                auth=(self.client_id, self.client_secret),
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            logger.error(f"Carrier token request failed: {e}")
            raise UpstreamFetchError(f"Token request failed: {e}") from e

        if not 200 <= response.status_code < 300:
            logger.error(f"Carrier token request rejected: {response.status_code}")
            raise UpstreamFetchError(
                f"Token request rejected: {response.status_code}",
                status_code=response.status_code,
                response_body=response.text,
            )

        try:
            body = response.json()
        except ValueError as e:
            raise UpstreamFetchError(f"Token endpoint returned invalid JSON: {e}",
                                     status_code=response.status_code,
                                     response_body=response.text) from e

        access_token = body.get('access_token') if isinstance(body, dict) else None
        if not access_token:
            logger.error("Carrier token response has no access_token")
            raise UpstreamFetchError("Token response has no access_token",
                                     status_code=response.status_code,
                                     response_body=response.text)

        try:
            expires_in = int(body.get('expires_in') or 3600)
        except (TypeError, ValueError):
            expires_in = 3600
        self.token_cache.store(access_token, expires_in)
        return self.token_cache.access_token

    def _request(self, method: str, path: str, json: Optional[dict] = None) -> dict:
        url = f"{self.base_url}/{path.lstrip('/')}"
        headers = {
            'Authorization': f'Bearer {self._access_token()}',
            'Content-Type': 'application/json',
        }
        logger.info(f"Carrier API {method} {url}")

        try:
            response = httpx.request(method, url, json=json, headers=headers, timeout=self.timeout)
        except httpx.TimeoutException as e:
            logger.error(f"Timeout calling carrier API: {e}")
            raise UpstreamFetchError(f"Timeout calling carrier API: {e}") from e
        except httpx.HTTPError as e:
            logger.error(f"HTTP error calling carrier API: {e}")
            raise UpstreamFetchError(f"HTTP error calling carrier API: {e}") from e

        if response.status_code == 401:
            # Token revoked early; the next call will fetch a new one
            self.token_cache.clear()

        if not 200 <= response.status_code < 300:
            logger.warning(f"Carrier API {method} {url} returned {response.status_code}")
            raise UpstreamFetchError(
                f"Carrier API returned {response.status_code}",
                status_code=response.status_code,
                response_body=response.text,
            )

        try:
            return response.json()
        except ValueError as e:
            raise UpstreamFetchError(f"Carrier API returned invalid JSON: {e}",
                                     status_code=response.status_code,
                                     response_body=response.text) from e

    def get_order(self, guid: str) -> dict:
        """Fetch a single order by GUID, unwrapped from the response envelope."""
        return unwrap_carrier_response(self._request('GET', f'/orders/{guid}'))

    def get_bol_url(self, guid: str) -> Optional[str]:
        """
        Fetch the bill-of-lading link for an order.

        Raises:
            UpstreamFetchError: not_found is True while the BOL is not generated yet
        """
        body = self._request('GET', f'/orders/{guid}/bol')
        if not isinstance(body, dict):
            logger.warning(f"Unexpected BOL response shape for order {guid}: {type(body).__name__}")
            return None
        data = unwrap_carrier_response(body)
        return clean_text(first_present(data.get('url'), data.get('bol_url'), body.get('url')))

    def create_order(self, payload: dict) -> dict:
        """Create an order; returns the created order object."""
        return unwrap_carrier_response(self._request('POST', '/orders', json=payload))


@lru_cache(maxsize=1)
def get_carrier_client() -> CarrierClient:
    """Client built from settings, shared so its token cache is reused."""
    return CarrierClient.from_settings()
