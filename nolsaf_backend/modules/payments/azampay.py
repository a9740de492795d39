"""AzamPay mobile-money checkout client.

- Bearer tokens come from the authenticator and are cached until 60 s
  before they expire (50 minutes when the response has no expiry).
- Credentials and raw gateway bodies are never logged or returned.
"""

import asyncio
import time
from collections.abc import Callable
from datetime import datetime
from typing import Any

import httpx

from ...config import Settings, settings
from ...core.exceptions import ExternalServiceError, ServiceUnavailableError
from ...core.logging import get_logger

logger = get_logger(__name__)

TOKEN_PATH = "/AppRegistration/GenerateToken"
CHECKOUT_PATH = "/api/v1/Partner/PostCheckout"
CLOCK_SKEW_SECONDS = 60
DEFAULT_TOKEN_LIFETIME_SECONDS = 50 * 60


def parse_expiry(expire: Any, now: float) -> float:
    """Epoch seconds at which a token expires.

    Accepts ISO-8601 strings or epoch seconds/milliseconds.
    """
    if isinstance(expire, bool) or expire in (None, ""):
        return now + DEFAULT_TOKEN_LIFETIME_SECONDS
    if isinstance(expire, (int, float)):
        return expire / 1000 if expire >= 1e12 else float(expire)
    try:
        return datetime.fromisoformat(str(expire).replace("Z", "+00:00")).timestamp()
    except ValueError:
        return now + DEFAULT_TOKEN_LIFETIME_SECONDS


class AzamPayGateway:
    """Token manager plus checkout call, one instance per process."""

    def __init__(
        self,
        config: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._config = config
        self._transport = transport
        self._clock = clock
        self._token: str | None = None
        self._token_expires_at = 0.0
        self._lock = asyncio.Lock()

    @property
    def configured(self) -> bool:
        return self._config.azampay_configured

    def _client(self, base_url: str) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=self._config.azampay_timeout_seconds,
            transport=self._transport,
        )

    def invalidate_token(self) -> None:
        self._token = None
        self._token_expires_at = 0.0

    async def _fetch_token(self) -> None:
        body = {
            "appName": self._config.azampay_app_name,
            "clientId": self._config.azampay_client_id,
            "clientSecret": self._config.azampay_client_secret,
        }
        try:
            async with self._client(self._config.azampay_auth_url) as client:
                response = await client.post(TOKEN_PATH, json=body)
        except httpx.HTTPError as e:
            logger.error(f"AzamPay auth: network error ({type(e).__name__})")
            raise ServiceUnavailableError(
                "Payment service temporarily unavailable", code="payment_unavailable"
            )

        if response.status_code >= 400:
            logger.error(f"AzamPay auth: authenticator returned HTTP {response.status_code}")
            raise ServiceUnavailableError(
                "Payment service temporarily unavailable", code="payment_unavailable"
            )
        try:
            payload = response.json()
        except ValueError:
            payload = None
        data = (payload or {}).get("data") or {}
        if not (payload or {}).get("success") or not data.get("accessToken"):
            logger.error("AzamPay auth: token fetch failed")
            raise ServiceUnavailableError(
                "Payment service temporarily unavailable", code="payment_unavailable"
            )

        now = self._clock()
        self._token = data["accessToken"]
        self._token_expires_at = parse_expiry(data.get("expire"), now) - CLOCK_SKEW_SECONDS

    async def get_token(self) -> str:
        """Return a cached token, fetching a new one when needed.

        Raises:
            ServiceUnavailableError: If the gateway is not configured or auth fails
        """
        if not self.configured:
            logger.warning("AzamPay is not configured")
            raise ServiceUnavailableError(
                "Payment service temporarily unavailable", code="payment_unavailable"
            )
        async with self._lock:
            if self._token is None or self._token_expires_at <= self._clock():
                await self._fetch_token()
            return self._token

    async def _post_checkout(self, token: str, body: dict) -> httpx.Response:
        headers = {"Authorization": f"Bearer {token}"}
        if self._config.azampay_api_key:
            headers["X-API-Key"] = self._config.azampay_api_key
        try:
            async with self._client(self._config.azampay_checkout_url) as client:
                return await client.post(CHECKOUT_PATH, json=body, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"AzamPay checkout: request failed ({type(e).__name__})")
            raise ExternalServiceError("AzamPay", "checkout", code="payment_failed")

    async def checkout(self, body: dict) -> dict:
        """Start a mobile-money checkout.

        A 401 invalidates the cached token and the call is retried once.

        Raises:
            ServiceUnavailableError: If no token can be obtained
            ExternalServiceError: If the gateway rejects the checkout
        """
        token = await self.get_token()
        response = await self._post_checkout(token, body)
        if response.status_code == 401:
            self.invalidate_token()
            token = await self.get_token()
            response = await self._post_checkout(token, body)

        if response.status_code >= 400:
            logger.error(f"AzamPay checkout: gateway returned HTTP {response.status_code}")
            raise ExternalServiceError(
                "AzamPay", "checkout", details={"status": response.status_code},
                code="payment_failed",
            )
        try:
            payload = response.json()
        except ValueError:
            payload = None
        if not isinstance(payload, dict):
            logger.error("AzamPay checkout: response body is not a JSON object")
            raise ExternalServiceError("AzamPay", "checkout", code="payment_failed")
        return payload


gateway = AzamPayGateway(settings)
