import logging
from dataclasses import dataclass, field
from typing import Any, Optional

import aiohttp

from services.errors import GatewayAuthError
from services.redis import RedisClient
from .credentials import ApiCredentials

TOKEN_EXPIRY_MARGIN = 60


@dataclass
class RefundOutcome:
    success: bool
    message: str
    data: dict[str, Any] = field(default_factory=dict)


class PayHereAPI:
    """Merchant API client: OAuth client-credentials token plus refunds."""

    def __init__(self, credentials: ApiCredentials, cache: Optional[RedisClient] = None, timeout: float = 30):
        self.credentials = credentials
        self.cache = cache
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    async def _request(self, method: str, url: str, **kwargs) -> tuple[int, Any]:
        async with aiohttp.ClientSession(timeout=self.timeout) as session:
            async with session.request(method, url, **kwargs) as r:
                try:
                    data = await r.json(content_type=None)
                except ValueError:
                    data = {"message": await r.text()}
                return r.status, data

    async def get_access_token(self) -> str:
        if self.cache is not None:
            cached = await self.cache.get_access_token(self.credentials.app_id)
            if cached:
                logging.info("Using cached PayHere access token")
                return cached

        logging.info("Fetching new access token from PayHere")
        headers = {"Authorization": aiohttp.encode_basic_auth(self.credentials.app_id, self.credentials.app_secret)}
        try:
            status, data = await self._request(
                "POST",
                self.credentials.token_url,
                headers=headers,
                data={"grant_type": "client_credentials"},
            )
        except aiohttp.ClientError as e:
            logging.error(f"PayHere token request failed: {e}")
            raise GatewayAuthError("Failed to authenticate with PayHere API") from e

        if status >= 400 or not isinstance(data, dict) or not data.get("access_token"):
            logging.error(f"Failed to get PayHere access token: {status} {data}")
            raise GatewayAuthError("Failed to authenticate with PayHere API")

        token = data["access_token"]
        ttl = int(data.get("expires_in") or 0) - TOKEN_EXPIRY_MARGIN
        if self.cache is not None and ttl > 0:
            await self.cache.set_access_token(self.credentials.app_id, token, ttl)
        logging.info("Obtained new PayHere access token")
        return token

    async def refund(self, payment_id: str, description: str) -> RefundOutcome:
        token = await self.get_access_token()
        logging.info(f"Processing refund for payment {payment_id}")
        try:
            status, data = await self._request(
                "POST",
                self.credentials.refund_url,
                headers={"Authorization": f"Bearer {token}"},
                json={"payment_id": payment_id, "description": description},
            )
        except aiohttp.ClientError as e:
            logging.error(f"PayHere refund request failed: {e}")
            return RefundOutcome(False, f"Refund request failed: {e}")

        if not isinstance(data, dict):
            data = {"response": data}
        logging.info(f"PayHere refund response for {payment_id}: {data}")

        if status >= 400:
            return RefundOutcome(False, data.get("message") or data.get("error") or "Refund request failed", data)
        # PayHere reports success with status 1
        if data.get("status") == 1:
            return RefundOutcome(True, "Refund processed successfully", data)
        return RefundOutcome(False, data.get("message") or "Refund request was not successful", data)
