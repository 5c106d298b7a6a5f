from typing import Optional, Tuple

import httpx

from src.core.config import settings
from src.core.logging import logger
from src.core.models import Ticket, TicketPayload
from src.services.errors import (
    AuthExpired,
    MalformedResponse,
    UpstreamRejected,
    Unreachable,
)
from src.services.http_utils import error_reason, json_object
from src.services.token_cache import TokenCache, get_token_cache

OAUTH_SERVICE = "ServiceNow OAuth"
INCIDENT_SERVICE = "ServiceNow incident API"


class ServiceNowClient:
    """
    ServiceNow incident client.

    Bearer tokens come from the shared `TokenCache`; a 401 on incident
    creation clears the cache so the next attempt performs a fresh exchange.
    """

    TOKEN_TIMEOUT = 15.0
    INCIDENT_TIMEOUT = 20.0

    def __init__(
        self,
        token_cache: Optional[TokenCache] = None,
        base_url: Optional[str] = None,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.token_cache = token_cache or get_token_cache()
        self.base_url = (base_url if base_url is not None else settings.SERVICENOW_URL).rstrip("/")
        self.client_id = client_id if client_id is not None else settings.SERVICENOW_CLIENT_ID
        self.client_secret = client_secret if client_secret is not None else settings.SERVICENOW_CLIENT_SECRET
        self._transport = transport

    async def fetch_token(self) -> Tuple[str, Optional[float]]:
        """Client-credentials exchange against `/oauth_token.do`."""
        params = {
            "grant_type": "client_credentials",
            "client_id": self.client_id,
            "client_secret": self.client_secret,
        }
        try:
            async with httpx.AsyncClient(timeout=self.TOKEN_TIMEOUT, transport=self._transport) as client:
                resp = await client.post(f"{self.base_url}/oauth_token.do", params=params)
        except httpx.TransportError as e:
            raise Unreachable(OAUTH_SERVICE, str(e) or type(e).__name__) from e

        if not resp.is_success:
            raise UpstreamRejected(OAUTH_SERVICE, resp.status_code, error_reason(resp))

        data = json_object(resp) or {}
        access_token = data.get("access_token")
        if not access_token:
            raise MalformedResponse(OAUTH_SERVICE, "token missing in response")
        return access_token, data.get("expires_in")

    async def get_token(self) -> str:
        return await self.token_cache.get_token(self.fetch_token)

    async def submit(self, token: str, payload: TicketPayload) -> Ticket:
        """
        Insert an incident record.

        Raises:
            AuthExpired: the token was refused; the cache has been cleared.
            UpstreamRejected: any other non-2xx response.
            Unreachable: no response within the timeout.
            MalformedResponse: 2xx without a `result` object.
        """
        headers = {"Authorization": f"Bearer {token}", "Content-Type": "application/json"}
        try:
            async with httpx.AsyncClient(timeout=self.INCIDENT_TIMEOUT, transport=self._transport) as client:
                resp = await client.post(
                    f"{self.base_url}/api/now/table/incident",
                    json=payload.model_dump(),
                    headers=headers,
                )
        except httpx.TransportError as e:
            raise Unreachable(INCIDENT_SERVICE, str(e) or type(e).__name__) from e

        if resp.status_code == 401:
            logger.warning("[token] Clearing cached token due to 401 error")
            self.token_cache.invalidate()
            raise AuthExpired(INCIDENT_SERVICE, resp.text)
        if not resp.is_success:
            raise UpstreamRejected(INCIDENT_SERVICE, resp.status_code, resp.text)

        result = (json_object(resp) or {}).get("result")
        if not isinstance(result, dict) or not result.get("sys_id"):
            raise MalformedResponse(INCIDENT_SERVICE, "creation failed: no result in response")
        return Ticket(number=result.get("number"), sys_id=result["sys_id"])

    async def create_ticket(self, payload: TicketPayload) -> Ticket:
        token = await self.get_token()
        return await self.submit(token, payload)

