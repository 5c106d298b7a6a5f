import base64
from typing import Optional

import httpx

from src.core.config import settings
from src.core.models import ProjectRef
from src.services.errors import MalformedResponse, UpstreamRejected, Unreachable
from src.services.http_utils import json_object

SERVICE_NAME = "SonarQube API"


class SonarQubeClient:
    SEARCH_TIMEOUT = 15.0
    VERSION_TIMEOUT = 8.0

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url if base_url is not None else settings.SONARQUBE_URL).rstrip("/")
        self.token = token if token is not None else settings.SONARQUBE_TOKEN
        self._transport = transport

    def _headers(self) -> dict:
        # SonarQube user tokens are sent as the Basic-auth username with an empty password.
        credentials = base64.b64encode(f"{self.token}:".encode()).decode()
        return {"Authorization": f"Basic {credentials}"}

    async def _get(self, path: str, timeout: float, params: Optional[dict] = None) -> httpx.Response:
        try:
            async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
                resp = await client.get(
                    f"{self.base_url}{path}", params=params, headers=self._headers()
                )
        except httpx.TransportError as e:
            raise Unreachable(SERVICE_NAME, str(e) or type(e).__name__) from e

        if not resp.is_success:
            raise UpstreamRejected(SERVICE_NAME, resp.status_code, resp.reason_phrase)
        return resp

    async def fetch_project(self, project_key: str) -> Optional[ProjectRef]:
        """
        Look up a project by key.

        Returns:
            The project, or None when SonarQube reports no matching component.

        Raises:
            UpstreamRejected: non-2xx response.
            Unreachable: no response within the timeout.
            MalformedResponse: 2xx body that is not a search result.
        """
        resp = await self._get(
            "/api/projects/search",
            timeout=self.SEARCH_TIMEOUT,
            params={"projects": project_key},
        )
        data = json_object(resp)
        if data is None:
            raise MalformedResponse(SERVICE_NAME, "invalid search response")
        components = data.get("components") or []
        if not isinstance(components, list) or not all(isinstance(c, dict) for c in components):
            raise MalformedResponse(SERVICE_NAME, "invalid search response")
        if not components:
            return None

        component = components[0]
        return ProjectRef(key=component.get("key") or project_key, name=component.get("name"))

    async def server_version(self) -> str:
        resp = await self._get("/api/server/version", timeout=self.VERSION_TIMEOUT)
        return resp.text.strip()
