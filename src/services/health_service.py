import time
from datetime import datetime, timezone
from typing import Optional, Tuple

from src.services.servicenow_client import ServiceNowClient
from src.services.sonarqube_client import SonarQubeClient

_started_at = time.monotonic()


class HealthService:
    def __init__(
        self,
        sonarqube: Optional[SonarQubeClient] = None,
        servicenow: Optional[ServiceNowClient] = None,
    ):
        self.sonarqube = sonarqube or SonarQubeClient()
        self.servicenow = servicenow or ServiceNowClient()

    def basic(self) -> dict:
        return {
            "status": "ok",
            "uptime_sec": round(time.monotonic() - _started_at),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    async def deep(self) -> Tuple[dict, bool]:
        """
        Check SonarQube reachability and ServiceNow OAuth, and report token cache state.

        Returns:
            (details, healthy) where healthy is True only if both checks pass.
        """
        details = {**self.basic(), "checks": {}}

        try:
            version = await self.sonarqube.server_version()
            details["checks"]["sonarqube"] = {"reachable": True, "version": version}
        except Exception as e:
            details["checks"]["sonarqube"] = {"reachable": False, "error": str(e)}

        try:
            token = await self.servicenow.get_token()
            details["checks"]["servicenow"] = {"oauth_ok": bool(token)}
        except Exception as e:
            details["checks"]["servicenow"] = {"oauth_ok": False, "error": str(e)}
        details["checks"]["token_cache"] = self.servicenow.token_cache.get_status()

        healthy = details["checks"]["sonarqube"]["reachable"] and details["checks"]["servicenow"]["oauth_ok"]
        return details, healthy
