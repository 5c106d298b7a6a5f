from typing import List, Optional

from src.core.logging import logger
from src.core.models import OutcomeRecord, ProjectRef, Ticket, TicketPayload, WebhookEvent
from src.services.notify_service import NotifyService
from src.services.retry import RetryPolicy, default_policy, execute
from src.services.servicenow_client import ServiceNowClient
from src.services.sonarqube_client import SonarQubeClient

SONARQUBE_RETRIES = 2
SERVICENOW_RETRIES = 3

# ServiceNow urgency/impact: webhook gate failures outrank manual batch requests.
WEBHOOK_SEVERITY = "2"
BATCH_SEVERITY = "3"


class IncidentService:
    """
    Turns SonarQube projects into ServiceNow incidents.

    Per project key: resolve project -> create incident -> notify -> outcome.
    Each downstream call runs under its own retry policy; a failing key
    becomes an `error` outcome without affecting the rest of the batch.
    """

    def __init__(
        self,
        sonarqube: Optional[SonarQubeClient] = None,
        servicenow: Optional[ServiceNowClient] = None,
        notifier: Optional[NotifyService] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        self.sonarqube = sonarqube or SonarQubeClient()
        self.servicenow = servicenow or ServiceNowClient()
        self.notifier = notifier or NotifyService()
        self.retry_policy = retry_policy or default_policy()

    async def acquire_token(self) -> str:
        return await execute(
            self.servicenow.get_token,
            self.retry_policy.for_call("servicenow-oauth", SERVICENOW_RETRIES),
        )

    async def _create_incident(self, project_key: str, payload: TicketPayload) -> Ticket:
        return await execute(
            lambda: self.servicenow.create_ticket(payload),
            self.retry_policy.for_call(f"incident-{project_key}", SERVICENOW_RETRIES),
        )

    @staticmethod
    def batch_payload(project: ProjectRef) -> TicketPayload:
        label = project.name or project.key
        return TicketPayload(
            short_description=f"SonarQube issue: {label}",
            description=f"Review analysis for {label} ({project.key})",
            urgency=BATCH_SEVERITY,
            impact=BATCH_SEVERITY,
        )

    @staticmethod
    def webhook_payload(project: ProjectRef, gate_status: Optional[str]) -> TicketPayload:
        label = project.name or project.key
        return TicketPayload(
            short_description=f"Quality Gate failed: {label}",
            description=f"Project: {label}\nKey: {project.key}\nQuality Gate Status: {gate_status}",
            urgency=WEBHOOK_SEVERITY,
            impact=WEBHOOK_SEVERITY,
        )

    async def process_project(self, project_key: str) -> OutcomeRecord:
        """Run the full pipeline for one key; never raises."""
        try:
            project = await execute(
                lambda: self.sonarqube.fetch_project(project_key),
                self.retry_policy.for_call(f"sonarqube-{project_key}", SONARQUBE_RETRIES),
            )
            if project is None:
                return OutcomeRecord(project_key=project_key, status="not_found")

            ticket = await self._create_incident(project_key, self.batch_payload(project))
        except Exception as e:
            logger.error(f"[batch] Error processing {project_key}: {e}")
            return OutcomeRecord(project_key=project_key, status="error", error=str(e))

        await self.notifier.notify(ticket, project_key, project.name)
        return OutcomeRecord(project_key=project_key, status="incident_created", incident=ticket)

    async def process_batch(self, project_keys: List[str]) -> List[OutcomeRecord]:
        """
        Process keys sequentially, preserving input order.

        The OAuth token is acquired once up front; failing that fails the
        whole batch before any project is touched.
        """
        await self.acquire_token()

        results = []
        for key in project_keys:
            results.append(await self.process_project(key))

        created = sum(1 for r in results if r.status == "incident_created")
        logger.info(f"[batch] Processed {len(results)} project(s), {created} incident(s) created")
        return results

    async def process_webhook(self, event: WebhookEvent) -> Optional[Ticket]:
        """
        Create an incident for a failed quality gate.

        Returns:
            The created ticket, or None when the gate status is OK.
        """
        if event.gate_status == "OK":
            logger.info(f"[webhook] Quality Gate OK for {event.project_key}; no action")
            return None

        project = ProjectRef(key=event.project_key, name=event.project_name)
        await self.acquire_token()
        ticket = await self._create_incident(project.key, self.webhook_payload(project, event.gate_status))
        await self.notifier.notify(ticket, project.key, project.name)
        logger.info(f"[webhook] Incident {ticket.number} created for {project.key}")
        return ticket
