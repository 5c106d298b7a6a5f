from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from src.core.logging import logger
from src.core.models import BatchRequest, BatchResponse, WebhookEvent
from src.services.health_service import HealthService
from src.services.incident_service import IncidentService

router = APIRouter()


def get_incident_service() -> IncidentService:
    return IncidentService()


def get_health_service() -> HealthService:
    return HealthService()


# ============================================================
# Health Check API
# ============================================================

@router.get("/healthz")
async def healthz(
    deep: bool = Query(False),
    health_service: HealthService = Depends(get_health_service)
):
    """
    Liveness check.

    With `deep=true`, also verifies SonarQube reachability and ServiceNow
    OAuth, returning 503 if either fails.
    """
    if not deep:
        return health_service.basic()

    details, healthy = await health_service.deep()
    return JSONResponse(status_code=200 if healthy else 503, content=details)


# ============================================================
# Incident APIs
# ============================================================

@router.post("/create-incidents", response_model=BatchResponse, response_model_exclude_none=True)
async def create_incidents(
    request: BatchRequest,
    incident_service: IncidentService = Depends(get_incident_service)
):
    """
    Create incidents for up to 50 SonarQube project keys.

    Keys are processed in order; each gets its own outcome. Failure to
    obtain a ServiceNow token fails the whole batch with 500.
    """
    try:
        results = await incident_service.process_batch(request.project_keys)
    except Exception as e:
        logger.error(f"[batch] Fatal error: {e}")
        return JSONResponse(
            status_code=500,
            content={"error": "Batch processing failed", "details": str(e)}
        )
    return {"message": "Batch processed", "results": results}


@router.post("/sonarqube-webhook")
async def sonarqube_webhook(
    event: WebhookEvent,
    incident_service: IncidentService = Depends(get_incident_service)
):
    """
    SonarQube webhook receiver.

    Creates a high-severity incident when the quality gate did not pass.
    """
    if not event.project_key:
        return JSONResponse(status_code=400, content={"error": "Missing project key in webhook payload"})

    try:
        ticket = await incident_service.process_webhook(event)
    except Exception as e:
        logger.error(f"[webhook] Error: {e}")
        return JSONResponse(
            status_code=500,
            content={"error": "Webhook processing failed", "details": str(e)}
        )

    if ticket is None:
        return {"message": "Quality Gate OK, no action needed"}
    return {
        "message": "Incident created from webhook",
        "incident": ticket.model_dump(),
    }
