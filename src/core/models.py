from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List, Literal


class ProjectRef(BaseModel):
    key: str
    name: Optional[str] = None


class TicketPayload(BaseModel):
    """Body of a ServiceNow incident-table insert."""
    model_config = ConfigDict(frozen=True)

    short_description: str
    description: str
    urgency: str
    impact: str


class Ticket(BaseModel):
    number: Optional[str] = None
    sys_id: str


OutcomeStatus = Literal["incident_created", "not_found", "error"]


class OutcomeRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    project_key: str = Field(..., alias="projectKey")
    status: OutcomeStatus
    incident: Optional[Ticket] = None
    error: Optional[str] = None


# ============================================================
# Inbound request / response bodies
# ============================================================

class BatchRequest(BaseModel):
    project_keys: List[str] = Field(..., alias="projectKeys", min_length=1, max_length=50)


class BatchResponse(BaseModel):
    message: str
    results: List[OutcomeRecord]


class WebhookProject(BaseModel):
    key: Optional[str] = None
    name: Optional[str] = None


class WebhookQualityGate(BaseModel):
    status: Optional[str] = None


class WebhookEvent(BaseModel):
    """SonarQube webhook body; only the fields the gateway reads."""
    model_config = ConfigDict(extra="ignore")

    project: Optional[WebhookProject] = None
    quality_gate: Optional[WebhookQualityGate] = Field(None, alias="qualityGate")

    @property
    def project_key(self) -> Optional[str]:
        return self.project.key if self.project else None

    @property
    def project_name(self) -> Optional[str]:
        return self.project.name if self.project else None

    @property
    def gate_status(self) -> Optional[str]:
        return self.quality_gate.status if self.quality_gate else None
