"""
Incident pipeline: per-key outcomes, batch ordering and failure isolation.
"""

import pytest

from src.core.config import Settings
from src.core.models import WebhookEvent
from src.services import notify_service
from src.services.errors import UpstreamRejected
from src.services.incident_service import IncidentService
from src.services.notify_service import NotifyService
from tests.helpers import FakeNotifier, FakeServiceNow, FakeSonarQube

PROJECTS = {"k1": "Project One", "k2": "Project Two", "k3": "Project Three"}


def make_service(fast_policy, sonarqube=None, servicenow=None, notifier=None):
    return IncidentService(
        sonarqube=sonarqube or FakeSonarQube(PROJECTS),
        servicenow=servicenow or FakeServiceNow(),
        notifier=notifier or FakeNotifier(),
        retry_policy=fast_policy,
    )


@pytest.mark.asyncio
async def test_batch_preserves_input_order_when_middle_key_fails(fast_policy):
    servicenow = FakeServiceNow(failing={"k2"})
    service = make_service(fast_policy, servicenow=servicenow)

    results = await service.process_batch(["k1", "k2", "k3"])

    assert [r.project_key for r in results] == ["k1", "k2", "k3"]
    assert [r.status for r in results] == ["incident_created", "error", "incident_created"]
    assert "500" in results[1].error
    assert results[0].incident.number is not None
    # 1 + 3 retries for k2, one each for k1 and k3
    assert len(servicenow.payloads) == 6


@pytest.mark.asyncio
async def test_not_found_skips_ticketing(fast_policy):
    servicenow = FakeServiceNow()
    notifier = FakeNotifier()
    service = make_service(fast_policy, servicenow=servicenow, notifier=notifier)

    results = await service.process_batch(["missing"])

    assert results[0].status == "not_found"
    assert results[0].incident is None
    assert servicenow.payloads == []
    assert notifier.sent == []


@pytest.mark.asyncio
async def test_sonarqube_failure_retried_twice_then_error(fast_policy):
    sonarqube = FakeSonarQube(PROJECTS, failing={"k1"})
    service = make_service(fast_policy, sonarqube=sonarqube)

    outcome = await service.process_project("k1")

    assert outcome.status == "error"
    assert "unreachable" in outcome.error
    assert sonarqube.calls == ["k1"] * 3


@pytest.mark.asyncio
async def test_token_failure_fails_whole_batch_before_any_lookup(fast_policy):
    sonarqube = FakeSonarQube(PROJECTS)
    servicenow = FakeServiceNow(token_error=UpstreamRejected("ServiceNow OAuth", 401, "access_denied"))
    service = make_service(fast_policy, sonarqube=sonarqube, servicenow=servicenow)

    with pytest.raises(UpstreamRejected):
        await service.process_batch(["k1", "k2"])

    assert servicenow.token_calls == 4
    assert sonarqube.calls == []


@pytest.mark.asyncio
async def test_batch_payload_uses_low_severity(fast_policy):
    servicenow = FakeServiceNow()
    notifier = FakeNotifier()
    service = make_service(fast_policy, servicenow=servicenow, notifier=notifier)

    await service.process_batch(["k1"])

    payload = servicenow.payloads[0]
    assert payload.short_description == "SonarQube issue: Project One"
    assert payload.description == "Review analysis for Project One (k1)"
    assert (payload.urgency, payload.impact) == ("3", "3")
    assert notifier.sent == [("INC0000001", "k1", "Project One")]


@pytest.mark.asyncio
async def test_batch_payload_falls_back_to_key_for_unnamed_project(fast_policy):
    servicenow = FakeServiceNow()
    service = make_service(fast_policy, sonarqube=FakeSonarQube({"k1": None}), servicenow=servicenow)

    results = await service.process_batch(["k1"])

    assert results[0].status == "incident_created"
    payload = servicenow.payloads[0]
    assert payload.short_description == "SonarQube issue: k1"
    assert payload.description == "Review analysis for k1 (k1)"


@pytest.mark.asyncio
async def test_notification_failure_still_reports_incident_created(fast_policy, monkeypatch):
    class BrokenSMTP:
        def __init__(self, *args, **kwargs):
            raise OSError("Connection refused")

    monkeypatch.setattr(notify_service.smtplib, "SMTP", BrokenSMTP)
    notifier = NotifyService(Settings(
        SMTP_HOST="smtp.test", EMAIL_FROM="a@example.com", EMAIL_TO="b@example.com"
    ))
    service = make_service(fast_policy, notifier=notifier)

    outcome = await service.process_project("k1")

    assert outcome.status == "incident_created"
    assert outcome.error is None


@pytest.mark.asyncio
async def test_webhook_ok_gate_makes_no_downstream_calls(fast_policy):
    sonarqube = FakeSonarQube(PROJECTS)
    servicenow = FakeServiceNow()
    notifier = FakeNotifier()
    service = make_service(fast_policy, sonarqube, servicenow, notifier)

    event = WebhookEvent.model_validate({
        "project": {"key": "k1", "name": "Project One"},
        "qualityGate": {"status": "OK"},
    })

    assert await service.process_webhook(event) is None
    assert sonarqube.calls == []
    assert servicenow.token_calls == 0
    assert servicenow.payloads == []
    assert notifier.sent == []


@pytest.mark.asyncio
async def test_webhook_failed_gate_creates_high_severity_incident(fast_policy):
    sonarqube = FakeSonarQube(PROJECTS)
    servicenow = FakeServiceNow()
    notifier = FakeNotifier()
    service = make_service(fast_policy, sonarqube, servicenow, notifier)

    event = WebhookEvent.model_validate({
        "project": {"key": "k1", "name": "Project One"},
        "qualityGate": {"status": "ERROR"},
    })

    ticket = await service.process_webhook(event)

    assert ticket.number == "INC0000001"
    assert servicenow.token_calls == 1
    # the webhook carries the project name, so SonarQube is not queried
    assert sonarqube.calls == []

    payload = servicenow.payloads[0]
    assert payload.short_description == "Quality Gate failed: Project One"
    assert "Quality Gate Status: ERROR" in payload.description
    assert (payload.urgency, payload.impact) == ("2", "2")
    assert notifier.sent == [("INC0000001", "k1", "Project One")]


@pytest.mark.asyncio
async def test_webhook_ticket_failure_propagates(fast_policy):
    servicenow = FakeServiceNow(failing={"k1"})
    service = make_service(fast_policy, servicenow=servicenow)

    event = WebhookEvent.model_validate({
        "project": {"key": "k1"},
        "qualityGate": {"status": "ERROR"},
    })

    with pytest.raises(UpstreamRejected):
        await service.process_webhook(event)
    assert len(servicenow.payloads) == 4
