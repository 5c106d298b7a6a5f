"""Test doubles shared across the test modules."""

from src.core.models import ProjectRef, Ticket
from src.services.errors import UpstreamRejected, Unreachable
from src.services.token_cache import TokenCache


class FakeClock:
    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeSonarQube:
    """Stands in for SonarQubeClient; keys in `failing` always raise."""

    def __init__(self, projects=None, failing=()):
        self.projects = projects or {}
        self.failing = set(failing)
        self.calls = []
        self.version_error = None

    async def fetch_project(self, project_key):
        self.calls.append(project_key)
        if project_key in self.failing:
            raise Unreachable("SonarQube API", "timeout of 15000ms exceeded")
        if project_key not in self.projects:
            return None
        return ProjectRef(key=project_key, name=self.projects[project_key])

    async def server_version(self):
        if self.version_error:
            raise self.version_error
        return "10.4"


class FakeServiceNow:
    """Stands in for ServiceNowClient; payloads mentioning a failing key raise."""

    def __init__(self, failing=(), token_error=None):
        self.failing = set(failing)
        self.token_error = token_error
        self.token_calls = 0
        self.payloads = []
        self.token_cache = TokenCache()

    async def get_token(self):
        self.token_calls += 1
        if self.token_error:
            raise self.token_error
        return "token-abc"

    async def create_ticket(self, payload):
        self.payloads.append(payload)
        if any(key in payload.description for key in self.failing):
            raise UpstreamRejected("ServiceNow incident API", 500, "Insert failed")
        number = f"INC{len(self.payloads):07d}"
        return Ticket(number=number, sys_id=f"sys-{len(self.payloads)}")


class FakeNotifier:
    def __init__(self):
        self.sent = []

    async def notify(self, ticket, project_key, project_name=None):
        self.sent.append((ticket.number, project_key, project_name))

