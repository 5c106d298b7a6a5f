import pytest

from src.services.retry import RetryPolicy
from tests.helpers import FakeClock


@pytest.fixture
def fast_policy():
    return RetryPolicy(base_delay_ms=0, jitter_ms=0)


@pytest.fixture
def clock():
    return FakeClock()
