"""
Shared fixtures for token service tests.
"""

import pytest
from datetime import timedelta
from prometheus_client import CollectorRegistry

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from shared.metrics import TokenMetrics
from shared.test_helpers import FrozenClock, generate_rsa_key, random_secret
from token_service.app.signing import bind_symmetric
from token_service.app.tokens import TokenEngine, ValidationPolicy


@pytest.fixture
def clock():
    """Deterministic clock starting at 2024-01-01T12:00:00Z."""
    return FrozenClock()


@pytest.fixture
def secret():
    """128-character random shared secret."""
    return random_secret(128)


@pytest.fixture(scope="session")
def rsa_2048():
    return generate_rsa_key(2048)


@pytest.fixture(scope="session")
def rsa_3072():
    return generate_rsa_key(3072)


@pytest.fixture(scope="session")
def rsa_4096():
    return generate_rsa_key(4096)


@pytest.fixture
def metrics():
    """Metrics bound to an isolated registry."""
    return TokenMetrics(registry=CollectorRegistry())


@pytest.fixture
def engine(secret, clock):
    """HS512 engine with the default policy."""
    return TokenEngine(bind_symmetric(secret), clock=clock)


@pytest.fixture
def make_engine(clock):
    """Build an engine over any key with explicit policy settings."""
    def _make(identity, **policy_kwargs):
        return TokenEngine(identity, ValidationPolicy(**policy_kwargs), clock=clock)
    return _make


@pytest.fixture
def lifetime():
    return timedelta(minutes=15)
