"""
Tests for configuration, engine factory and shared error types.
"""

import pytest
from datetime import timedelta

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from shared.config import TokenServiceConfig, get_config
from shared.errors import (
    CannotSignWithPublicKeyError,
    ErrorResponse,
    InvalidKeyError,
    UnsupportedKeySizeError,
)
from shared.logging import configure_logging, get_logger, token_fingerprint
from token_service.app.main import create_token_engine
from token_service.app.signing import bind_symmetric
from token_service.app.tokens import FailureKind, TokenEngine, ValidationPolicy


@pytest.fixture
def clean_env(monkeypatch):
    """Remove TOKEN_* variables that could leak into settings."""
    for name in list(os.environ):
        if name.startswith("TOKEN_"):
            monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestConfig:
    """Test cases for TokenServiceConfig."""

    def test_defaults(self, clean_env):
        config = TokenServiceConfig(_env_file=None)

        assert config.clock_skew_seconds == 180
        assert config.check_expiry is True
        assert config.default_not_before_offset_seconds == 10800
        assert config.trusted_issuers is None
        assert config.trusted_audiences is None
        assert config.metrics_enabled is False

    def test_environment_overrides(self, clean_env):
        clean_env.setenv("TOKEN_CLOCK_SKEW_SECONDS", "30")
        clean_env.setenv("TOKEN_CHECK_EXPIRY", "false")
        clean_env.setenv("TOKEN_TRUSTED_ISSUERS", '["issuer_1", "issuer_2"]')

        config = TokenServiceConfig(_env_file=None)

        assert config.clock_skew_seconds == 30
        assert config.check_expiry is False
        assert config.trusted_issuers == ["issuer_1", "issuer_2"]

    def test_get_config_overrides(self, clean_env):
        assert get_config(log_level="debug").log_level == "debug"

    def test_negative_skew_rejected(self, clean_env):
        with pytest.raises(ValueError):
            TokenServiceConfig(_env_file=None, clock_skew_seconds=-1)


class TestValidationPolicy:
    """Test cases for ValidationPolicy construction."""

    def test_from_config(self, clean_env):
        config = get_config(
            clock_skew_seconds=60,
            check_expiry=False,
            trusted_issuers=["issuer_1"],
            trusted_audiences=[],
        )

        policy = ValidationPolicy.from_config(config)

        assert policy.clock_skew == timedelta(seconds=60)
        assert policy.check_expiry is False
        assert policy.trusted_issuers == frozenset({"issuer_1"})
        assert policy.accepts_any_audience is True

    def test_single_string_allow_list(self):
        policy = ValidationPolicy(trusted_issuers="issuer_1")
        assert policy.trusted_issuers == frozenset({"issuer_1"})

    def test_immutable(self):
        policy = ValidationPolicy()
        with pytest.raises(AttributeError):
            policy.check_expiry = False

    @pytest.mark.parametrize("skew", [timedelta(seconds=-1), 180])
    def test_bad_clock_skew(self, skew):
        with pytest.raises((TypeError, ValueError)):
            ValidationPolicy(clock_skew=skew)


class TestCreateTokenEngine:
    """Test cases for the engine factory."""

    def test_factory_applies_config(self, clean_env, secret):
        config = get_config(trusted_audiences=["audience_1"], default_not_before_offset_seconds=0)

        engine = create_token_engine(bind_symmetric(secret), config)

        assert engine.policy.trusted_audiences == frozenset({"audience_1"})
        assert engine.verify(engine.mint(audience="audience_1")).is_valid
        assert engine.verify(engine.mint(audience="nobody")).failure_kind is FailureKind.INVALID_AUDIENCE

    def test_factory_uses_explicit_metrics(self, clean_env, secret, metrics):
        engine = create_token_engine(bind_symmetric(secret), get_config(), metrics=metrics)
        engine.mint()
        assert metrics.registry.get_sample_value("tokens_minted_total", {"algorithm": "HS512"}) == 1.0

    def test_factory_configures_logging(self, clean_env, secret):
        engine = create_token_engine(bind_symmetric(secret), get_config(), setup_logging=True)
        assert isinstance(engine, TokenEngine)

    def test_convenience_constructor(self, secret):
        engine = TokenEngine.symmetric(secret, issuers=["issuer_1"], clock_skew=timedelta(seconds=5))
        assert engine.policy.trusted_issuers == frozenset({"issuer_1"})
        assert engine.policy.clock_skew == timedelta(seconds=5)

    def test_engine_requires_identity(self, secret):
        with pytest.raises(InvalidKeyError):
            TokenEngine(secret)


class TestErrors:
    """Test cases for shared error types."""

    def test_to_response(self):
        response = UnsupportedKeySizeError(1024).to_response()

        assert isinstance(response, ErrorResponse)
        assert response.code == "UNSUPPORTED_KEY_SIZE"
        assert response.details == {"key_size": 1024}
        assert "1024" in response.message

    def test_usage_errors_are_value_errors(self):
        assert isinstance(CannotSignWithPublicKeyError(), ValueError)


class TestLoggingHelpers:
    """Test cases for logging helpers."""

    def test_fingerprint_is_stable_and_short(self):
        assert token_fingerprint("a.b.c") == token_fingerprint("a.b.c")
        assert len(token_fingerprint("a.b.c")) == 16
        assert token_fingerprint("a.b.c") != token_fingerprint("a.b.d")

    @pytest.mark.parametrize("token", [None, "", b"a.b.c"])
    def test_fingerprint_of_non_tokens(self, token):
        assert token_fingerprint(token) == "-"

    def test_configure_and_get_logger(self):
        configure_logging("tokens", "debug")
        logger = get_logger("tokens.test")
        logger.info("configured", fingerprint=token_fingerprint("a.b.c"))
