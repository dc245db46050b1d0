"""
Integration tests for the token lifecycle across issuers and verifiers.
"""

import pytest
import jwt
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from shared.test_helpers import (
    FrozenClock,
    create_foreign_token,
    generate_rsa_key,
    private_key_pem,
    public_key_pem,
    random_secret,
)
from token_service.app.signing import bind_pem, bind_symmetric
from token_service.app.tokens import FailureKind, TokenEngine, ValidationPolicy


class TestTokenLifecycle:
    """Integration tests for minting on one host and verifying on another."""

    @pytest.fixture
    def rsa_key(self):
        return generate_rsa_key(2048)

    @pytest.fixture
    def issuer_engine(self, rsa_key):
        """Issuer holding the private key."""
        return TokenEngine(bind_pem(private_key_pem(rsa_key)))

    @pytest.fixture
    def consumer_engine(self, rsa_key):
        """Consumer holding only the distributed public key."""
        return TokenEngine(
            bind_pem(public_key_pem(rsa_key)),
            ValidationPolicy(trusted_issuers=["auth.example"], trusted_audiences=["api.example"]),
        )

    def test_concrete_symmetric_scenario(self):
        """A 128-character secret, no lifetime, default policy."""
        engine = TokenEngine(bind_symmetric(random_secret(128)))

        token = engine.mint(lifetime=None)

        assert token
        outcome = engine.verify(token)
        assert outcome.is_valid
        assert len(outcome.claims) == 0

    def test_issue_and_consume_with_distributed_public_key(self, issuer_engine, consumer_engine):
        token = issuer_engine.mint(
            lifetime=timedelta(minutes=15),
            issuer="auth.example",
            audience="api.example",
            claims=[("sub", "user-1"), ("role", "reader"), ("role", "writer")],
        )

        outcome = consumer_engine.verify(token)

        assert outcome.is_valid
        assert outcome["sub"].value == "user-1"
        assert outcome.claims.get_all("role") == ["reader", "writer"]

    def test_consumer_rejects_wrong_audience(self, issuer_engine, consumer_engine):
        token = issuer_engine.mint(issuer="auth.example", audience="billing.example")
        assert consumer_engine.verify(token).failure_kind is FailureKind.INVALID_AUDIENCE

    def test_tokens_readable_by_plain_pyjwt(self, issuer_engine, rsa_key):
        """Engine output is standard compact JWS."""
        token = issuer_engine.mint(
            lifetime=timedelta(minutes=5),
            issuer="auth.example",
            audience="api.example",
            claims={"role": ["reader", "writer"]},
        )

        claims = jwt.decode(
            token,
            rsa_key.public_key(),
            algorithms=["RS256"],
            audience="api.example",
            issuer="auth.example",
        )

        assert claims["role"] == ["reader", "writer"]

    def test_plain_pyjwt_tokens_verified(self, consumer_engine, rsa_key):
        now = datetime.now(timezone.utc)
        token = create_foreign_token(
            {
                "iss": "auth.example",
                "aud": "api.example",
                "sub": "user-2",
                "iat": now,
                "exp": now + timedelta(minutes=5),
                "scope": "read write",
            },
            rsa_key,
            "RS256",
            headers={"kid": "key-1"},
        )

        outcome = consumer_engine.verify(token)

        assert outcome.is_valid
        assert outcome["scope"].value == "read write"
        assert outcome.expires_at is not None

    def test_foreign_token_with_other_algorithm_rejected(self, consumer_engine, rsa_key):
        token = create_foreign_token({"iss": "auth.example", "aud": "api.example"}, rsa_key, "RS512")
        assert consumer_engine.verify(token).failure_kind is FailureKind.BAD_SIGNATURE

    def test_expiry_across_hosts(self):
        """Issuer and verifier clocks may drift by up to the clock skew."""
        secret = random_secret(64)
        issuer_clock = FrozenClock()
        verifier_clock = FrozenClock(issuer_clock.now + timedelta(minutes=2))
        issuer = TokenEngine(bind_symmetric(secret), clock=issuer_clock)
        verifier = TokenEngine(bind_symmetric(secret), clock=verifier_clock)

        token = issuer.mint(lifetime=timedelta(minutes=10), not_before=issuer_clock.now)
        assert verifier.verify(token).is_valid

        verifier_clock.advance(timedelta(minutes=12))
        assert verifier.verify(token).failure_kind is FailureKind.EXPIRED

    def test_concurrent_mint_and_verify(self, issuer_engine, consumer_engine):
        """The engines hold no per-call state and may be shared across threads."""
        def round_trip(index):
            token = issuer_engine.mint(
                issuer="auth.example",
                audience="api.example",
                claims={"n": str(index)},
            )
            outcome = consumer_engine.verify(token)
            return outcome.is_valid and outcome["n"].value == str(index)

        with ThreadPoolExecutor(max_workers=8) as executor:
            results = list(executor.map(round_trip, range(64)))

        assert all(results)
