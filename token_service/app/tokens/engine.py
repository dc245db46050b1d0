"""
Token engine: mints and verifies signed, time-bounded tokens.

Verification never raises for problems with the token itself. Each check
runs in a fixed order and the first failure is returned as an
:class:`InvalidToken` tagged with its :class:`FailureKind`:

1. envelope structure       -> MALFORMED
2. signature and algorithm  -> BAD_SIGNATURE
3. expiry (if enabled)      -> EXPIRED
4. not-before               -> NOT_YET_VALID
5. issuer allow-list        -> INVALID_ISSUER
6. audience allow-list      -> INVALID_AUDIENCE

Only caller mistakes (empty token, unusable override policy, signing with a
public key, non-UTC timestamps) raise.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Iterable, Mapping, Optional, Tuple

import jwt
from jwt.utils import base64url_decode, base64url_encode

from shared.errors import (
    CannotSignWithPublicKeyError,
    EmptyInputError,
    InvalidClaimError,
    InvalidKeyError,
    InvalidTimeWindowError,
    MalformedPolicyError,
    TimestampNotUtcError,
)
from shared.logging import get_logger, token_fingerprint
from shared.metrics import TokenMetrics
from ..signing.identity import RsaKey, SigningIdentity, SymmetricKey, bind_asymmetric, bind_symmetric
from .claims import ClaimsInput, ClaimSet
from .outcome import FailureKind, InvalidToken, ValidationOutcome, ValidToken
from .policy import DEFAULT_CLOCK_SKEW, ValidationPolicy

# Minted tokens without an explicit not-before are backdated by this much so
# that verifiers with a slow clock accept them immediately.
DEFAULT_NOT_BEFORE_OFFSET = timedelta(hours=3)

_UTC_NAMES = frozenset({"UTC", "Etc/UTC", "Z"})

# Signature and envelope only; temporal and identity checks run in _evaluate.
_DECODE_OPTIONS = {
    "verify_signature": True,
    "verify_exp": False,
    "verify_nbf": False,
    "verify_iat": False,
    "verify_iss": False,
    "verify_aud": False,
    "verify_sub": False,
    "verify_jti": False,
    "require": [],
}

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def is_utc(value: Any) -> bool:
    """True for aware datetimes whose zone is UTC itself (not merely +00:00 today)."""
    if not isinstance(value, datetime) or value.tzinfo is None:
        return False
    return value.utcoffset() == timedelta(0) and value.tzname() in _UTC_NAMES


def _numeric_date(value: datetime) -> int:
    return math.floor(value.timestamp())


def _from_numeric_date(name: str, value: Any) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise _MalformedClaim(f"'{name}' must be a NumericDate")
    try:
        return datetime.fromtimestamp(value, tz=timezone.utc)
    except (OverflowError, ValueError, OSError) as exc:
        raise _MalformedClaim(f"'{name}' is out of range: {exc}") from exc


def _is_canonical_segment(segment: str) -> bool:
    try:
        raw = base64url_decode(segment.encode("ascii"))
    except (ValueError, UnicodeEncodeError):
        return False
    return base64url_encode(raw).decode("ascii") == segment


class _MalformedClaim(ValueError):
    pass


@dataclass(frozen=True)
class _RegisteredClaims:
    issuer: Optional[str]
    audiences: Tuple[str, ...]
    not_before: Optional[datetime]
    expires_at: Optional[datetime]
    issued_at: Optional[datetime]

    @classmethod
    def parse(cls, payload: Mapping[str, Any]) -> "_RegisteredClaims":
        issuer = payload.get("iss")
        if issuer is not None and not isinstance(issuer, str):
            raise _MalformedClaim("'iss' must be a string")

        audience = payload.get("aud")
        if audience is None:
            audiences: Tuple[str, ...] = ()
        elif isinstance(audience, str):
            audiences = (audience,)
        elif isinstance(audience, list) and all(isinstance(a, str) for a in audience):
            audiences = tuple(audience)
        else:
            raise _MalformedClaim("'aud' must be a string or an array of strings")

        return cls(
            issuer=issuer,
            audiences=audiences,
            not_before=_from_numeric_date("nbf", payload.get("nbf")),
            expires_at=_from_numeric_date("exp", payload.get("exp")),
            issued_at=_from_numeric_date("iat", payload.get("iat")),
        )


class TokenEngine:
    """Mints and verifies tokens with one bound signing identity.

    The engine holds no per-token state; ``mint`` and ``verify`` may be
    called concurrently from several threads.
    """

    def __init__(
        self,
        identity: SigningIdentity,
        policy: Optional[ValidationPolicy] = None,
        *,
        clock: Optional[Clock] = None,
        default_not_before_offset: timedelta = DEFAULT_NOT_BEFORE_OFFSET,
        metrics: Optional[TokenMetrics] = None,
    ) -> None:
        if not isinstance(identity, SigningIdentity):
            raise InvalidKeyError(
                "TokenEngine requires a bound SigningIdentity",
                details={"type": type(identity).__name__},
            )
        if identity.wiped:
            raise InvalidKeyError("Signing identity has been wiped")

        self._identity = identity
        self._policy = (policy or ValidationPolicy()).with_identity(identity)
        self._clock = clock or utc_now
        self._default_not_before_offset = default_not_before_offset
        self.metrics = metrics
        self.logger = get_logger("tokens.engine")

    @classmethod
    def symmetric(
        cls,
        key: SymmetricKey,
        issuers: Optional[Iterable[str]] = None,
        audiences: Optional[Iterable[str]] = None,
        check_expiry: bool = True,
        clock_skew: Optional[timedelta] = None,
        **kwargs: Any,
    ) -> "TokenEngine":
        """Engine over an HS512 shared secret."""
        return cls(bind_symmetric(key), _policy(issuers, audiences, check_expiry, clock_skew), **kwargs)

    @classmethod
    def rsa(
        cls,
        key: RsaKey,
        issuers: Optional[Iterable[str]] = None,
        audiences: Optional[Iterable[str]] = None,
        check_expiry: bool = True,
        clock_skew: Optional[timedelta] = None,
        **kwargs: Any,
    ) -> "TokenEngine":
        """Engine over an RSA key; pass only the public key to verify without signing."""
        return cls(bind_asymmetric(key), _policy(issuers, audiences, check_expiry, clock_skew), **kwargs)

    @property
    def identity(self) -> SigningIdentity:
        return self._identity

    @property
    def policy(self) -> ValidationPolicy:
        return self._policy

    def mint(
        self,
        lifetime: Optional[timedelta] = None,
        not_before: Optional[datetime] = None,
        issuer: Optional[str] = None,
        audience: Optional[str] = None,
        claims: Optional[ClaimsInput] = None,
    ) -> str:
        """Create a signed token in compact serialization.

        ``lifetime`` sets ``exp`` to now + lifetime; without it the token
        never expires. ``not_before`` must be UTC; when omitted the token is
        valid from ``default_not_before_offset`` ago.
        """
        if not self._identity.can_sign:
            raise CannotSignWithPublicKeyError(details={"algorithm": self._identity.algorithm.value})

        if not_before is not None and not is_utc(not_before):
            raise TimestampNotUtcError("not_before", details={"value": str(not_before)})

        if lifetime is not None and not isinstance(lifetime, timedelta):
            raise TypeError("lifetime must be a timedelta")

        for name, value in (("issuer", issuer), ("audience", audience)):
            if value is not None and not isinstance(value, str):
                raise InvalidClaimError(f"{name} must be a string", details={"type": type(value).__name__})

        claim_set = ClaimSet.of(claims)

        now = self._now().replace(microsecond=0)
        nbf = not_before if not_before is not None else now - self._default_not_before_offset
        exp = now + lifetime if lifetime is not None else None

        if exp is not None and _numeric_date(exp) <= _numeric_date(nbf):
            raise InvalidTimeWindowError(
                details={"not_before": nbf.isoformat(), "expires_at": exp.isoformat()}
            )

        payload: dict = claim_set.to_payload()
        if issuer:
            payload["iss"] = issuer
        if audience:
            payload["aud"] = audience
        payload["iat"] = _numeric_date(now)
        payload["nbf"] = _numeric_date(nbf)
        if exp is not None:
            payload["exp"] = _numeric_date(exp)

        algorithm = self._identity.algorithm.value
        token = jwt.encode(payload, self._identity.signing_key(), algorithm=algorithm)

        if self.metrics is not None:
            self.metrics.record_mint(algorithm)
        self.logger.debug(
            "Token minted",
            algorithm=algorithm,
            token=token_fingerprint(token),
            expires=exp is not None,
            claims_count=len(claim_set),
        )
        return token

    def verify(self, token: str, policy: Optional[ValidationPolicy] = None) -> ValidationOutcome:
        """Verify ``token`` against the engine policy or a per-call override.

        An override replaces the engine policy entirely, including the key:
        it must carry its own ``identity``.
        """
        if not token:
            raise EmptyInputError()

        if policy is not None:
            if policy.identity is None or policy.identity.wiped:
                raise MalformedPolicyError()
            effective = policy
        else:
            if self._identity.wiped:
                raise InvalidKeyError("Signing identity has been wiped")
            effective = self._policy

        if self.metrics is not None:
            with self.metrics.time_verification():
                outcome = self._verify_safely(token, effective)
        else:
            outcome = self._verify_safely(token, effective)

        if self.metrics is not None:
            self.metrics.record_verification("valid" if outcome.is_valid else outcome.failure_kind.value)
        return outcome

    def close(self) -> None:
        """Wipe the key material owned by this engine."""
        self._identity.wipe()

    def __enter__(self) -> "TokenEngine":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _now(self) -> datetime:
        now = self._clock()
        if not is_utc(now):
            raise TimestampNotUtcError("clock", details={"value": str(now)})
        return now

    def _verify_safely(self, token: Any, policy: ValidationPolicy) -> ValidationOutcome:
        try:
            outcome = self._evaluate(token, policy)
        except Exception as e:
            self.logger.error(
                "Unexpected error during token verification",
                token=token_fingerprint(token),
                error=str(e),
            )
            return InvalidToken(FailureKind.UNKNOWN, f"Token failed verification: {e}")

        if not outcome.is_valid:
            self.logger.info(
                "Token verification failed",
                token=token_fingerprint(token),
                failure_kind=outcome.failure_kind.value,
                error=outcome.message,
            )
        return outcome

    def _evaluate(self, token: Any, policy: ValidationPolicy) -> ValidationOutcome:
        identity = policy.identity
        algorithm = identity.algorithm.value

        if not isinstance(token, str):
            return InvalidToken(FailureKind.MALFORMED, "Token must be a string")

        segments = token.split(".")
        if len(segments) != 3:
            return InvalidToken(
                FailureKind.MALFORMED,
                f"Token must have 3 dot-separated segments, found {len(segments)}",
            )
        if not all(_is_canonical_segment(segment) for segment in segments):
            return InvalidToken(FailureKind.MALFORMED, "Token segments are not canonical base64url")

        try:
            header = jwt.get_unverified_header(token)
        except jwt.InvalidTokenError as e:
            return InvalidToken(FailureKind.MALFORMED, f"Token header could not be parsed: {e}")

        if header.get("alg") != algorithm:
            return InvalidToken(
                FailureKind.BAD_SIGNATURE,
                f"Token algorithm {header.get('alg')!r} does not match the bound algorithm {algorithm}",
            )

        try:
            payload = jwt.decode(
                token,
                identity.verification_key(),
                algorithms=[algorithm],
                options=_DECODE_OPTIONS,
            )
        except (jwt.InvalidSignatureError, jwt.InvalidAlgorithmError) as e:
            return InvalidToken(FailureKind.BAD_SIGNATURE, f"Token signature verification failed: {e}")
        except jwt.DecodeError as e:
            return InvalidToken(FailureKind.MALFORMED, f"Token was not well-formed: {e}")

        try:
            registered = _RegisteredClaims.parse(payload)
            claims = ClaimSet.from_payload(payload)
        except _MalformedClaim as e:
            return InvalidToken(FailureKind.MALFORMED, f"Token claims were not well-formed: {e}")

        now = self._now()
        skew = policy.clock_skew

        if policy.check_expiry and registered.expires_at is not None and now - skew > registered.expires_at:
            return InvalidToken(
                FailureKind.EXPIRED,
                f"The token expired at {registered.expires_at.isoformat()} and failed validation",
            )

        if registered.not_before is not None and now + skew < registered.not_before:
            return InvalidToken(
                FailureKind.NOT_YET_VALID,
                f"The token is not valid before {registered.not_before.isoformat()}",
            )

        if not policy.accepts_any_issuer:
            if not registered.issuer or registered.issuer not in policy.trusted_issuers:
                return InvalidToken(
                    FailureKind.INVALID_ISSUER,
                    f"The token issuer {registered.issuer!r} is not trusted",
                )

        if not policy.accepts_any_audience:
            if not any(aud and aud in policy.trusted_audiences for aud in registered.audiences):
                return InvalidToken(
                    FailureKind.INVALID_AUDIENCE,
                    f"The token audience {list(registered.audiences)!r} is not trusted",
                )

        return ValidToken(
            claims=claims,
            issuer=registered.issuer,
            audiences=registered.audiences,
            not_before=registered.not_before,
            expires_at=registered.expires_at,
            issued_at=registered.issued_at,
        )


def _policy(
    issuers: Optional[Iterable[str]],
    audiences: Optional[Iterable[str]],
    check_expiry: bool,
    clock_skew: Optional[timedelta],
) -> ValidationPolicy:
    return ValidationPolicy(
        trusted_issuers=issuers,
        trusted_audiences=audiences,
        check_expiry=check_expiry,
        clock_skew=clock_skew if clock_skew is not None else DEFAULT_CLOCK_SKEW,
    )
