"""
Token lifecycle package.

- claims: ordered claim multimap and its JSON payload mapping
- policy: immutable verification rules
- outcome: tagged verification results
- engine: minting and verification

Verification failures caused by token content are returned, never raised,
so untrusted input cannot crash a caller that forgets a try/except.
"""

from .claims import Claim, ClaimSet, REGISTERED_CLAIMS
from .engine import DEFAULT_NOT_BEFORE_OFFSET, TokenEngine, is_utc, utc_now
from .outcome import FailureKind, InvalidToken, ValidationOutcome, ValidToken
from .policy import DEFAULT_CLOCK_SKEW, ValidationPolicy

__all__ = [
    "Claim",
    "ClaimSet",
    "DEFAULT_CLOCK_SKEW",
    "DEFAULT_NOT_BEFORE_OFFSET",
    "FailureKind",
    "InvalidToken",
    "REGISTERED_CLAIMS",
    "TokenEngine",
    "ValidToken",
    "ValidationOutcome",
    "ValidationPolicy",
    "is_utc",
    "utc_now",
]
