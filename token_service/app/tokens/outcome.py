"""
Result types returned by token verification.

A verification produces exactly one of :class:`ValidToken` or
:class:`InvalidToken`. Callers branch on ``is_valid`` and, for failures, on
``failure_kind``; ``message`` is advisory text only.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Tuple, Union

from .claims import Claim, ClaimSet


class FailureKind(str, enum.Enum):
    """Why a token failed verification."""

    MALFORMED = "malformed"
    BAD_SIGNATURE = "bad_signature"
    EXPIRED = "expired"
    NOT_YET_VALID = "not_yet_valid"
    INVALID_ISSUER = "invalid_issuer"
    INVALID_AUDIENCE = "invalid_audience"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ValidToken:
    """A token that passed every check."""

    claims: ClaimSet = field(default_factory=ClaimSet)
    issuer: Optional[str] = None
    audiences: Tuple[str, ...] = ()
    not_before: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    issued_at: Optional[datetime] = None

    is_valid = True

    @property
    def audience(self) -> Optional[str]:
        return self.audiences[0] if self.audiences else None

    def claim(self, claim_type: str) -> Optional[Claim]:
        """First claim of ``claim_type`` in insertion order, or None."""
        return self.claims.first(claim_type)

    def __getitem__(self, claim_type: str) -> Optional[Claim]:
        return self.claim(claim_type)


@dataclass(frozen=True)
class InvalidToken:
    """A token that failed verification; carries no claims."""

    failure_kind: FailureKind
    message: str

    is_valid = False

    def claim(self, claim_type: str) -> Optional[Claim]:
        return None

    def __getitem__(self, claim_type: str) -> Optional[Claim]:
        return None


ValidationOutcome = Union[ValidToken, InvalidToken]
