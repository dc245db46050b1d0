"""
Validation policy applied when verifying tokens.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import timedelta
from typing import FrozenSet, Iterable, Optional

from shared.config import TokenServiceConfig
from ..signing.identity import SigningIdentity

DEFAULT_CLOCK_SKEW = timedelta(minutes=3)


def _allow_list(values: Optional[Iterable[str]]) -> Optional[FrozenSet[str]]:
    """None and empty collections both mean "accept any"."""
    if values is None:
        return None
    if isinstance(values, str):
        values = [values]
    allowed = frozenset(values)
    return allowed or None


@dataclass(frozen=True)
class ValidationPolicy:
    """Immutable verification rules.

    ``trusted_issuers`` / ``trusted_audiences`` of ``None`` accept any value
    and the corresponding claim is never compared. ``identity`` is only
    consulted when the policy is passed as a per-call override; an engine's
    own policy always verifies with the engine's identity.
    """

    trusted_issuers: Optional[FrozenSet[str]] = None
    trusted_audiences: Optional[FrozenSet[str]] = None
    check_expiry: bool = True
    clock_skew: timedelta = DEFAULT_CLOCK_SKEW
    identity: Optional[SigningIdentity] = field(default=None, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "trusted_issuers", _allow_list(self.trusted_issuers))
        object.__setattr__(self, "trusted_audiences", _allow_list(self.trusted_audiences))
        if not isinstance(self.clock_skew, timedelta):
            raise TypeError("clock_skew must be a timedelta")
        if self.clock_skew < timedelta(0):
            raise ValueError("clock_skew must not be negative")

    @property
    def accepts_any_issuer(self) -> bool:
        return self.trusted_issuers is None

    @property
    def accepts_any_audience(self) -> bool:
        return self.trusted_audiences is None

    def with_identity(self, identity: SigningIdentity) -> "ValidationPolicy":
        """Copy of this policy verifying with ``identity``."""
        return replace(self, identity=identity)

    @classmethod
    def from_config(cls, config: TokenServiceConfig, identity: Optional[SigningIdentity] = None) -> "ValidationPolicy":
        return cls(
            trusted_issuers=config.trusted_issuers,
            trusted_audiences=config.trusted_audiences,
            check_expiry=config.check_expiry,
            clock_skew=timedelta(seconds=config.clock_skew_seconds),
            identity=identity,
        )
