"""
Ordered multimap of string claims and its JSON payload mapping.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Iterable, Iterator, List, Mapping, NamedTuple, Optional, Tuple, Union

from shared.errors import InvalidClaimError

REGISTERED_CLAIMS = frozenset({"iss", "aud", "exp", "nbf", "iat"})


class Claim(NamedTuple):
    """A single typed claim, e.g. ``Claim("role", "admin")``."""

    type: str
    value: str


ClaimsInput = Union[
    "ClaimSet",
    Mapping[str, Union[str, Iterable[str]]],
    Iterable[Union[Claim, Tuple[str, str]]],
]


class ClaimSet:
    """Immutable ordered multimap of claims; a claim type may repeat.

    In a token payload all values of one type share a single JSON member, so
    a round trip through :meth:`to_payload` and :meth:`from_payload` keeps
    the order of values within each type and orders types by first
    appearance. Claims of different types that were interleaved come back
    grouped by type.
    """

    __slots__ = ("_claims",)

    def __init__(self, claims: Iterable[Claim] = ()) -> None:
        self._claims: Tuple[Claim, ...] = tuple(claims)

    @classmethod
    def of(cls, claims: Optional[ClaimsInput] = None) -> "ClaimSet":
        """Build a claim set from a mapping, pairs or Claim objects.

        Mapping values that are lists or tuples expand into repeated claims.
        Types and values must be strings.
        """
        if claims is None:
            return cls()
        if isinstance(claims, ClaimSet):
            return claims

        items: List[Claim] = []
        if isinstance(claims, Mapping):
            for claim_type, value in claims.items():
                if isinstance(value, (list, tuple)):
                    items.extend(_checked(claim_type, v) for v in value)
                else:
                    items.append(_checked(claim_type, value))
        else:
            for pair in claims:
                try:
                    claim_type, value = pair
                except (TypeError, ValueError):
                    raise InvalidClaimError(
                        "Claims must be (type, value) pairs",
                        details={"claim": repr(pair)},
                    ) from None
                items.append(_checked(claim_type, value))
        return cls(items)

    def first(self, claim_type: str) -> Optional[Claim]:
        """First claim of ``claim_type`` in insertion order, or None."""
        for claim in self._claims:
            if claim.type == claim_type:
                return claim
        return None

    def get_all(self, claim_type: str) -> List[str]:
        return [claim.value for claim in self._claims if claim.type == claim_type]

    def types(self) -> List[str]:
        """Distinct claim types in order of first appearance."""
        seen: Dict[str, None] = {}
        for claim in self._claims:
            seen.setdefault(claim.type, None)
        return list(seen)

    def to_payload(self) -> Dict[str, Union[str, List[str]]]:
        """JSON payload fragment: repeated types become string arrays."""
        payload: Dict[str, Union[str, List[str]]] = {}
        for claim_type in self.types():
            values = self.get_all(claim_type)
            payload[claim_type] = values[0] if len(values) == 1 else values
        return payload

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "ClaimSet":
        """Materialise the non-registered claims of a decoded payload."""
        items: List[Claim] = []
        for claim_type, value in payload.items():
            if claim_type in REGISTERED_CLAIMS:
                continue
            if isinstance(value, list):
                items.extend(Claim(claim_type, _as_string(v)) for v in value)
            else:
                items.append(Claim(claim_type, _as_string(value)))
        return cls(items)

    def __iter__(self) -> Iterator[Claim]:
        return iter(self._claims)

    def __len__(self) -> int:
        return len(self._claims)

    def __bool__(self) -> bool:
        return bool(self._claims)

    def __contains__(self, claim_type: object) -> bool:
        return any(claim.type == claim_type for claim in self._claims)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ClaimSet):
            return NotImplemented
        return self._claims == other._claims

    def __hash__(self) -> int:
        return hash(self._claims)

    def __repr__(self) -> str:
        return f"ClaimSet({list(self._claims)!r})"


def _checked(claim_type: Any, value: Any) -> Claim:
    if not isinstance(claim_type, str) or not claim_type:
        raise InvalidClaimError("Claim types must be non-empty strings", details={"type": repr(claim_type)})
    if claim_type in REGISTERED_CLAIMS:
        raise InvalidClaimError(
            f"'{claim_type}' is a registered claim and is set by the engine",
            details={"type": claim_type},
        )
    if not isinstance(value, str):
        raise InvalidClaimError(
            f"Value of claim '{claim_type}' must be a string",
            details={"type": claim_type, "value_type": type(value).__name__},
        )
    return Claim(claim_type, value)


def _as_string(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if isinstance(value, (int, float)):
        return str(value)
    return json.dumps(value, separators=(",", ":"), sort_keys=True)
