"""
Algorithm binding for signing keys.

A SigningIdentity pairs key material with the one JWS algorithm that may be
used with it. The algorithm is derived from the key's shape and size and is
never chosen by the caller.
"""

from __future__ import annotations

import enum
from typing import Any, Optional, Union

from cryptography.hazmat.primitives.asymmetric import rsa

from shared.errors import InvalidKeyError, UnsupportedKeySizeError


class Algorithm(str, enum.Enum):
    """JWS algorithms the binder can select."""

    HS512 = "HS512"
    RS256 = "RS256"
    RS384 = "RS384"
    RS512 = "RS512"


class KeyVisibility(str, enum.Enum):
    """Which half of the key material an identity holds."""

    SYMMETRIC = "symmetric"
    PRIVATE = "private"
    PUBLIC_ONLY = "public_only"


RSA_ALGORITHMS = {
    2048: Algorithm.RS256,
    3072: Algorithm.RS384,
    4096: Algorithm.RS512,
}

# PyJWT refuses these as HMAC secrets; refuse them at bind time instead.
_ASYMMETRIC_MARKERS = (
    b"-----BEGIN ",
    b"ssh-rsa",
    b"ssh-ed25519",
    b"ecdsa-sha2-",
)

SymmetricKey = Union[bytes, bytearray, memoryview, str]
RsaKey = Union[rsa.RSAPrivateKey, rsa.RSAPublicKey]


def select_rsa_algorithm(key_size: Any) -> Algorithm:
    """Return the algorithm for an RSA modulus of ``key_size`` bits."""
    if isinstance(key_size, bool) or not isinstance(key_size, int):
        raise UnsupportedKeySizeError(key_size)
    try:
        return RSA_ALGORITHMS[key_size]
    except KeyError:
        raise UnsupportedKeySizeError(key_size) from None


class SigningIdentity:
    """Key material bound to its single legal algorithm.

    The algorithm and visibility are derived from the key itself; callers
    pass exactly one of ``secret`` or ``rsa_key``. Prefer
    :func:`bind_symmetric` or :func:`bind_asymmetric`, which also accept
    the looser input forms. Instances are immutable apart from :meth:`wipe`.
    """

    __slots__ = ("_algorithm", "_visibility", "_secret", "_rsa_key", "_wiped")

    def __init__(
        self,
        *,
        secret: Optional[bytearray] = None,
        rsa_key: Optional[RsaKey] = None,
    ) -> None:
        if (secret is None) == (rsa_key is None):
            raise InvalidKeyError("Exactly one of a secret or an RSA key is required")

        if secret is not None:
            if not isinstance(secret, bytearray):
                raise InvalidKeyError(
                    "Secret must be a bytearray",
                    details={"type": type(secret).__name__},
                )
            if not secret:
                raise InvalidKeyError("Symmetric key is empty")
            stripped = bytes(secret).lstrip()
            if any(stripped.startswith(marker) for marker in _ASYMMETRIC_MARKERS):
                secret[:] = bytes(len(secret))
                raise InvalidKeyError("Asymmetric key material cannot be used as an HMAC secret")
            self._algorithm = Algorithm.HS512
            self._visibility = KeyVisibility.SYMMETRIC
        elif isinstance(rsa_key, rsa.RSAPrivateKey):
            self._algorithm = select_rsa_algorithm(rsa_key.key_size)
            self._visibility = KeyVisibility.PRIVATE
        elif isinstance(rsa_key, rsa.RSAPublicKey):
            self._algorithm = select_rsa_algorithm(rsa_key.key_size)
            self._visibility = KeyVisibility.PUBLIC_ONLY
        else:
            raise InvalidKeyError(
                "Only RSA keys can be bound asymmetrically",
                details={"type": type(rsa_key).__name__},
            )

        self._secret = secret
        self._rsa_key = rsa_key
        self._wiped = False

    @property
    def algorithm(self) -> Algorithm:
        return self._algorithm

    @property
    def visibility(self) -> KeyVisibility:
        return self._visibility

    @property
    def can_sign(self) -> bool:
        return self._visibility is not KeyVisibility.PUBLIC_ONLY

    @property
    def key_size(self) -> int:
        """Key length in bits."""
        if self._rsa_key is not None:
            return self._rsa_key.key_size
        return len(self._secret or b"") * 8

    @property
    def wiped(self) -> bool:
        return self._wiped

    def signing_key(self) -> Any:
        """Key object to hand to the token codec for signing."""
        self._ensure_usable()
        if self._secret is not None:
            return bytes(self._secret)
        return self._rsa_key

    def verification_key(self) -> Any:
        """Key object to hand to the token codec for verification."""
        self._ensure_usable()
        if self._secret is not None:
            return bytes(self._secret)
        if isinstance(self._rsa_key, rsa.RSAPrivateKey):
            return self._rsa_key.public_key()
        return self._rsa_key

    def public_only(self) -> "SigningIdentity":
        """Derive a verify-only identity from an RSA identity."""
        self._ensure_usable()
        if self._rsa_key is None:
            raise InvalidKeyError("Symmetric keys have no public half")
        return SigningIdentity(rsa_key=self.verification_key())

    def wipe(self) -> None:
        """Zero-fill retained secret bytes and disable the identity."""
        if self._secret is not None:
            self._secret[:] = bytes(len(self._secret))
        self._rsa_key = None
        self._wiped = True

    def _ensure_usable(self) -> None:
        if self._wiped:
            raise InvalidKeyError("Signing identity has been wiped")

    def __repr__(self) -> str:
        return (
            f"SigningIdentity(algorithm={self._algorithm.value}, "
            f"visibility={self._visibility.value}, key_size={self.key_size})"
        )


def bind_symmetric(key: Optional[SymmetricKey], *, wipe_source: bool = True) -> SigningIdentity:
    """Bind a shared secret to HMAC-SHA512.

    The identity keeps its own copy of the secret. When ``key`` is a mutable
    buffer and ``wipe_source`` is true, the caller's buffer is zero-filled
    once copied.
    """
    if key is None:
        raise InvalidKeyError("Symmetric key is missing")

    if isinstance(key, str):
        secret = bytearray(key.encode("utf-8"))
    elif isinstance(key, (bytes, bytearray, memoryview)):
        secret = bytearray(key)
    else:
        raise InvalidKeyError(
            "Symmetric key must be bytes or str",
            details={"type": type(key).__name__},
        )

    if wipe_source and isinstance(key, (bytearray, memoryview)) and not getattr(key, "readonly", False):
        key[:] = bytes(len(key))

    return SigningIdentity(secret=secret)


def bind_asymmetric(key: Optional[RsaKey]) -> SigningIdentity:
    """Bind an RSA key to the algorithm matching its modulus length."""
    if key is None:
        raise InvalidKeyError("RSA key is missing")

    return SigningIdentity(rsa_key=key)
