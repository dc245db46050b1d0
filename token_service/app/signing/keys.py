"""
PEM loading helpers for RSA signing keys.
"""

from __future__ import annotations

from typing import Optional, Union

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from shared.errors import InvalidKeyError
from .identity import RsaKey, SigningIdentity, bind_asymmetric


def load_rsa_key(pem: Union[bytes, str], password: Optional[bytes] = None) -> RsaKey:
    """Load an RSA private or public key from PEM text."""
    if not pem:
        raise InvalidKeyError("PEM data is empty")
    if isinstance(pem, str):
        pem = pem.encode("ascii")

    if b"PRIVATE KEY" in pem:
        try:
            key = serialization.load_pem_private_key(pem, password=password)
        except (ValueError, TypeError) as exc:
            raise InvalidKeyError("Could not load PEM private key", details={"error": str(exc)}) from exc
    else:
        try:
            key = serialization.load_pem_public_key(pem)
        except ValueError as exc:
            raise InvalidKeyError("Could not load PEM public key", details={"error": str(exc)}) from exc

    if not isinstance(key, (rsa.RSAPrivateKey, rsa.RSAPublicKey)):
        raise InvalidKeyError("PEM does not contain an RSA key", details={"type": type(key).__name__})
    return key


def bind_pem(pem: Union[bytes, str], password: Optional[bytes] = None) -> SigningIdentity:
    """Load a PEM-encoded RSA key and bind it."""
    return bind_asymmetric(load_rsa_key(pem, password=password))
