"""
Signing identity package.

Binds raw key material to exactly one JWS algorithm:

- Shared secrets always use HS512.
- RSA keys use RS256, RS384 or RS512 for 2048, 3072 or 4096-bit moduli;
  every other size is refused.

Binding is pure: no I/O and no global state.
"""

from .identity import (
    Algorithm,
    KeyVisibility,
    SigningIdentity,
    bind_asymmetric,
    bind_symmetric,
    select_rsa_algorithm,
)
from .keys import bind_pem, load_rsa_key

__all__ = [
    "Algorithm",
    "KeyVisibility",
    "SigningIdentity",
    "bind_asymmetric",
    "bind_pem",
    "bind_symmetric",
    "load_rsa_key",
    "select_rsa_algorithm",
]
