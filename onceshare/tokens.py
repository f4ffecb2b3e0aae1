"""Unguessable access tokens for the shared URL."""

import base64
import secrets

from .errors import TokenGenerationError


TOKEN_BYTES = 32


def generate(nbytes: int = TOKEN_BYTES) -> str:
    """Return a base64url token (no padding) built from `nbytes` of CSPRNG output."""
    if int(nbytes) < TOKEN_BYTES:
        raise ValueError(f"token must carry at least {TOKEN_BYTES * 8} bits")
    try:
        raw = secrets.token_bytes(int(nbytes))
    except (NotImplementedError, OSError) as e:
        raise TokenGenerationError(f"random source unavailable: {e}") from e
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")
