"""PKCE ``code_verifier`` / ``code_challenge`` generation (:rfc:`7636`, S256)."""

from __future__ import annotations

import base64
import hashlib
import secrets

from spotctl.models import PKCEPair

VERIFIER_BYTES = 32
"""Random bytes behind each verifier; 32 bytes encode to 43 characters."""


def _b64url_nopad(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def code_challenge(verifier: str) -> str:
    """Return the S256 challenge for *verifier*.

    ``BASE64URL-NOPAD(SHA256(ASCII(verifier)))``.
    """
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return _b64url_nopad(digest)


def new_pkce() -> PKCEPair:
    """Generate a fresh PKCE pair for one authorization attempt.

    Returns:
        A :class:`~spotctl.models.PKCEPair` whose verifier is 43 URL-safe
        characters.
    """
    verifier = _b64url_nopad(secrets.token_bytes(VERIFIER_BYTES))
    return PKCEPair(verifier=verifier, challenge=code_challenge(verifier))
