"""Credential hashing and identifier generation"""

import hashlib
import hmac
from uuid import uuid4

from app.core.config import settings


def hash_credential(credential: str) -> str:
    """
    Hash a source-host credential using HMAC-SHA256 (if SECRET_KEY is set) or SHA-256.

    Only the digest is stored, for traceability of which credential started
    a run. It is never used to authenticate again.

    Args:
        credential: The plain text credential to hash
    Returns:
        str: The hex digest of the hashed credential
    """
    secret = getattr(settings, "SECRET_KEY", None)
    if secret:
        return hmac.new(secret.encode(), credential.encode(), hashlib.sha256).hexdigest()
    return hashlib.sha256(credential.encode()).hexdigest()


def generate_id() -> str:
    """
    Generate an opaque row identifier.
    Returns:
        str: A random UUID4 string (36 chars)
    """
    return str(uuid4())
