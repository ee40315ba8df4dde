"""
Encryption utilities for sensitive data (Conversions API access tokens).
Uses Fernet (symmetric encryption) from cryptography library.
"""
import base64
import hashlib
import logging
from functools import lru_cache

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from pixel_tracker.core.config import settings

logger = logging.getLogger(__name__)

FERNET_PREFIX = "gAAAAA"


@lru_cache(maxsize=4)
def _fernet(secret_key: str) -> Fernet:
    """
    Derive a 32-byte Fernet key from SECRET_KEY with PBKDF2HMAC.
    Cached per secret; derivation is deliberately slow.
    """
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=b'pixel_tracker_token_salt_v1',
        iterations=100000,
    )
    return Fernet(base64.urlsafe_b64encode(kdf.derive(secret_key.encode())))


def encrypt_token(plaintext: str) -> str:
    """
    Encrypt an access token for storage.

    Returns:
        Encrypted token (base64 encoded)
    """
    if not plaintext:
        return plaintext
    return _fernet(settings.SECRET_KEY).encrypt(plaintext.encode()).decode()


def decrypt_token(encrypted: str) -> str:
    """
    Decrypt a stored token.

    Raises:
        ValueError: If decryption fails (invalid key or corrupted data)
    """
    if not encrypted:
        return encrypted
    try:
        return _fernet(settings.SECRET_KEY).decrypt(encrypted.encode()).decode()
    except InvalidToken as e:
        logger.error("Error decrypting token: invalid key or corrupted data")
        raise ValueError("Failed to decrypt token") from e


def is_encrypted(token: str) -> bool:
    """
    Heuristic check based on Fernet token format.
    Fernet tokens start with "gAAAAA" (base64 of version + timestamp).
    """
    return bool(token) and len(token) >= 50 and token.startswith(FERNET_PREFIX)


def reveal_token(stored: str) -> str:
    """Return the plain token whether it was stored encrypted or legacy plain."""
    if is_encrypted(stored):
        return decrypt_token(stored)
    return stored


def hash_identifier(value: str) -> str:
    """
    SHA-256 hex digest of an identifier (fingerprint, visitor id).
    Used for the Conversions API external_id so raw ids never leave the service.
    """
    if not value:
        return ""
    return hashlib.sha256(value.strip().lower().encode()).hexdigest()
