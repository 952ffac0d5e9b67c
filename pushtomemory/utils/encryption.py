"""
Webhook secret sealing - Fernet encryption with the configured ENCRYPTION_KEY.

Without a key, secrets are stored as-is (development only; startup warns).
A stored value that looks like a Fernet token but will not decrypt means the
key changed: that raises SecretDecryptionError instead of handing ciphertext
to the signature check, where it would silently fail every delivery.
"""
import logging
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

logger = logging.getLogger(__name__)

# Fernet tokens are urlsafe base64 of a version byte 0x80 + timestamp
FERNET_TOKEN_PREFIX = "gAAAAA"


class SecretEncryptionError(Exception):
    """A secret could not be encrypted for storage."""


class SecretDecryptionError(Exception):
    """A stored secret is encrypted but cannot be decrypted with the current key."""


def _get_fernet() -> Optional[Fernet]:
    from pushtomemory.config import get_settings
    key = get_settings().encryption_key
    if not key:
        return None
    return Fernet(key.encode() if isinstance(key, str) else key)


def looks_encrypted(value: str) -> bool:
    return bool(value) and value.startswith(FERNET_TOKEN_PREFIX)


def encrypt_value(plaintext: str) -> str:
    """Seal a secret for storage. Raises SecretEncryptionError; never stores plaintext on failure."""
    if not plaintext:
        return plaintext

    try:
        fernet = _get_fernet()
        if fernet is None:
            logger.warning("ENCRYPTION_KEY not configured - storing webhook secret unencrypted")
            return plaintext
        return fernet.encrypt(plaintext.encode()).decode()
    except (ValueError, TypeError) as e:
        # Malformed ENCRYPTION_KEY
        logger.error("Webhook secret encryption failed: %s", str(e))
        raise SecretEncryptionError("Webhook secret could not be encrypted") from e


def decrypt_value(stored: str) -> Optional[str]:
    """
    Open a stored secret. Values written without a key pass through unchanged.
    Raises SecretDecryptionError when a sealed value cannot be opened.
    """
    if not stored:
        return stored

    if not looks_encrypted(stored):
        return stored

    try:
        fernet = _get_fernet()
    except (ValueError, TypeError) as e:
        logger.error("ENCRYPTION_KEY is malformed: %s", str(e))
        raise SecretDecryptionError("ENCRYPTION_KEY is malformed") from e

    if fernet is None:
        logger.error("Stored webhook secret is encrypted but ENCRYPTION_KEY is not configured")
        raise SecretDecryptionError("ENCRYPTION_KEY is not configured")

    try:
        return fernet.decrypt(stored.encode()).decode()
    except InvalidToken as e:
        logger.error("Stored webhook secret cannot be decrypted - was ENCRYPTION_KEY rotated?")
        raise SecretDecryptionError("Stored webhook secret cannot be decrypted") from e
