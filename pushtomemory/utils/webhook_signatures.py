"""
Webhook signature validation - verify incoming GitHub webhooks are authentic.

GitHub signs the raw request body with HMAC-SHA256 using the hook's shared
secret and sends it as X-Hub-Signature-256: sha256=<hex>. The body must be the
exact bytes received; re-serialized JSON will not match.
"""
import hashlib
import hmac
import logging
import secrets

logger = logging.getLogger(__name__)

SIGNATURE_PREFIX = "sha256="


def sign_github_payload(body: bytes, secret: str) -> str:
    """Compute the X-Hub-Signature-256 header value for a raw body."""
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return f"{SIGNATURE_PREFIX}{digest}"


def verify_github_signature(body: bytes, signature: str, secret: str) -> bool:
    """
    Validate a GitHub X-Hub-Signature-256 header against the raw body.
    Returns True if valid, False if missing, mismatched, or on error. Never raises.
    """
    if not secret or not signature:
        return False

    try:
        expected = sign_github_payload(body, secret).encode("utf-8")
        provided = signature.encode("utf-8")
        if len(expected) != len(provided):
            return False
        return hmac.compare_digest(expected, provided)
    except Exception as e:
        logger.error("GitHub signature validation error: %s", str(e))
        return False


def generate_webhook_secret() -> str:
    """32 random bytes, hex encoded (64 chars)."""
    return secrets.token_hex(32)
