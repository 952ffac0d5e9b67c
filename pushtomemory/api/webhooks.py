"""
GitHub webhook endpoint - turns push deliveries into reflection records.

Pipeline (in order):
1. Coarse rate limiting per IP (GitHub delivers from a shared pool)
2. Parse JSON, extract the source (organization, then repository), and
   rate limit per source
3. Registry lookup - 404 if nobody connected this source
4. Signature validation against the registration's secret - 401 on mismatch
5. Route the event; for pushes with commits, create the reflection
6. Commit, then fire the owner notification without waiting on it

Responses are terse JSON: {"message": ...} on success, {"error": ...} otherwise.
"""
import json
import logging
from typing import Optional

from fastapi import APIRouter, Request, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from pushtomemory.database import get_db
from pushtomemory.models.webhook_registration import WebhookRegistration
from pushtomemory.schemas.github_events import MalformedPayloadError
from pushtomemory.services.event_router import EventAction, route_event
from pushtomemory.services.notifications import dispatch_reflection_notification
from pushtomemory.services.reflections import create_push_reflection
from pushtomemory.services.registry import (
    SourceRef,
    extract_sources,
    list_by_source,
    registration_secret,
)
from pushtomemory.utils.encryption import SecretDecryptionError
from pushtomemory.utils.rate_limiter import check_source_rate_limit, check_webhook_rate_limit
from pushtomemory.utils.webhook_signatures import verify_github_signature

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/webhook", tags=["webhooks"])

REFLECTION_CREATED_MESSAGE = "Push reflection created successfully"


def _error(status_code: int, message: str, headers: Optional[dict] = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message}, headers=headers)


async def _find_candidates(
    db: AsyncSession, sources: list[SourceRef],
) -> list[WebhookRegistration]:
    """Registrations for every candidate source, in preference order."""
    candidates: list[WebhookRegistration] = []
    for source in sources:
        candidates.extend(await list_by_source(db, source.kind, source.key))
    return candidates


def _match_signature(
    candidates: list[WebhookRegistration], body: bytes, signature: str,
) -> Optional[WebhookRegistration]:
    """First registration whose secret produced this signature."""
    if not signature:
        return None
    for registration in candidates:
        try:
            secret = registration_secret(registration)
        except SecretDecryptionError:
            # Unreadable secret (rotated ENCRYPTION_KEY); other candidates may still match
            logger.error(
                "Skipping registration %s: stored secret cannot be decrypted",
                registration.id, extra={"user_id": registration.user_id},
            )
            continue
        if verify_github_signature(body, signature, secret):
            return registration
    return None


@router.post("/github")
async def github_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    """Receive a GitHub delivery (ping, push, or anything else the hook sends)."""
    client_ip = request.client.host if request.client else "unknown"
    allowed, retry_after = await check_webhook_rate_limit(client_ip)
    if not allowed:
        return _error(429, "Rate limit exceeded", headers={"Retry-After": str(retry_after or 60)})

    event_type = request.headers.get("X-GitHub-Event", "")
    delivery_id = request.headers.get("X-GitHub-Delivery", "")
    signature = request.headers.get("X-Hub-Signature-256", "")
    log_extra = {"event_type": event_type, "delivery_id": delivery_id}

    try:
        body = await request.body()

        try:
            payload = json.loads(body)
        except ValueError:
            logger.warning("Unparsable webhook body", extra=log_extra)
            return _error(400, "Invalid JSON payload")
        if not isinstance(payload, dict):
            return _error(400, "Invalid JSON payload")

        try:
            sources = extract_sources(payload)
        except MalformedPayloadError as e:
            logger.warning("Webhook without a source: %s", str(e), extra=log_extra)
            return _error(400, str(e))

        source_label = sources[0].label
        log_extra["source"] = source_label

        allowed, retry_after = await check_source_rate_limit(sources[0].kind, sources[0].key)
        if not allowed:
            logger.warning("Webhook rate limit hit for %s", source_label, extra=log_extra)
            return _error(429, "Rate limit exceeded", headers={"Retry-After": str(retry_after or 60)})

        candidates = await _find_candidates(db, sources)
        if not candidates:
            logger.warning("No webhook registered for %s", source_label, extra=log_extra)
            return _error(404, "No webhook found for this source")

        registration = _match_signature(candidates, body, signature)
        if registration is None:
            logger.warning(
                "Invalid webhook signature: source=%s ip=%s", source_label, client_ip,
                extra=log_extra,
            )
            return _error(401, "Invalid webhook signature")

        try:
            routed = route_event(event_type, payload)
        except MalformedPayloadError as e:
            logger.warning("Malformed %s payload: %s", event_type, str(e), extra=log_extra)
            return _error(400, str(e))

        if routed.action is EventAction.ACKNOWLEDGE:
            logger.info("Webhook acknowledged: %s", routed.message, extra=log_extra)
            return {"message": routed.message}

        push = routed.event
        user_id = registration.user_id
        log_extra["commit_count"] = len(push.commits)
        reflection_id, created = await create_push_reflection(
            db, user_id, push.repository.name, push.commits,
        )
        await db.commit()

        if created:
            dispatch_reflection_notification(user_id, push.repository.name, reflection_id)

        logger.info(
            "Push processed for %s (created=%s)", push.repository.name, created,
            extra={**log_extra, "reflection_id": reflection_id, "user_id": user_id},
        )
        return {"message": REFLECTION_CREATED_MESSAGE, "reflectionId": reflection_id}
    except Exception as e:
        logger.error("Error processing webhook: %s", str(e), exc_info=True, extra=log_extra)
        await db.rollback()
        return _error(500, "Error processing webhook")
