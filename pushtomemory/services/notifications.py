"""
Notification service - tells the owner a new push is waiting for a reflection.

Delivery is handled by an external push-send service; this module only makes
one best-effort POST to it. Failures are logged and swallowed: the reflection
is already stored and that is what the webhook caller cares about.
"""
import asyncio
import logging

import httpx

logger = logging.getLogger(__name__)

NOTIFICATION_TITLE = "New Code Changes"

# Detached notification tasks; held so they are not garbage collected mid-flight
_pending_tasks: set[asyncio.Task] = set()


def build_notification(user_id: str, repository_name: str, reflection_id: str) -> dict:
    return {
        "userId": user_id,
        "title": NOTIFICATION_TITLE,
        "body": f"You have new changes to reflect on in {repository_name}",
        "url": f"/dashboard#{reflection_id}",
    }


async def notify_new_reflection(user_id: str, repository_name: str, reflection_id: str) -> bool:
    """Send one notification request. Returns True on success, never raises."""
    from pushtomemory.config import get_settings
    settings = get_settings()

    if not settings.notification_service_url:
        logger.debug("NOTIFICATION_SERVICE_URL not set - skipping notification")
        return False

    payload = build_notification(user_id, repository_name, reflection_id)
    try:
        async with httpx.AsyncClient(timeout=settings.notification_timeout_seconds) as client:
            response = await client.post(settings.notification_service_url, json=payload)
        if response.status_code >= 400:
            logger.error(
                "Push notification failed: status=%d body=%s",
                response.status_code, response.text[:200],
                extra={"reflection_id": reflection_id, "user_id": user_id, "status_code": response.status_code},
            )
            return False
        logger.info(
            "Push notification sent",
            extra={"reflection_id": reflection_id, "user_id": user_id},
        )
        return True
    except Exception as e:
        logger.error(
            "Error sending push notification: %s", str(e),
            extra={"reflection_id": reflection_id, "user_id": user_id},
        )
        return False


def dispatch_reflection_notification(user_id: str, repository_name: str, reflection_id: str) -> asyncio.Task:
    """Schedule notify_new_reflection without waiting for it."""
    task = asyncio.create_task(notify_new_reflection(user_id, repository_name, reflection_id))
    _pending_tasks.add(task)
    task.add_done_callback(_pending_tasks.discard)
    return task


async def drain_pending_notifications(timeout: float = 5.0) -> int:
    """Wait for in-flight notifications on shutdown; cancel stragglers. Returns count cancelled."""
    if not _pending_tasks:
        return 0
    done, pending = await asyncio.wait(set(_pending_tasks), timeout=timeout)
    for task in pending:
        task.cancel()
    if pending:
        await asyncio.gather(*pending, return_exceptions=True)
        logger.warning("Cancelled %d pending notifications on shutdown", len(pending))
    return len(pending)
