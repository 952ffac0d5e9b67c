"""
Reflection lifecycle - create one record per push, let the owner write on it.

Creation is replay-safe: the record id is derived from repository name and
first commit id, so a redelivered push resolves to the existing row and leaves
it untouched (commits, reflection text, status and created_at are never
overwritten).

Status moves pending -> completed (requires text) or pending -> skipped (text
cleared). Owners may re-edit completed/skipped records; nothing moves back to
pending.
"""
import logging
import re
from datetime import datetime, timezone
from typing import Optional, Sequence

from sqlalchemy import select, and_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from pushtomemory.models.push_reflection import (
    PushReflection,
    STATUS_PENDING,
    STATUS_COMPLETED,
    STATUS_SKIPPED,
)
from pushtomemory.schemas.github_events import PushCommit

logger = logging.getLogger(__name__)

_UNSAFE_KEY_CHARS = re.compile(r"[^a-zA-Z0-9-]")


class ReflectionNotFoundError(Exception):
    """No reflection with the given id."""


class InvalidReflectionUpdateError(ValueError):
    """Update would violate reflection status rules."""


def sanitize_key(value: str) -> str:
    """Strip everything outside [A-Za-z0-9-]."""
    return _UNSAFE_KEY_CHARS.sub("", value or "")


def make_reflection_id(repository_name: str, first_commit_id: str) -> str:
    return f"{sanitize_key(repository_name)}-{sanitize_key(first_commit_id)}"


async def create_push_reflection(
    db: AsyncSession,
    user_id: str,
    repository_name: str,
    commits: Sequence[PushCommit],
) -> tuple[str, bool]:
    """
    Create the reflection for a push if it does not exist yet.

    Returns (reflection_id, created). created is False when the push was
    already recorded (redelivery or a concurrent delivery won the insert).
    """
    if not commits:
        raise ValueError("Cannot create a reflection for a push without commits")

    reflection_id = make_reflection_id(repository_name, commits[0].id)

    existing = await db.get(PushReflection, reflection_id)
    if existing is not None:
        logger.info(
            "Reflection already exists for %s, skipping",
            repository_name,
            extra={"reflection_id": reflection_id, "user_id": user_id},
        )
        return reflection_id, False

    now = datetime.now(timezone.utc)
    reflection = PushReflection(
        id=reflection_id,
        user_id=user_id,
        repository_name=repository_name,
        commits=[commit.model_dump(mode="json") for commit in commits],
        reflection="",
        status=STATUS_PENDING,
        created_at=now,
        updated_at=now,
    )

    # Savepoint: losing the insert race must not roll back the caller's transaction
    try:
        async with db.begin_nested():
            db.add(reflection)
    except IntegrityError:
        logger.info(
            "Reflection inserted concurrently for %s",
            repository_name,
            extra={"reflection_id": reflection_id, "user_id": user_id},
        )
        return reflection_id, False

    logger.info(
        "Push reflection created for %s (%d commits)",
        repository_name, len(commits),
        extra={"reflection_id": reflection_id, "user_id": user_id, "commit_count": len(commits)},
    )
    return reflection_id, True


async def get_reflection(db: AsyncSession, reflection_id: str) -> Optional[PushReflection]:
    key = sanitize_key(reflection_id)
    if not key:
        return None
    return await db.get(PushReflection, key)


async def list_user_reflections(
    db: AsyncSession,
    user_id: str,
    repository_name: Optional[str] = None,
) -> list[PushReflection]:
    """Newest first, optionally limited to one repository."""
    conditions = [PushReflection.user_id == user_id]
    if repository_name:
        conditions.append(PushReflection.repository_name == repository_name)

    result = await db.execute(
        select(PushReflection)
        .where(and_(*conditions))
        .order_by(PushReflection.created_at.desc())
    )
    return list(result.scalars().all())


async def update_reflection(
    db: AsyncSession,
    reflection_id: str,
    reflection: str,
    status: str = STATUS_COMPLETED,
) -> PushReflection:
    """
    Attach the owner's reflection text and status to an existing record.
    Never creates a record. Commits, created_at and user_id are not touched.
    """
    record = await get_reflection(db, reflection_id)
    if record is None:
        raise ReflectionNotFoundError(f"Reflection {reflection_id!r} not found")

    if status not in (STATUS_COMPLETED, STATUS_SKIPPED):
        raise InvalidReflectionUpdateError(f"Cannot set reflection status to '{status}'")

    text = reflection or ""
    if status == STATUS_COMPLETED and not text.strip():
        raise InvalidReflectionUpdateError("A completed reflection needs some text")
    if status == STATUS_SKIPPED:
        text = ""

    record.reflection = text
    record.status = status
    record.updated_at = datetime.now(timezone.utc)
    await db.flush()

    logger.info(
        "Reflection updated: status=%s",
        status,
        extra={"reflection_id": record.id, "user_id": record.user_id},
    )
    return record
