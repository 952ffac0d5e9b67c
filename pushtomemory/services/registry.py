"""
Webhook registry - stores which user trusts which GitHub source, and resolves
inbound deliveries back to those registrations.

Lookup order for a delivery: the organization login (if the payload carries
one), then the repository owner/name. An unmatched source is routine (stale
hook, misdelivery) and is reported as "no registration", not an error.
"""
import hashlib
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select, and_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from pushtomemory.models.webhook_registration import (
    WebhookRegistration,
    SOURCE_ORGANIZATION,
    SOURCE_REPOSITORY,
    SOURCE_KINDS,
)
from pushtomemory.schemas.github_events import MalformedPayloadError
from pushtomemory.utils.encryption import encrypt_value, decrypt_value

logger = logging.getLogger(__name__)


class RegistrationExistsError(Exception):
    """The user already has a registration for this source."""


@dataclass(frozen=True)
class SourceRef:
    kind: str
    key: str
    label: str


def organization_key(organization: str) -> str:
    # GitHub logins are case-insensitive
    return organization.strip().lower()


def repository_key(owner: str, repository: str) -> str:
    return f"{owner.strip()}/{repository.strip()}".lower()


def make_registration_id(source_kind: str, source_key: str, user_id: str) -> str:
    """Stable id for the (source, user) pair."""
    digest = hashlib.sha256(f"{source_kind}:{source_key}:{user_id}".encode()).hexdigest()
    return f"{source_kind}-{digest[:32]}"


def _non_empty_str(value) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def extract_sources(payload: dict) -> list[SourceRef]:
    """
    Candidate sources for a delivery, most specific trust first:
    organization (when present), then repository.
    Raises MalformedPayloadError if neither can be determined.
    """
    sources: list[SourceRef] = []

    organization = payload.get("organization")
    if isinstance(organization, dict):
        login = _non_empty_str(organization.get("login"))
        if login:
            sources.append(SourceRef(SOURCE_ORGANIZATION, organization_key(login), login))

    repository = payload.get("repository")
    if isinstance(repository, dict):
        owner = repository.get("owner")
        owner_name = None
        if isinstance(owner, dict):
            owner_name = _non_empty_str(owner.get("name")) or _non_empty_str(owner.get("login"))
        repo_name = _non_empty_str(repository.get("name"))
        if owner_name and repo_name:
            sources.append(SourceRef(
                SOURCE_REPOSITORY,
                repository_key(owner_name, repo_name),
                f"{owner_name}/{repo_name}",
            ))

    if not sources:
        raise MalformedPayloadError("No organization or repository found in webhook payload")
    return sources


async def list_by_source(
    db: AsyncSession, source_kind: str, source_key: str,
) -> list[WebhookRegistration]:
    """All registrations for a source, oldest first."""
    result = await db.execute(
        select(WebhookRegistration)
        .where(and_(
            WebhookRegistration.source_kind == source_kind,
            WebhookRegistration.source_key == source_key,
        ))
        .order_by(WebhookRegistration.created_at)
    )
    return list(result.scalars().all())


async def get_user_registration(
    db: AsyncSession, user_id: str, source_kind: str, source_key: str,
) -> Optional[WebhookRegistration]:
    return await db.get(WebhookRegistration, make_registration_id(source_kind, source_key, user_id))


async def list_user_registrations(db: AsyncSession, user_id: str) -> list[WebhookRegistration]:
    result = await db.execute(
        select(WebhookRegistration)
        .where(WebhookRegistration.user_id == user_id)
        .order_by(WebhookRegistration.created_at.desc())
    )
    return list(result.scalars().all())


async def store_registration(
    db: AsyncSession,
    *,
    user_id: str,
    source_kind: str,
    source_key: str,
    github_hook_id: int,
    secret: str,
    organization_name: Optional[str] = None,
    repository_owner: Optional[str] = None,
    repository_name: Optional[str] = None,
) -> WebhookRegistration:
    """Persist a new registration. Raises RegistrationExistsError on duplicates."""
    if source_kind not in SOURCE_KINDS:
        raise ValueError(f"Unknown source kind: {source_kind!r}")

    registration = WebhookRegistration(
        id=make_registration_id(source_kind, source_key, user_id),
        source_kind=source_kind,
        source_key=source_key,
        organization_name=organization_name,
        repository_owner=repository_owner,
        repository_name=repository_name,
        github_hook_id=github_hook_id,
        secret_encrypted=encrypt_value(secret),
        user_id=user_id,
    )
    try:
        async with db.begin_nested():
            db.add(registration)
    except IntegrityError:
        raise RegistrationExistsError(f"{source_kind} {source_key} is already connected")

    logger.info(
        "Webhook registration stored: %s %s hook=%s",
        source_kind, source_key, github_hook_id,
        extra={"user_id": user_id, "source": source_key},
    )
    return registration


async def delete_registration(db: AsyncSession, registration: WebhookRegistration) -> None:
    await db.delete(registration)
    await db.flush()
    logger.info(
        "Webhook registration deleted: %s %s",
        registration.source_kind, registration.source_key,
        extra={"user_id": registration.user_id, "source": registration.source_key},
    )


def registration_secret(registration: WebhookRegistration) -> str:
    """Plaintext shared secret, for signature verification only. Raises SecretDecryptionError."""
    return decrypt_value(registration.secret_encrypted) or ""
