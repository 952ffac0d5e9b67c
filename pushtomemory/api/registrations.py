"""
Source connection endpoints - connect/disconnect GitHub organizations and
repositories for the authenticated owner.

Connecting creates a hook on GitHub with a fresh shared secret and stores the
registration. The secret is returned in that one response and never again.
Disconnecting is idempotent: an unknown registration or a hook GitHub already
removed both count as success.
"""
import logging
from typing import Awaitable

from fastapi import APIRouter, Depends, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from pushtomemory.api.auth import get_current_user_id
from pushtomemory.config import get_settings
from pushtomemory.database import get_db
from pushtomemory.models.webhook_registration import SOURCE_ORGANIZATION, SOURCE_REPOSITORY
from pushtomemory.schemas.api_responses import (
    MessageResponse,
    OrganizationRegistrationRequest,
    RegistrationCreated,
    RegistrationListResponse,
    RegistrationSummary,
    RepositoryRegistrationRequest,
)
from pushtomemory.services.github import GitHubAPIError, GitHubClient
from pushtomemory.services.registry import (
    RegistrationExistsError,
    delete_registration,
    get_user_registration,
    list_user_registrations,
    organization_key,
    repository_key,
    store_registration,
)
from pushtomemory.utils.webhook_signatures import generate_webhook_secret

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1", tags=["registrations"])

DELETED_MESSAGE = "Webhook deleted successfully"


def _github_error(e: GitHubAPIError) -> HTTPException:
    return HTTPException(status_code=502, detail=str(e))


async def _discard_hook(delete_call: Awaitable[None], hook_id: int) -> None:
    """Remove a hook we created but could not record; failures only log."""
    try:
        await delete_call
    except GitHubAPIError as e:
        logger.warning("Could not remove orphaned hook %s: %s", hook_id, str(e))


@router.get("/webhooks", response_model=RegistrationListResponse)
async def list_registrations(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Sources the owner has connected. Secrets are never included."""
    registrations = await list_user_registrations(db, user_id)
    return RegistrationListResponse(
        registrations=[RegistrationSummary.model_validate(r) for r in registrations],
    )


@router.post("/webhooks/organizations", response_model=RegistrationCreated)
async def connect_organization(
    payload: OrganizationRegistrationRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    key = organization_key(payload.organization)
    if await get_user_registration(db, user_id, SOURCE_ORGANIZATION, key):
        raise HTTPException(status_code=409, detail="Organization is already connected")

    secret = generate_webhook_secret()
    github = GitHubClient(payload.token)
    try:
        hook_id = await github.create_organization_hook(
            payload.organization, get_settings().webhook_callback_url, secret,
        )
    except GitHubAPIError as e:
        raise _github_error(e)

    try:
        registration = await store_registration(
            db,
            user_id=user_id,
            source_kind=SOURCE_ORGANIZATION,
            source_key=key,
            github_hook_id=hook_id,
            secret=secret,
            organization_name=payload.organization,
        )
    except RegistrationExistsError:
        # Another request connected it first; drop the hook we just made
        await _discard_hook(github.delete_organization_hook(payload.organization, hook_id), hook_id)
        raise HTTPException(status_code=409, detail="Organization is already connected")
    except Exception:
        await _discard_hook(github.delete_organization_hook(payload.organization, hook_id), hook_id)
        raise

    return RegistrationCreated(id=registration.id, hook_id=hook_id, secret=secret)


@router.post("/webhooks/repositories", response_model=RegistrationCreated)
async def connect_repository(
    payload: RepositoryRegistrationRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    key = repository_key(payload.owner, payload.repository)
    if await get_user_registration(db, user_id, SOURCE_REPOSITORY, key):
        raise HTTPException(status_code=409, detail="Repository is already connected")

    secret = generate_webhook_secret()
    github = GitHubClient(payload.token)
    try:
        hook_id = await github.create_repository_hook(
            payload.owner, payload.repository, get_settings().webhook_callback_url, secret,
        )
    except GitHubAPIError as e:
        raise _github_error(e)

    try:
        registration = await store_registration(
            db,
            user_id=user_id,
            source_kind=SOURCE_REPOSITORY,
            source_key=key,
            github_hook_id=hook_id,
            secret=secret,
            repository_owner=payload.owner,
            repository_name=payload.repository,
        )
    except RegistrationExistsError:
        await _discard_hook(
            github.delete_repository_hook(payload.owner, payload.repository, hook_id), hook_id,
        )
        raise HTTPException(status_code=409, detail="Repository is already connected")
    except Exception:
        await _discard_hook(
            github.delete_repository_hook(payload.owner, payload.repository, hook_id), hook_id,
        )
        raise

    return RegistrationCreated(id=registration.id, hook_id=hook_id, secret=secret)


@router.post("/webhooks/organizations/delete", response_model=MessageResponse)
async def disconnect_organization(
    payload: OrganizationRegistrationRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    registration = await get_user_registration(
        db, user_id, SOURCE_ORGANIZATION, organization_key(payload.organization),
    )
    if registration is None:
        return MessageResponse(message=DELETED_MESSAGE)

    try:
        await GitHubClient(payload.token).delete_organization_hook(
            registration.organization_name, registration.github_hook_id,
        )
    except GitHubAPIError as e:
        raise _github_error(e)

    await delete_registration(db, registration)
    return MessageResponse(message=DELETED_MESSAGE)


@router.post("/webhooks/repositories/delete", response_model=MessageResponse)
async def disconnect_repository(
    payload: RepositoryRegistrationRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    registration = await get_user_registration(
        db, user_id, SOURCE_REPOSITORY, repository_key(payload.owner, payload.repository),
    )
    if registration is None:
        return MessageResponse(message=DELETED_MESSAGE)

    try:
        await GitHubClient(payload.token).delete_repository_hook(
            registration.repository_owner, registration.repository_name, registration.github_hook_id,
        )
    except GitHubAPIError as e:
        raise _github_error(e)

    await delete_registration(db, registration)
    return MessageResponse(message=DELETED_MESSAGE)


@router.get("/github/organizations")
async def list_github_organizations(
    x_github_token: str = Header(..., alias="X-GitHub-Token"),
    user_id: str = Depends(get_current_user_id),
):
    """Organizations the GitHub user belongs to, for the connect picker."""
    try:
        organizations = await GitHubClient(x_github_token).list_user_organizations()
    except GitHubAPIError as e:
        raise _github_error(e)
    return {
        "organizations": [
            {"login": org.get("login"), "avatar_url": org.get("avatar_url")}
            for org in organizations
        ],
    }
