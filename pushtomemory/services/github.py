"""
GitHub REST API integration - webhook management on behalf of a user.

Auth: Bearer token (the user's GitHub OAuth access token).
Docs: https://docs.github.com/en/rest/orgs/webhooks, https://docs.github.com/en/rest/repos/webhooks
"""
import logging
from typing import Optional
from urllib.parse import quote

import httpx

logger = logging.getLogger(__name__)

GITHUB_ACCEPT = "application/vnd.github+json"
HOOK_EVENTS = ["push"]


class GitHubAPIError(Exception):
    """GitHub rejected a request or could not be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def _hook_config(callback_url: str, secret: str) -> dict:
    return {
        "name": "web",
        "active": True,
        "events": HOOK_EVENTS,
        "config": {
            "url": callback_url,
            "content_type": "json",
            "secret": secret,
            "insecure_ssl": "0",
        },
    }


def _error_message(response: httpx.Response) -> str:
    try:
        return response.json().get("message") or response.reason_phrase
    except ValueError:
        return response.reason_phrase or "Unknown error"


class GitHubClient:
    """Thin async wrapper around the GitHub webhook endpoints."""

    def __init__(
        self,
        access_token: str,
        api_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        from pushtomemory.config import get_settings
        settings = get_settings()
        self.api_url = (api_url or settings.github_api_url).rstrip("/")
        self.timeout = timeout or settings.github_timeout_seconds
        self._headers = {
            "Accept": GITHUB_ACCEPT,
            "Authorization": f"Bearer {access_token}",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    async def _request(self, method: str, path: str, json: Optional[dict] = None) -> httpx.Response:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                return await client.request(
                    method, f"{self.api_url}{path}", headers=self._headers, json=json,
                )
        except httpx.HTTPError as e:
            logger.error("GitHub %s %s failed: %s", method, path, str(e))
            raise GitHubAPIError(f"GitHub request failed: {e}") from e

    async def _create_hook(self, path: str, callback_url: str, secret: str) -> int:
        response = await self._request("POST", path, json=_hook_config(callback_url, secret))
        if response.status_code >= 400:
            message = _error_message(response)
            logger.error(
                "GitHub webhook creation failed: %s status=%d message=%s",
                path, response.status_code, message,
            )
            raise GitHubAPIError(f"Failed to create webhook: {message}", response.status_code)
        hook_id = response.json()["id"]
        logger.info("GitHub webhook created: %s id=%s", path, hook_id)
        return hook_id

    async def _delete_hook(self, path: str) -> None:
        response = await self._request("DELETE", path)
        if response.status_code == 404:
            # Already removed on GitHub
            logger.info("GitHub webhook already gone: %s", path)
            return
        if response.status_code >= 400:
            message = _error_message(response)
            raise GitHubAPIError(f"Failed to delete webhook: {message}", response.status_code)

    async def create_organization_hook(self, organization: str, callback_url: str, secret: str) -> int:
        return await self._create_hook(f"/orgs/{quote(organization, safe='')}/hooks", callback_url, secret)

    async def create_repository_hook(
        self, owner: str, repository: str, callback_url: str, secret: str,
    ) -> int:
        path = f"/repos/{quote(owner, safe='')}/{quote(repository, safe='')}/hooks"
        return await self._create_hook(path, callback_url, secret)

    async def delete_organization_hook(self, organization: str, hook_id: int) -> None:
        await self._delete_hook(f"/orgs/{quote(organization, safe='')}/hooks/{hook_id}")

    async def delete_repository_hook(self, owner: str, repository: str, hook_id: int) -> None:
        await self._delete_hook(
            f"/repos/{quote(owner, safe='')}/{quote(repository, safe='')}/hooks/{hook_id}"
        )

    async def list_user_organizations(self) -> list[dict]:
        response = await self._request("GET", "/user/orgs")
        if response.status_code >= 400:
            message = _error_message(response)
            raise GitHubAPIError(f"Failed to list organizations: {message}", response.status_code)
        return response.json()
