"""
Send a signed GitHub delivery to a locally running server.

Usage:
    python scripts/send_test_webhook.py --secret <registration secret> --org acme
    python scripts/send_test_webhook.py --secret <secret> --event ping --org acme
    python scripts/send_test_webhook.py --secret <secret> --owner octocat --repo hello-world --commits 3
"""
import argparse
import asyncio
import json
import logging
import uuid
from datetime import datetime, timezone

import httpx

from pushtomemory.utils.webhook_signatures import sign_github_payload

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

BASE_URL = "http://localhost:8000"


def build_payload(event: str, org: str | None, owner: str, repo: str, commit_count: int) -> dict:
    payload: dict = {
        "repository": {
            "name": repo,
            "full_name": f"{owner}/{repo}",
            "owner": {"name": owner, "login": owner},
        },
    }
    if org:
        payload["organization"] = {"login": org}

    if event == "ping":
        payload["zen"] = "Keep it logically awesome."
        payload["hook_id"] = 1
        return payload

    now = datetime.now(timezone.utc).isoformat()
    payload["ref"] = "refs/heads/main"
    payload["commits"] = [
        {
            "id": uuid.uuid4().hex + uuid.uuid4().hex[:8],
            "message": f"Test commit {i + 1}",
            "timestamp": now,
            "url": f"https://github.com/{owner}/{repo}/commit/{i}",
            "author": {"name": "Test User", "email": "test@example.com"},
            "added": [f"src/file_{i}.py"],
            "modified": ["README.md"],
            "removed": [],
        }
        for i in range(commit_count)
    ]
    return payload


async def send(base_url: str, event: str, payload: dict, secret: str) -> httpx.Response:
    body = json.dumps(payload).encode("utf-8")
    headers = {
        "Content-Type": "application/json",
        "X-GitHub-Event": event,
        "X-GitHub-Delivery": str(uuid.uuid4()),
        "X-Hub-Signature-256": sign_github_payload(body, secret),
    }
    async with httpx.AsyncClient(timeout=30) as client:
        resp = await client.post(f"{base_url}/api/v1/webhook/github", content=body, headers=headers)
        logger.info("Webhook response: %s %s", resp.status_code, resp.text)
        return resp


async def main():
    parser = argparse.ArgumentParser(description="Send a signed test GitHub webhook")
    parser.add_argument("--secret", required=True)
    parser.add_argument("--event", default="push", choices=["push", "ping"])
    parser.add_argument("--org", default=None)
    parser.add_argument("--owner", default="octocat")
    parser.add_argument("--repo", default="hello-world")
    parser.add_argument("--commits", type=int, default=2)
    parser.add_argument("--base-url", default=BASE_URL)
    args = parser.parse_args()

    payload = build_payload(args.event, args.org, args.owner, args.repo, args.commits)
    await send(args.base_url, args.event, payload, args.secret)


if __name__ == "__main__":
    asyncio.run(main())
