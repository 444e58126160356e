"""Best-effort commit status on the scanned pull request. Failures are logged, never raised."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Literal

import httpx

if TYPE_CHECKING:
    from app.core.config import Settings

logger = logging.getLogger(__name__)

StatusState = Literal["success", "error", "failure", "pending"]

# GitHub limits commit status descriptions to 140 characters.
DESCRIPTION_MAX_LENGTH = 140


async def post_commit_status(
    statuses_url: str | None,
    state: StatusState,
    description: str,
    settings: Settings,
) -> bool:
    """POST a commit status. Returns True when the status was accepted."""
    if not settings.PR_STATUS_ENABLED or not statuses_url:
        return False
    headers = {"Accept": "application/vnd.github+json"}
    if settings.GITHUB_TOKEN is not None:
        headers["Authorization"] = f"token {settings.GITHUB_TOKEN.get_secret_value()}"
    payload = {
        "state": state,
        "description": description[:DESCRIPTION_MAX_LENGTH],
        "context": settings.PR_STATUS_CONTEXT,
    }
    try:
        async with httpx.AsyncClient() as client:
            resp = await client.post(
                statuses_url,
                json=payload,
                headers=headers,
                timeout=settings.PR_STATUS_TIMEOUT_SEC,
            )
            resp.raise_for_status()
    except httpx.HTTPError as e:
        logger.warning(
            "Failed to post pull request status: %s",
            e,
            extra={"statuses_url": statuses_url, "state": state},
        )
        return False
    return True
