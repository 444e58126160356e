"""Jira Cloud implementation of TrackerGateway over the REST v3 API."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

import httpx

from app.core.errors import TrackerCallError, TrackerConfigurationError, TrackerNotConfiguredError
from app.schemas.tickets import ExistingTicket, TicketSearchPage, TrackerStatus
from app.services.field_cache import CustomFieldCache
from app.services.tracker_gateway import TrackerGateway

if TYPE_CHECKING:
    from app.core.config import Settings

logger = logging.getLogger(__name__)

# Fields requested for every ticket read.
TICKET_FIELDS = ["summary", "status", "labels", "description", "project"]


def _plain_text_to_adf(plain: str) -> dict[str, Any]:
    """Convert plain text to Atlassian Document Format (one paragraph per line)."""
    if not plain or not plain.strip():
        return {"type": "doc", "version": 1, "content": []}
    lines = plain.strip().split("\n")
    content = []
    for line in lines:
        text = line.strip() or " "
        content.append(
            {
                "type": "paragraph",
                "content": [{"type": "text", "text": text}],
            }
        )
    return {"type": "doc", "version": 1, "content": content}


def _adf_node_text(node: dict[str, Any]) -> str:
    if node.get("type") == "text":
        return node.get("text", "")
    if node.get("type") == "hardBreak":
        return "\n"
    return "".join(_adf_node_text(child) for child in node.get("content") or [])


def _adf_to_plain_text(doc: Any) -> str:
    """Flatten an ADF document to plain text, one line per top-level block."""
    if doc is None:
        return ""
    if isinstance(doc, str):
        return doc
    blocks = doc.get("content") or []
    return "\n".join(_adf_node_text(block) for block in blocks)


def is_jira_configured(settings: Settings) -> bool:
    if not settings.JIRA_BASE_URL or not settings.JIRA_BASE_URL.strip():
        return False
    if not settings.JIRA_EMAIL or not settings.JIRA_EMAIL.strip():
        return False
    if settings.JIRA_API_TOKEN is None:
        return False
    token_val = settings.JIRA_API_TOKEN.get_secret_value()
    if not token_val or not token_val.strip():
        return False
    return True


def _get_token(settings: Settings) -> str:
    if settings.JIRA_API_TOKEN is None:
        raise TrackerNotConfiguredError("JIRA_API_TOKEN is not set.")
    return settings.JIRA_API_TOKEN.get_secret_value()


def _error_detail(resp: httpx.Response) -> str:
    try:
        body = resp.json()
        err_messages = body.get("errorMessages", [])
        errors = body.get("errors", {})
        return "; ".join(err_messages) if err_messages else json.dumps(errors)[:500]
    except Exception:
        return resp.text[:500] if resp.text else "Unknown error"


def _raise_for_status(resp: httpx.Response, what: str) -> None:
    """Map Jira error responses to TrackerCallError."""
    if resp.status_code == 401:
        raise TrackerCallError("Jira authentication failed (invalid email or API token).", 401)
    if resp.status_code == 403:
        raise TrackerCallError(f"Jira denied permission to {what}.", 403)
    if resp.status_code == 404:
        raise TrackerCallError(f"Jira resource not found ({what}).", 404)
    if resp.status_code >= 400:
        raise TrackerCallError(
            f"Jira returned {resp.status_code} ({what}): {_error_detail(resp)}",
            resp.status_code,
        )


def _ticket_from_issue(issue: dict[str, Any]) -> ExistingTicket:
    fields = issue.get("fields") or {}
    return ExistingTicket(
        key=issue["key"],
        summary=fields.get("summary") or "",
        status=(fields.get("status") or {}).get("name", ""),
        labels=list(fields.get("labels") or []),
        description=_adf_to_plain_text(fields.get("description")),
        project_key=(fields.get("project") or {}).get("key"),
    )


class JiraTrackerGateway(TrackerGateway):
    """
    Jira Cloud adapter. Use as an async context manager; one HTTP client is
    shared by every call made inside the block.

    Owns the custom field cache, so field ids are loaded once per
    (project, issue type) for the lifetime of the gateway.
    """

    def __init__(self, settings: Settings) -> None:
        if not is_jira_configured(settings):
            raise TrackerNotConfiguredError(
                "Jira is not configured; set JIRA_BASE_URL, JIRA_EMAIL, JIRA_API_TOKEN."
            )
        self._base_url = (settings.JIRA_BASE_URL or "").strip().rstrip("/")
        self._auth = ((settings.JIRA_EMAIL or "").strip(), _get_token(settings))
        self._timeout = max(1.0, min(120.0, settings.JIRA_REQUEST_TIMEOUT_SEC))
        self._client: httpx.AsyncClient | None = None
        self.field_cache = CustomFieldCache(self._load_fields)

    async def __aenter__(self) -> JiraTrackerGateway:
        self._client = httpx.AsyncClient(auth=self._auth)
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _request(self, method: str, path: str, what: str, **kwargs: Any) -> httpx.Response:
        if self._client is None:
            raise RuntimeError("JiraTrackerGateway must be used inside 'async with'")
        url = f"{self._base_url}{path}"
        try:
            resp = await self._client.request(method, url, timeout=self._timeout, **kwargs)
        except httpx.HTTPError as e:
            raise TrackerCallError(f"Jira request failed ({what}): {e}") from e
        _raise_for_status(resp, what)
        return resp

    async def search(self, jql: str, next_page_token: str | None, max_results: int) -> TicketSearchPage:
        body: dict[str, Any] = {"jql": jql, "maxResults": max_results, "fields": TICKET_FIELDS}
        if next_page_token:
            body["nextPageToken"] = next_page_token
        resp = await self._request("POST", "/rest/api/3/search/jql", "search issues", json=body)
        data = resp.json()
        token = data.get("nextPageToken")
        return TicketSearchPage(
            tickets=[_ticket_from_issue(issue) for issue in data.get("issues") or []],
            next_page_token=token,
            is_last=bool(data.get("isLast", token is None)),
        )

    async def get_ticket(self, key: str) -> ExistingTicket:
        resp = await self._request(
            "GET",
            f"/rest/api/3/issue/{key}",
            f"get issue {key}",
            params={"fields": ",".join(TICKET_FIELDS)},
        )
        return _ticket_from_issue(resp.json())

    async def create(self, project_key: str, issue_type: str, fields: dict[str, Any]) -> str:
        payload_fields: dict[str, Any] = {
            "project": {"key": project_key},
            "issuetype": {"name": issue_type},
            **fields,
        }
        if isinstance(payload_fields.get("description"), str):
            payload_fields["description"] = _plain_text_to_adf(payload_fields["description"])
        resp = await self._request("POST", "/rest/api/3/issue", "create issue", json={"fields": payload_fields})
        key = resp.json().get("key")
        if not key:
            raise TrackerCallError("Jira response missing issue key.")
        logger.info("Created Jira issue", extra={"issue_key": key, "project_key": project_key})
        return key

    async def update(self, key: str, fields: dict[str, Any]) -> ExistingTicket:
        payload_fields = dict(fields)
        if isinstance(payload_fields.get("description"), str):
            payload_fields["description"] = _plain_text_to_adf(payload_fields["description"])
        await self._request("PUT", f"/rest/api/3/issue/{key}", f"update issue {key}", json={"fields": payload_fields})
        logger.info("Updated Jira issue", extra={"issue_key": key})
        return await self.get_ticket(key)

    async def transition(
        self,
        key: str,
        transition_name: str,
        field_input: dict[str, Any] | None = None,
    ) -> bool:
        path = f"/rest/api/3/issue/{key}/transitions"
        resp = await self._request("GET", path, f"list transitions of {key}")
        wanted = transition_name.strip().lower()
        transition_id = None
        for t in resp.json().get("transitions") or []:
            names = {(t.get("name") or "").lower(), ((t.get("to") or {}).get("name") or "").lower()}
            if wanted in names:
                transition_id = t.get("id")
                break
        if transition_id is None:
            logger.warning(
                "Transition not available for issue",
                extra={"issue_key": key, "transition": transition_name},
            )
            return False
        body: dict[str, Any] = {"transition": {"id": transition_id}}
        if field_input:
            body["fields"] = field_input
        await self._request("POST", path, f"transition {key}", json=body)
        logger.info("Transitioned Jira issue", extra={"issue_key": key, "transition": transition_name})
        return True

    async def comment(self, key: str, text: str) -> None:
        await self._request(
            "POST",
            f"/rest/api/3/issue/{key}/comment",
            f"comment on {key}",
            json={"body": _plain_text_to_adf(text)},
        )

    async def resolve_custom_field_id(self, project_key: str, issue_type: str, field_name: str) -> str | None:
        return await self.field_cache.field_id(project_key, issue_type, field_name)

    async def list_statuses(self) -> list[TrackerStatus]:
        resp = await self._request("GET", "/rest/api/3/status", "list statuses")
        return [
            TrackerStatus(name=s.get("name", ""), category=(s.get("statusCategory") or {}).get("name", ""))
            for s in resp.json()
        ]

    async def _get_paged(self, path: str, what: str, *list_keys: str) -> list[dict[str, Any]]:
        """Collect every value of a startAt/maxResults/total paged resource."""
        values: list[dict[str, Any]] = []
        start_at = 0
        while True:
            resp = await self._request("GET", path, what, params={"startAt": start_at, "maxResults": 50})
            data = resp.json()
            page = next((data[k] for k in list_keys if data.get(k) is not None), [])
            values.extend(page)
            start_at += len(page)
            if not page or start_at >= data.get("total", 0):
                return values

    async def _load_fields(self, project_key: str, issue_type: str) -> dict[str, str]:
        """Field display name -> field id from create metadata for the project's issue type."""
        base = f"/rest/api/3/issue/createmeta/{project_key}/issuetypes"
        try:
            issue_types = await self._get_paged(base, f"issue types for {project_key}", "issueTypes", "values")
        except TrackerCallError as e:
            if e.status_code == 404:
                raise TrackerConfigurationError(f"Jira project {project_key!r} not found or not visible.") from e
            raise
        match = next((it for it in issue_types if (it.get("name") or "").lower() == issue_type.lower()), None)
        if match is None or not match.get("id"):
            raise TrackerConfigurationError(
                f"Issue type {issue_type!r} is not available in Jira project {project_key!r}."
            )
        fields = await self._get_paged(
            f"{base}/{match['id']}",
            f"create metadata for {project_key}/{issue_type}",
            "fields",
            "results",
        )
        return {(f.get("name") or f["fieldId"]): f["fieldId"] for f in fields if f.get("fieldId")}
