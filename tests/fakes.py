"""In-memory TrackerGateway used by reconciliation and sync tests."""

import re
from typing import Any

from app.core.errors import TrackerCallError
from app.schemas.tickets import ExistingTicket, TicketSearchPage, TrackerStatus
from app.services.tracker_gateway import TrackerGateway

_PROJECT_RE = re.compile(r'project = "([^"]+)"')
_LABEL_RE = re.compile(r'"labels" = "([^"]+)"')

DEFAULT_STATUSES = [
    TrackerStatus(name="To Do", category="To Do"),
    TrackerStatus(name="In Progress", category="In Progress"),
    TrackerStatus(name="Done", category="Done"),
]


class InMemoryTracker(TrackerGateway):
    """
    Applies writes to an in-memory ticket store so a second sync sees the first one's results.

    Transitions: "Done" closes (status Done), "Reopen" opens (status To Do).
    Set `fail_on` to (method, ticket key) to make that call raise TrackerCallError.
    """

    def __init__(
        self,
        tickets: list[ExistingTicket] | None = None,
        field_ids: dict[str, str] | None = None,
        statuses: list[TrackerStatus] | None = None,
    ) -> None:
        self.tickets: dict[str, ExistingTicket] = {t.key: t for t in tickets or []}
        self.field_ids = field_ids or {}
        self.statuses = DEFAULT_STATUSES if statuses is None else statuses
        self.calls: list[tuple[str, Any]] = []
        self.created_fields: dict[str, dict[str, Any]] = {}
        self.updated_fields: dict[str, dict[str, Any]] = {}
        self.comments: dict[str, list[str]] = {}
        self.transition_inputs: dict[str, dict[str, Any] | None] = {}
        self.fail_on: tuple[str, str] | None = None
        self._counter = 0

    def _maybe_fail(self, method: str, key: str) -> None:
        if self.fail_on == (method, key):
            raise TrackerCallError(f"{method} failed for {key}", 500)

    def count(self, method: str) -> int:
        return sum(1 for name, _ in self.calls if name == method)

    def writes(self) -> int:
        return sum(self.count(m) for m in ("create", "update", "transition", "comment"))

    async def search(self, jql: str, next_page_token: str | None, max_results: int) -> TicketSearchPage:
        self.calls.append(("search", jql))
        project = _PROJECT_RE.search(jql)
        labels = set(_LABEL_RE.findall(jql))
        matches = [
            t
            for t in self.tickets.values()
            if (project is None or t.project_key == project.group(1)) and labels.issubset(t.labels)
        ]
        offset = int(next_page_token or 0)
        page = matches[offset:offset + max_results]
        end = offset + len(page)
        is_last = end >= len(matches)
        return TicketSearchPage(
            tickets=page,
            next_page_token=None if is_last else str(end),
            is_last=is_last,
        )

    async def get_ticket(self, key: str) -> ExistingTicket:
        self.calls.append(("get_ticket", key))
        return self.tickets[key]

    async def create(self, project_key: str, issue_type: str, fields: dict[str, Any]) -> str:
        self.calls.append(("create", fields.get("summary")))
        self._maybe_fail("create", fields.get("summary", ""))
        self._counter += 1
        key = f"{project_key}-{self._counter}"
        self.tickets[key] = ExistingTicket(
            key=key,
            summary=fields["summary"],
            status="To Do",
            labels=list(fields.get("labels") or []),
            description=fields.get("description") or "",
            project_key=project_key,
        )
        self.created_fields[key] = fields
        return key

    async def update(self, key: str, fields: dict[str, Any]) -> ExistingTicket:
        self.calls.append(("update", key))
        self._maybe_fail("update", key)
        ticket = self.tickets[key]
        if "description" in fields:
            ticket = ticket.model_copy(update={"description": fields["description"]})
            self.tickets[key] = ticket
        self.updated_fields[key] = fields
        return ticket

    async def transition(
        self,
        key: str,
        transition_name: str,
        field_input: dict[str, Any] | None = None,
    ) -> bool:
        self.calls.append(("transition", (key, transition_name)))
        self._maybe_fail("transition", key)
        status = {"Done": "Done", "Reopen": "To Do"}.get(transition_name)
        if status is None:
            return False
        self.tickets[key] = self.tickets[key].model_copy(update={"status": status})
        self.transition_inputs[key] = field_input
        return True

    async def comment(self, key: str, text: str) -> None:
        self.calls.append(("comment", key))
        self.comments.setdefault(key, []).append(text)

    async def resolve_custom_field_id(self, project_key: str, issue_type: str, field_name: str) -> str | None:
        return self.field_ids.get(field_name)

    async def list_statuses(self) -> list[TrackerStatus]:
        self.calls.append(("list_statuses", None))
        return list(self.statuses)
