"""Issue tracker capability set used by ticket sync. Vendor adapters implement TrackerGateway."""

import logging
from abc import ABC, abstractmethod
from typing import Any

from app.schemas.tickets import ExistingTicket, TicketSearchPage, TrackerStatus

logger = logging.getLogger(__name__)

# Upper bound on tickets aggregated from one search, whatever total the tracker reports.
MAX_RESULTS_ALLOWED = 1_000_000


class TrackerGateway(ABC):
    """Async tracker operations. Failures raise TrackerCallError (or TrackerConfigurationError)."""

    @abstractmethod
    async def search(self, jql: str, next_page_token: str | None, max_results: int) -> TicketSearchPage:
        """One page of tickets matching a query; next_page_token None starts from the first page."""

    @abstractmethod
    async def get_ticket(self, key: str) -> ExistingTicket:
        """Fetch one ticket by key."""

    @abstractmethod
    async def create(self, project_key: str, issue_type: str, fields: dict[str, Any]) -> str:
        """Create a ticket and return its key. `description` may be given as plain text."""

    @abstractmethod
    async def update(self, key: str, fields: dict[str, Any]) -> ExistingTicket:
        """Update fields on a ticket and return its new state."""

    @abstractmethod
    async def transition(
        self,
        key: str,
        transition_name: str,
        field_input: dict[str, Any] | None = None,
    ) -> bool:
        """Apply a named workflow transition. False when the transition is not available."""

    @abstractmethod
    async def comment(self, key: str, text: str) -> None:
        """Add a plain-text comment."""

    @abstractmethod
    async def resolve_custom_field_id(self, project_key: str, issue_type: str, field_name: str) -> str | None:
        """Tracker field id for a field display name on a project/issue type, or None."""

    @abstractmethod
    async def list_statuses(self) -> list[TrackerStatus]:
        """All workflow statuses with their category names."""


async def search_all(gateway: TrackerGateway, jql: str, page_size: int) -> list[ExistingTicket]:
    """Follow page tokens until the tracker reports the last page, capped at MAX_RESULTS_ALLOWED tickets.

    The tracker may return fewer tickets than requested per page, so progress is
    driven by its tokens rather than by the requested page size.
    """
    tickets: list[ExistingTicket] = []
    token: str | None = None
    while True:
        page = await gateway.search(jql, token, page_size)
        tickets.extend(page.tickets)
        if page.is_last or not page.next_page_token or not page.tickets:
            break
        if len(tickets) >= MAX_RESULTS_ALLOWED:
            break
        token = page.next_page_token
    if len(tickets) > MAX_RESULTS_ALLOWED:
        tickets = tickets[:MAX_RESULTS_ALLOWED]
    logger.debug("Search returned %s tickets", len(tickets), extra={"jql": jql})
    return tickets
