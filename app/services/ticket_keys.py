"""Map tracker tickets back to finding identity keys (the key is the ticket summary)."""

import logging

from app.schemas.tickets import ExistingTicket
from app.services.identity_keys import IdentityKeyParts, KeyFormat, parse_identity_key

logger = logging.getLogger(__name__)


def ticket_identity_key(ticket: ExistingTicket) -> str:
    return ticket.summary


def map_tickets_by_key(tickets: list[ExistingTicket]) -> dict[str, ExistingTicket]:
    """
    Index tickets by identity key. When two tickets share a summary the later
    one wins; the earlier one is no longer tracked by this run.
    """
    by_key: dict[str, ExistingTicket] = {}
    for ticket in tickets:
        key = ticket_identity_key(ticket)
        previous = by_key.get(key)
        if previous is not None and previous.key != ticket.key:
            logger.warning(
                "Duplicate ticket summary; keeping the later ticket",
                extra={"identity_key": key, "dropped": previous.key, "kept": ticket.key},
            )
        by_key[key] = ticket
    return by_key


def describe_ticket(ticket: ExistingTicket, key_format: KeyFormat | None = None) -> IdentityKeyParts | None:
    """Parse the finding coordinates out of a ticket summary, if it was written by this service."""
    return parse_identity_key(ticket_identity_key(ticket), key_format)
