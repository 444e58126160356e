"""
Finding-to-ticket reconciliation.

plan_reconciliation diffs the current findings against the tickets already in
the tracker and returns the actions needed to bring the tracker in line. It
makes no calls. reconcile runs a plan through a TrackerGateway, one call at a
time, and stops at the first tracker failure.
"""

import logging
from collections.abc import Callable

from pydantic import BaseModel, Field

from app.core.errors import TrackerCallError
from app.schemas.findings import Finding
from app.schemas.tickets import (
    CloseTicket,
    CommentTicket,
    CreateTicket,
    ExistingTicket,
    TrackerAction,
    UpdateTicket,
)
from app.services.ticket_content import TicketPayloadBuilder, normalize_description
from app.services.ticket_keys import describe_ticket
from app.services.tracker_gateway import TrackerGateway

logger = logging.getLogger(__name__)

RenderDescription = Callable[[Finding], str]


class ReconcileOptions(BaseModel):
    """Workflow and policy inputs for one reconciliation."""

    open_statuses: list[str] = Field(default_factory=list)
    closed_statuses: list[str] = Field(default_factory=list)
    false_positive_label: str = "false-positive"
    list_false_positives: bool = False
    hierarchy_enabled: bool = False
    update_comment: str | None = Field(default=None, description="Comment added after each update, when set.")


class ReconcileResult(BaseModel):
    """Executed actions and the ticket keys they touched."""

    actions: list[TrackerAction] = Field(default_factory=list)
    new_ids: list[str] = Field(default_factory=list)
    updated_ids: list[str] = Field(default_factory=list)
    closed_ids: list[str] = Field(default_factory=list)


def _description_differs(ticket: ExistingTicket, finding: Finding, render: RenderDescription) -> bool:
    return normalize_description(render(finding)) != normalize_description(ticket.description)


def plan_reconciliation(
    findings: dict[str, Finding],
    existing: dict[str, ExistingTicket],
    parent: dict[str, ExistingTicket] | None = None,
    grandparent: dict[str, ExistingTicket] | None = None,
    *,
    options: ReconcileOptions,
    render: RenderDescription,
) -> list[TrackerAction]:
    """
    Actions for one run, keyed by identity key on both sides.

    Re-planning against the tracker state left by executing this plan yields
    no actions: existing tickets are only updated when they are closed or
    their description no longer matches the finding.
    """
    parent = parent or {}
    grandparent = grandparent or {}
    open_statuses = set(options.open_statuses)
    closed_statuses = set(options.closed_statuses)
    actions: list[TrackerAction] = []

    for key, finding in findings.items():
        ticket = existing.get(key)
        if ticket is not None:
            if finding.all_false_positive:
                # Tickets in a closed status are never edited.
                if (
                    options.list_false_positives
                    and ticket.status not in closed_statuses
                    and _description_differs(ticket, finding, render)
                ):
                    actions.append(UpdateTicket(ticket=ticket, finding=finding, reopen=False))
                if ticket.status in open_statuses:
                    actions.append(CloseTicket(ticket=ticket, false_positive=True))
            elif options.false_positive_label in ticket.labels:
                logger.debug("Ticket carries the false-positive label; leaving it alone", extra={"issue_key": ticket.key})
            else:
                reopen = ticket.status in closed_statuses
                if reopen or _description_differs(ticket, finding, render):
                    actions.append(UpdateTicket(ticket=ticket, finding=finding, reopen=reopen))
                    if options.update_comment:
                        actions.append(CommentTicket(ticket=ticket, text=options.update_comment))
            continue

        if finding.all_false_positive:
            continue
        if options.hierarchy_enabled and (key in parent or key in grandparent):
            logger.debug("Finding already tracked by a parent project", extra={"identity_key": key})
            continue
        actions.append(CreateTicket(key=key, finding=finding))

    for key, ticket in existing.items():
        if key in findings:
            continue
        if ticket.status in open_statuses and options.false_positive_label not in ticket.labels:
            actions.append(CloseTicket(ticket=ticket, false_positive=False))

    return actions


def _action_key(action: TrackerAction) -> str:
    if isinstance(action, CreateTicket):
        return action.key
    return action.ticket.key


async def execute_actions(
    gateway: TrackerGateway,
    actions: list[TrackerAction],
    payloads: TicketPayloadBuilder,
) -> ReconcileResult:
    """
    Apply actions in order.

    Raises:
        TrackerCallError: A tracker call failed. It names the key being
            processed and the keys not yet reached; earlier actions stand.
    """
    result = ReconcileResult()
    target = payloads.target
    for index, action in enumerate(actions):
        try:
            if isinstance(action, CreateTicket):
                fields = await payloads.create_fields(gateway, action.key, action.finding)
                new_key = await gateway.create(target.project_key, target.issue_type, fields)
                result.new_ids.append(new_key)
            elif isinstance(action, UpdateTicket):
                if action.reopen:
                    reopened = await gateway.transition(action.ticket.key, target.open_transition)
                    if not reopened:
                        logger.warning(
                            "Could not reopen ticket; updating it anyway",
                            extra={"issue_key": action.ticket.key, "transition": target.open_transition},
                        )
                fields = await payloads.update_fields(gateway, action.finding)
                await gateway.update(action.ticket.key, fields)
                if action.ticket.key not in result.updated_ids:
                    result.updated_ids.append(action.ticket.key)
            elif isinstance(action, CloseTicket):
                closed = await gateway.transition(
                    action.ticket.key,
                    target.close_transition,
                    payloads.close_field_input(false_positive=action.false_positive),
                )
                if closed:
                    result.closed_ids.append(action.ticket.key)
                    parts = describe_ticket(action.ticket)
                    logger.info(
                        "Closed ticket",
                        extra={
                            "issue_key": action.ticket.key,
                            "false_positive": action.false_positive,
                            "vulnerability": (parts.vulnerability or parts.finding_id) if parts else None,
                        },
                    )
            elif isinstance(action, CommentTicket):
                await gateway.comment(action.ticket.key, action.text)
        except TrackerCallError as e:
            key = _action_key(action)
            pending: list[str] = []
            for later in actions[index + 1:]:
                later_key = _action_key(later)
                if later_key != key and later_key not in pending:
                    pending.append(later_key)
            logger.error(
                "Tracker call failed; aborting reconciliation",
                extra={"issue_key": key, "status_code": e.status_code, "pending": len(pending)},
            )
            raise e.for_key(key, pending) from e
        result.actions.append(action)
    return result


async def reconcile(
    gateway: TrackerGateway,
    findings: dict[str, Finding],
    existing: dict[str, ExistingTicket],
    parent: dict[str, ExistingTicket] | None,
    grandparent: dict[str, ExistingTicket] | None,
    options: ReconcileOptions,
    payloads: TicketPayloadBuilder,
) -> ReconcileResult:
    """Plan against the given ticket maps, then execute through the gateway."""
    actions = plan_reconciliation(
        findings,
        existing,
        parent,
        grandparent,
        options=options,
        render=payloads.description,
    )
    logger.info(
        "Planned reconciliation",
        extra={
            "findings": len(findings),
            "existing_tickets": len(existing),
            "creates": sum(isinstance(a, CreateTicket) for a in actions),
            "updates": sum(isinstance(a, UpdateTicket) for a in actions),
            "closes": sum(isinstance(a, CloseTicket) for a in actions),
        },
    )
    return await execute_actions(gateway, actions, payloads)
