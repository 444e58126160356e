"""
Sync one finished scan into the tracker.

Scope and target are resolved before any tracker call, so configuration
problems fail fast. Then statuses are resolved (discovered from the tracker
when not configured), findings normalized, existing tickets fetched for the
scope (and parent/grandparent projects in hierarchy mode), reconciled, and
the outcome reported.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

from app.core.errors import ReconciliationError, TrackerConfigurationError
from app.schemas.sync import TrackerSyncRequest, TrackerSyncResponse
from app.schemas.tickets import ExistingTicket
from app.schemas.tracker import TrackerTarget, TrackerTargetOverrides
from app.services.identity_keys import KeyFormat, Scope, resolve_scope
from app.services.normalize import normalize_scan_results
from app.services.pr_status import post_commit_status
from app.services.reconciliation import ReconcileOptions, reconcile
from app.services.reporter import SyncReporter
from app.services.ticket_content import ContentOptions, TicketPayloadBuilder, TrackingLabels, scope_labels
from app.services.ticket_keys import map_tickets_by_key
from app.services.tracker_gateway import TrackerGateway, search_all

if TYPE_CHECKING:
    from app.core.config import Settings

logger = logging.getLogger(__name__)


def build_tracker_target(settings: Settings, overrides: TrackerTargetOverrides | None = None) -> TrackerTarget:
    """Configured tracker target with per-request overrides applied."""
    overrides = overrides or TrackerTargetOverrides()
    project_key = (overrides.project_key or settings.JIRA_PROJECT_KEY or "").strip()
    if not project_key:
        raise TrackerConfigurationError("No tracker project configured; set JIRA_PROJECT_KEY or target.project_key.")
    issue_type = (overrides.issue_type or settings.JIRA_ISSUE_TYPE or "").strip()
    if not issue_type:
        raise TrackerConfigurationError("No tracker issue type configured; set JIRA_ISSUE_TYPE or target.issue_type.")
    return TrackerTarget(
        project_key=project_key,
        issue_type=issue_type,
        assignee_account_id=overrides.assignee_account_id or settings.JIRA_ASSIGNEE_ACCOUNT_ID,
        priorities=dict(settings.JIRA_PRIORITIES),
        fields=list(overrides.fields if overrides.fields is not None else settings.JIRA_FIELDS),
        open_statuses=list(settings.JIRA_OPEN_STATUSES),
        closed_statuses=list(settings.JIRA_CLOSED_STATUSES),
        open_transition=settings.JIRA_OPEN_TRANSITION,
        close_transition=settings.JIRA_CLOSE_TRANSITION,
        close_transition_field=settings.JIRA_CLOSE_TRANSITION_FIELD,
        close_transition_value=settings.JIRA_CLOSE_TRANSITION_VALUE,
        close_false_positive_transition_value=settings.JIRA_CLOSE_FALSE_POSITIVE_TRANSITION_VALUE,
        update_comment=settings.JIRA_UPDATE_COMMENT,
        update_comment_value=settings.JIRA_UPDATE_COMMENT_VALUE,
    )


def tracking_labels(settings: Settings) -> TrackingLabels:
    return TrackingLabels(
        label_field=settings.JIRA_LABEL_TRACKER,
        product=settings.JIRA_PRODUCT_LABEL,
        owner_prefix=settings.JIRA_OWNER_LABEL_PREFIX,
        repo_prefix=settings.JIRA_REPO_LABEL_PREFIX,
        branch_prefix=settings.JIRA_BRANCH_LABEL_PREFIX,
        app_prefix=settings.JIRA_APP_LABEL_PREFIX,
        false_positive=settings.JIRA_FALSE_POSITIVE_LABEL,
    )


def _jql_quote(value: str) -> str:
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


def build_scope_jql(project_key: str, issue_type: str, label_field: str, labels: list[str]) -> str:
    """Project + issue type + every scope label on the tracking label field."""
    label_clauses = " and ".join(f"{_jql_quote(label_field)} = {_jql_quote(label)}" for label in labels)
    return f"project = {_jql_quote(project_key)} and issueType = {_jql_quote(issue_type)} and ({label_clauses})"


async def resolve_statuses(
    gateway: TrackerGateway,
    target: TrackerTarget,
    settings: Settings,
) -> TrackerTarget:
    """
    Fill empty open/closed status lists from the tracker's status categories.

    Raises:
        TrackerConfigurationError: A list is still empty after discovery.
    """
    if target.open_statuses and target.closed_statuses:
        return target
    statuses = await gateway.list_statuses()
    open_statuses = target.open_statuses or sorted(
        {s.name for s in statuses if s.category in settings.JIRA_STATUS_CATEGORY_OPEN_NAMES}
    )
    closed_statuses = target.closed_statuses or sorted(
        {s.name for s in statuses if s.category in settings.JIRA_STATUS_CATEGORY_CLOSED_NAMES}
    )
    if not open_statuses or not closed_statuses:
        raise TrackerConfigurationError(
            "Open and closed tracker statuses must be configured or discoverable from status categories."
        )
    logger.info(
        "Discovered tracker statuses",
        extra={"open_statuses": open_statuses, "closed_statuses": closed_statuses},
    )
    return target.model_copy(update={"open_statuses": open_statuses, "closed_statuses": closed_statuses})


async def _fetch_scope_tickets(
    gateway: TrackerGateway,
    project_key: str,
    issue_type: str,
    labels: TrackingLabels,
    scope_label_values: list[str],
    page_size: int,
) -> dict[str, ExistingTicket]:
    jql = build_scope_jql(project_key, issue_type, labels.label_field, scope_label_values)
    logger.debug("Searching tracker", extra={"jql": jql})
    return map_tickets_by_key(await search_all(gateway, jql, page_size))


async def sync_scan(
    request: TrackerSyncRequest,
    settings: Settings,
    gateway: TrackerGateway,
    session: Session | None = None,
    today: date | None = None,
) -> TrackerSyncResponse:
    """
    Reconcile one scan's findings with the tracker.

    Raises:
        TrackerConfigurationError: Scope, target or workflow cannot be resolved.
        TrackerCallError: A tracker call failed; actions already applied stand.
    """
    context = request.context
    try:
        target = build_tracker_target(settings, request.target)
        scope = resolve_scope(
            context,
            application_only=settings.TRACK_APPLICATION_ONLY,
            application_repo_only=settings.APPLICATION_REPO_ONLY,
        )
        if settings.JIRA_CHILD and not settings.JIRA_PARENT_PROJECT_KEY:
            raise TrackerConfigurationError("JIRA_CHILD requires JIRA_PARENT_PROJECT_KEY.")
        response = await _sync(request, settings, gateway, session, today, target, scope)
    except ReconciliationError as e:
        await post_commit_status(context.statuses_url, "error", f"Ticket sync failed: {e.message}", settings)
        raise
    await post_commit_status(
        context.statuses_url,
        "success",
        f"Tickets: {response.created} new, {response.updated} updated, {response.closed} closed",
        settings,
    )
    return response


async def _sync(
    request: TrackerSyncRequest,
    settings: Settings,
    gateway: TrackerGateway,
    session: Session | None,
    today: date | None,
    target: TrackerTarget,
    scope: Scope,
) -> TrackerSyncResponse:
    context = request.context
    labels = tracking_labels(settings)
    target = await resolve_statuses(gateway, target, settings)

    key_format = KeyFormat(prefix=settings.JIRA_ISSUE_PREFIX, postfix=settings.JIRA_ISSUE_POSTFIX)
    findings = normalize_scan_results(request.scan, context, scope, key_format)

    scope_label_values = scope_labels(context, scope, labels)
    page_size = settings.JIRA_MAX_JQL_RESULTS
    existing = await _fetch_scope_tickets(
        gateway, target.project_key, target.issue_type, labels, scope_label_values, page_size
    )
    parent: dict[str, ExistingTicket] = {}
    grandparent: dict[str, ExistingTicket] = {}
    if settings.JIRA_CHILD and settings.JIRA_PARENT_PROJECT_KEY:
        parent = await _fetch_scope_tickets(
            gateway, settings.JIRA_PARENT_PROJECT_KEY, target.issue_type, labels, scope_label_values, page_size
        )
        if settings.JIRA_GRANDPARENT_PROJECT_KEY:
            grandparent = await _fetch_scope_tickets(
                gateway,
                settings.JIRA_GRANDPARENT_PROJECT_KEY,
                target.issue_type,
                labels,
                scope_label_values,
                page_size,
            )

    options = ReconcileOptions(
        open_statuses=target.open_statuses,
        closed_statuses=target.closed_statuses,
        false_positive_label=labels.false_positive,
        list_false_positives=settings.LIST_FALSE_POSITIVES,
        hierarchy_enabled=settings.JIRA_CHILD,
        update_comment=target.update_comment_value if target.update_comment else None,
    )
    payloads = TicketPayloadBuilder(
        target,
        context,
        scope,
        labels,
        ContentOptions(
            description_prefix=settings.JIRA_DESCRIPTION_PREFIX,
            description_postfix=settings.JIRA_DESCRIPTION_POSTFIX,
            list_false_positives=settings.LIST_FALSE_POSITIVES,
            links=settings.reference_links(),
        ),
        today=today,
    )
    result = await reconcile(gateway, findings, existing, parent, grandparent, options, payloads)

    report = SyncReporter(session).record(request.scan.scan_id, context, target.project_key, result)
    return TrackerSyncResponse(
        scope=scope.value,
        project_key=target.project_key,
        findings=len(findings),
        existing_tickets=len(existing),
        created=len(result.new_ids),
        updated=len(result.updated_ids),
        closed=len(result.closed_ids),
        report=report,
        skipped_fields=sorted(payloads.skipped_fields),
    )
