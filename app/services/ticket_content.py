"""Ticket content: description text, tracking labels and the field payloads written on create/update."""

from __future__ import annotations

import logging
from datetime import date
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field

from app.schemas.findings import Finding
from app.schemas.tracker import ReferenceLinks, RequestContext, TrackerTarget
from app.services.custom_fields import build_custom_fields
from app.services.identity_keys import Scope

if TYPE_CHECKING:
    from app.services.tracker_gateway import TrackerGateway

logger = logging.getLogger(__name__)

# Jira rejects descriptions longer than 32767 characters.
DESCRIPTION_MAX_LENGTH = 32_000

NVD_URL = "https://nvd.nist.gov/vuln/detail/"

# System field holding labels when the tracking label field is the standard one.
LABELS_FIELD = "labels"


class TrackingLabels(BaseModel):
    """Labels that scope tickets to a repo/branch/application. Written on create and used in searches."""

    label_field: str = LABELS_FIELD
    product: str = "sast"
    owner_prefix: str = "owner"
    repo_prefix: str = "repo"
    branch_prefix: str = "branch"
    app_prefix: str = "app"
    false_positive: str = "false-positive"


class ContentOptions(BaseModel):
    """Description rendering options."""

    description_prefix: str = ""
    description_postfix: str = ""
    list_false_positives: bool = False
    links: ReferenceLinks = Field(default_factory=ReferenceLinks)


def scope_labels(context: RequestContext, scope: Scope, labels: TrackingLabels) -> list[str]:
    """Product label plus the scope's owner/repo/branch or app/repo or app labels."""
    product = context.product or labels.product
    if scope is Scope.BRANCH:
        return [
            product,
            f"{labels.owner_prefix}:{context.namespace}",
            f"{labels.repo_prefix}:{context.repo_name}",
            f"{labels.branch_prefix}:{context.branch}",
        ]
    if scope is Scope.REPO:
        return [
            product,
            f"{labels.app_prefix}:{context.application}",
            f"{labels.repo_prefix}:{context.repo_name}",
        ]
    return [product, f"{labels.app_prefix}:{context.application}"]


def normalize_description(text: str) -> str:
    """Comparable form of a description: stripped lines, blank lines dropped."""
    return "\n".join(line.strip() for line in (text or "").splitlines() if line.strip())


def _file_url(context: RequestContext, filename: str) -> str | None:
    if not context.repo_url or not context.branch or not filename:
        return None
    return f"{context.repo_url.rstrip('/')}/blob/{context.branch}/{filename.lstrip('/')}"


def _headline(finding: Finding, context: RequestContext, scope: Scope) -> str:
    branch = context.branch if scope is Scope.BRANCH else None
    if finding.package is not None:
        head = f"{finding.severity.value} Vulnerable Package issue exists @ {finding.package.package_name}"
    else:
        head = f"{finding.vulnerability} issue exists @ {finding.filename}"
    return f"{head} in branch {branch}" if branch else head


def render_description(
    finding: Finding,
    context: RequestContext,
    scope: Scope,
    options: ContentOptions,
) -> str:
    """Plain-text ticket description. Deterministic for a given finding and context."""
    lines: list[str] = []
    if options.description_prefix:
        lines.append(options.description_prefix)
    if finding.package is not None and finding.description:
        lines.append(finding.description.strip())
        lines.append("")
    lines.append(_headline(finding, context, scope))
    lines.append("")
    if finding.package is None and finding.description:
        lines.append(finding.description.strip())
        lines.append("")

    params = [
        ("Namespace", context.namespace),
        ("Repository", context.repo_name),
        ("Branch", context.branch),
        ("Repository Url", context.repo_url),
        ("Application", context.application),
        ("Project", context.project),
        ("Team", context.team),
        ("Severity", finding.severity.value),
        ("CWE", finding.cwe),
    ]
    lines.extend(f"{name}: {value}" for name, value in params if value)
    lines.append("")
    lines.append("Additional Info")

    links = options.links
    if finding.link:
        lines.append(f"Scanner Details: {finding.link}")
    mitre = links.mitre_link(finding.cwe)
    if mitre:
        lines.append(f"Mitre Details: {mitre}")
    if links.training_url:
        lines.append(f"Training: {links.training_url}")
    if links.wiki_url:
        lines.append(f"Guidance: {links.wiki_url}")

    if finding.details:
        file_url = _file_url(context, finding.filename)
        open_lines = finding.line_numbers(false_positive=False)
        if open_lines:
            lines.append("Lines: " + " ".join(str(n) for n in open_lines))
        if options.list_false_positives:
            fp_lines = finding.line_numbers(false_positive=True)
            if fp_lines:
                lines.append("Lines Marked Not Exploitable: " + " ".join(str(n) for n in fp_lines))
        for n in open_lines:
            snippet = finding.details[n].code_snippet
            if not snippet:
                continue
            lines.append(f"Line #{n}: {file_url}#L{n}" if file_url else f"Line #{n}")
            lines.append(snippet.strip())

    package = finding.package
    if package is not None:
        lines.append("")
        sca_details = [
            ("Vulnerability ID", package.finding_id),
            ("Package Name", package.package_name),
            ("Severity", package.severity.value),
            ("CVSS Score", f"{package.score:.1f}"),
            ("Publish Date", package.publish_date),
            ("Current Version", package.package_version),
            ("Recommended version", package.recommended_version),
        ]
        lines.extend(f"{name}: {value}" for name, value in sca_details if value)
        if package.vulnerability_link:
            lines.append(f"Link To SCA: {package.vulnerability_link}")
        if package.cve_name:
            lines.append(f"Reference NVD link: {NVD_URL}{package.cve_name}")

    if options.description_postfix:
        lines.append("")
        lines.append(options.description_postfix)

    text = "\n".join(lines)
    if len(text) > DESCRIPTION_MAX_LENGTH:
        return text[:DESCRIPTION_MAX_LENGTH].rstrip()
    return text


class TicketPayloadBuilder:
    """
    Builds create/update payloads and transition inputs for one sync run.

    Custom fields that had to be skipped are collected in `skipped_fields` so
    the run can report them.
    """

    def __init__(
        self,
        target: TrackerTarget,
        context: RequestContext,
        scope: Scope,
        labels: TrackingLabels,
        content: ContentOptions,
        today: date | None = None,
    ) -> None:
        self.target = target
        self.context = context
        self.scope = scope
        self.labels = labels
        self.content = content
        self.today = today
        self.skipped_fields: set[str] = set()

    def description(self, finding: Finding) -> str:
        return render_description(finding, self.context, self.scope, self.content)

    def _priority(self, finding: Finding) -> dict[str, str] | None:
        name = self.target.priorities.get(finding.severity.value)
        return {"name": name} if name else None

    async def _custom_fields(self, gateway: TrackerGateway, finding: Finding, *, for_update: bool) -> dict[str, Any]:
        result = await build_custom_fields(
            gateway,
            self.target.project_key,
            self.target.issue_type,
            self.target.fields,
            finding,
            self.context,
            self.content.links,
            for_update=for_update,
            today=self.today,
        )
        self.skipped_fields.update(result.skipped)
        return result.fields

    async def create_fields(self, gateway: TrackerGateway, key: str, finding: Finding) -> dict[str, Any]:
        """Summary (the identity key), description, priority, assignee, tracking labels and custom fields."""
        fields: dict[str, Any] = {
            "summary": key,
            "description": self.description(finding),
        }
        priority = self._priority(finding)
        if priority:
            fields["priority"] = priority
        if self.target.assignee_account_id:
            fields["assignee"] = {"accountId": self.target.assignee_account_id}

        tracking = scope_labels(self.context, self.scope, self.labels)
        if self.labels.label_field == LABELS_FIELD:
            label_field_id: str | None = LABELS_FIELD
        else:
            label_field_id = await gateway.resolve_custom_field_id(
                self.target.project_key, self.target.issue_type, self.labels.label_field
            )
        if label_field_id:
            fields[label_field_id] = tracking
        else:
            logger.warning(
                "Tracking label field not found; ticket created without tracking labels",
                extra={"label_field": self.labels.label_field, "project_key": self.target.project_key},
            )

        custom = await self._custom_fields(gateway, finding, for_update=False)
        if label_field_id in custom and isinstance(custom[label_field_id], list):
            custom[label_field_id] = tracking + [v for v in custom[label_field_id] if v not in tracking]
        fields.update(custom)
        return fields

    async def update_fields(self, gateway: TrackerGateway, finding: Finding) -> dict[str, Any]:
        """Description, priority and custom fields (minus skip_update ones). Summary and labels are left alone."""
        fields: dict[str, Any] = {"description": self.description(finding)}
        priority = self._priority(finding)
        if priority:
            fields["priority"] = priority
        fields.update(await self._custom_fields(gateway, finding, for_update=True))
        return fields

    def close_field_input(self, *, false_positive: bool) -> dict[str, Any] | None:
        """Field set during the close transition (e.g. resolution), if configured."""
        field = self.target.close_transition_field
        if not field:
            return None
        value = self.target.close_transition_value
        if false_positive and self.target.close_false_positive_transition_value:
            value = self.target.close_false_positive_transition_value
        if not value:
            return None
        return {field: {"name": value}}
