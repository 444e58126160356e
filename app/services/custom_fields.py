"""
Resolve and encode tracker custom fields for a finding.

Each configured FieldMapping yields a string value (from the scanner context,
a static default, or a well-known property of the finding) which is then
encoded for the tracker field type. A value that cannot be encoded skips that
one field; the ticket is still written.
"""

from __future__ import annotations

import logging
import re
from datetime import date, timedelta
from typing import TYPE_CHECKING, Any, Callable

from pydantic import BaseModel, Field

from app.core.errors import InvalidFieldValue
from app.schemas.findings import Finding
from app.schemas.tracker import FieldMapping, ReferenceLinks, RequestContext

if TYPE_CHECKING:
    from app.services.tracker_gateway import TrackerGateway

logger = logging.getLogger(__name__)

TEXT = "text"
COMPONENT = "component"
LABEL = "label"
SINGLE_SELECT = "single-select"
RADIO = "radio"
MULTI_SELECT = "multi-select"
CASCADING_SELECT = "cascading-select"

FIELD_TYPES = frozenset({TEXT, COMPONENT, LABEL, SINGLE_SELECT, RADIO, MULTI_SELECT, CASCADING_SELECT})

# Tracker system field that receives component values.
COMPONENTS_FIELD = "components"

_LABEL_INVALID_CHARS = re.compile(r"[^a-zA-Z0-9\-_]+")
_CASCADE_SEPARATOR = ";"


class CustomFieldsResult(BaseModel):
    """Encoded field payloads keyed by tracker field id, plus the mappings that were skipped."""

    fields: dict[str, Any] = Field(default_factory=dict)
    skipped: list[str] = Field(default_factory=list)


def _joined_lines(finding: Finding, *, false_positive: bool) -> str:
    return ",".join(str(n) for n in finding.line_numbers(false_positive=false_positive))


def _recommendation(finding: Finding, links: ReferenceLinks) -> str:
    parts: list[str] = []
    if finding.link:
        parts.append(f"Scanner Link: {finding.link}")
    mitre = links.mitre_link(finding.cwe)
    if mitre:
        parts.append(f"Mitre Details: {mitre}")
    if links.training_url:
        parts.append(f"Training: {links.training_url}")
    if links.wiki_url:
        parts.append(f"Guidance: {links.wiki_url}")
    return "\n".join(parts)


def _comments(finding: Finding) -> str:
    return "\n".join(
        f"[Line {n}]: [{d.comment}]"
        for n, d in sorted(finding.details.items())
        if d.comment
    )


# Well-known result field name -> value getter.
_RESULT_FIELDS: dict[str, Callable[[FieldMapping, Finding, RequestContext, ReferenceLinks, date], str | None]] = {
    "application": lambda m, f, c, lk, t: c.application,
    "project": lambda m, f, c, lk, t: c.project,
    "team": lambda m, f, c, lk, t: c.team,
    "namespace": lambda m, f, c, lk, t: c.namespace,
    "repo-name": lambda m, f, c, lk, t: c.repo_name,
    "repo-url": lambda m, f, c, lk, t: c.repo_url,
    "branch": lambda m, f, c, lk, t: c.branch,
    "site": lambda m, f, c, lk, t: c.site,
    "severity": lambda m, f, c, lk, t: f.severity.value,
    "category": lambda m, f, c, lk, t: f.vulnerability,
    "cwe": lambda m, f, c, lk, t: f.cwe,
    "cve": lambda m, f, c, lk, t: f.cve,
    "system-date": lambda m, f, c, lk, t: (t + timedelta(days=m.offset)).isoformat(),
    "recommendation": lambda m, f, c, lk, t: _recommendation(f, lk),
    "loc": lambda m, f, c, lk, t: _joined_lines(f, false_positive=False),
    "not-exploitable": lambda m, f, c, lk, t: _joined_lines(f, false_positive=True),
    "issue-link": lambda m, f, c, lk, t: f.link,
    "filename": lambda m, f, c, lk, t: f.filename,
    "language": lambda m, f, c, lk, t: f.language,
    "comment": lambda m, f, c, lk, t: _comments(f),
}


def resolve_field_value(
    mapping: FieldMapping,
    finding: Finding,
    context: RequestContext,
    links: ReferenceLinks,
    today: date | None = None,
) -> str:
    """
    String value for one mapping, falling back to jira_default_value when empty.

    Unknown result names resolve to "" (plus the default, if any) with a warning.
    """
    kind = mapping.kind or "result"
    value: str | None
    if kind == "scanner":
        value = context.scanner_fields.get(mapping.name or "")
    elif kind == "static":
        value = mapping.jira_default_value
    else:
        getter = _RESULT_FIELDS.get(mapping.name or "")
        if getter is None:
            logger.warning(
                "Unknown result field; no value resolved",
                extra={"field_name": mapping.name, "jira_field_name": mapping.jira_field_name},
            )
            value = None
        else:
            value = getter(mapping, finding, context, links, today or date.today())
    if not value and mapping.jira_default_value:
        value = mapping.jira_default_value
    return value or ""


def encode_field_value(field_type: str | None, value: str, field_name: str = "") -> Any:
    """
    Encode a resolved value for a tracker field type (None means text).

    Raises:
        InvalidFieldValue: Unknown field type, or a cascading value that is not "parent;child".
    """
    field_type = (field_type or TEXT).strip().lower()
    if field_type == TEXT:
        return value
    if field_type == COMPONENT:
        return [{"name": value}]
    if field_type == LABEL:
        labels = [_LABEL_INVALID_CHARS.sub("_", token.strip()) for token in value.split(",") if token.strip()]
        if not labels:
            raise InvalidFieldValue(field_name, "no label values")
        return labels
    if field_type in (SINGLE_SELECT, RADIO):
        return {"value": value}
    if field_type == MULTI_SELECT:
        return [{"value": token.strip()} for token in value.split(",") if token.strip()]
    if field_type == CASCADING_SELECT:
        parts = [p.strip() for p in value.split(_CASCADE_SEPARATOR)]
        if len(parts) != 2 or not all(parts):
            raise InvalidFieldValue(
                field_name,
                f"cascading value {value!r} must be 'parent{_CASCADE_SEPARATOR}child'",
            )
        return {"value": parts[0], "child": {"value": parts[1]}}
    raise InvalidFieldValue(field_name, f"{field_type!r} is not a supported field type")


async def build_custom_fields(
    gateway: TrackerGateway,
    project_key: str,
    issue_type: str,
    mappings: list[FieldMapping],
    finding: Finding,
    context: RequestContext,
    links: ReferenceLinks,
    *,
    for_update: bool = False,
    today: date | None = None,
) -> CustomFieldsResult:
    """
    Field payloads for create (or update, which omits skip_update mappings).

    Mappings with an unknown field type, a field the tracker does not know, or
    a value that cannot be encoded are reported in `skipped`. Empty values are
    simply left out.
    """
    result = CustomFieldsResult()
    for mapping in mappings:
        if for_update and mapping.skip_update:
            continue
        field_type = (mapping.jira_field_type or TEXT).strip().lower()
        if field_type not in FIELD_TYPES:
            logger.warning(
                "Unsupported tracker field type; skipping",
                extra={"jira_field_name": mapping.jira_field_name, "jira_field_type": field_type},
            )
            result.skipped.append(mapping.jira_field_name)
            continue
        if field_type == COMPONENT:
            field_id: str | None = COMPONENTS_FIELD
        else:
            field_id = await gateway.resolve_custom_field_id(project_key, issue_type, mapping.jira_field_name)
        if not field_id:
            logger.warning(
                "Tracker field not found for project/issue type; skipping",
                extra={
                    "jira_field_name": mapping.jira_field_name,
                    "project_key": project_key,
                    "issue_type": issue_type,
                },
            )
            result.skipped.append(mapping.jira_field_name)
            continue

        value = resolve_field_value(mapping, finding, context, links, today=today)
        if not value:
            continue
        try:
            result.fields[field_id] = encode_field_value(field_type, value, mapping.jira_field_name)
        except InvalidFieldValue as e:
            logger.warning(
                "Invalid custom field value; skipping field: %s",
                e.message,
                extra={"jira_field_name": e.field_name, "jira_field_type": field_type},
            )
            result.skipped.append(mapping.jira_field_name)
    return result
