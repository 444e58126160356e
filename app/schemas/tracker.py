"""Pydantic schemas describing where and how findings are tracked: request context, tracker target, field mappings."""

import re
from typing import Literal

from pydantic import BaseModel, Field, field_validator

FieldKind = Literal["scanner", "static", "result"]

# Characters allowed in the application name (it ends up in tracker labels).
_APPLICATION_INVALID_CHARS = re.compile(r"[^a-zA-Z0-9\-_.+]+")


class FieldMapping(BaseModel):
    """One tracker field populated on create/update."""

    model_config = {"extra": "ignore"}

    kind: FieldKind | None = Field(
        default=None,
        description="scanner (value from request scanner_fields), static (default value), result (derived; default).",
    )
    name: str | None = Field(
        default=None,
        description="Scanner field name, or well-known result field (severity, cwe, loc, system-date, ...).",
    )
    jira_field_name: str = Field(..., min_length=1, description="Tracker field display name or id.")
    jira_field_type: str | None = Field(
        default=None,
        description="text, component, label, single-select, radio, multi-select, cascading-select. Defaults to text.",
    )
    jira_default_value: str | None = Field(default=None, description="Used when the resolved value is empty.")
    skip_update: bool = Field(default=False, description="Only set the field on create.")
    offset: int = Field(default=0, ge=-3650, le=3650, description="Day offset for system-date.")


class RequestContext(BaseModel):
    """Source-control / scanner context of the scan being synced."""

    model_config = {"extra": "ignore"}

    application: str | None = Field(default=None, description="Application name.")
    project: str | None = Field(default=None, description="Scanner project name.")
    team: str | None = Field(default=None, description="Scanner team.")
    namespace: str | None = Field(default=None, description="Repository owner / namespace.")
    repo_name: str | None = Field(default=None, description="Repository name.")
    repo_url: str | None = Field(default=None, description="Repository web URL.")
    branch: str | None = Field(default=None, description="Scanned branch.")
    site: str | None = Field(default=None, description="Source-control site.")
    product: str | None = Field(default=None, description="Product tracking label; defaults to JIRA_PRODUCT_LABEL.")
    statuses_url: str | None = Field(default=None, description="Commit status URL for pull-request status posting.")
    scanner_fields: dict[str, str] = Field(
        default_factory=dict,
        description="Scanner-supplied custom field values (kind=scanner mappings).",
    )

    @field_validator("application")
    @classmethod
    def sanitize_application(cls, v: str | None) -> str | None:
        if v is None or not v.strip():
            return None
        return _APPLICATION_INVALID_CHARS.sub("_", v.strip())


class TrackerTargetOverrides(BaseModel):
    """Per-request overrides of the configured tracker target."""

    project_key: str | None = Field(default=None, description="Tracker project key.")
    issue_type: str | None = Field(default=None, description="Issue type name.")
    assignee_account_id: str | None = Field(default=None, description="Assignee account id.")
    fields: list[FieldMapping] | None = Field(default=None, max_length=100, description="Field mappings.")


class TrackerTarget(BaseModel):
    """Resolved tracker project, issue type and workflow used by one sync."""

    project_key: str = Field(..., min_length=1)
    issue_type: str = Field(..., min_length=1)
    assignee_account_id: str | None = None
    priorities: dict[str, str] = Field(default_factory=dict, description="Severity → tracker priority name.")
    fields: list[FieldMapping] = Field(default_factory=list)
    open_statuses: list[str] = Field(default_factory=list)
    closed_statuses: list[str] = Field(default_factory=list)
    open_transition: str = "Reopen"
    close_transition: str = "Done"
    close_transition_field: str | None = None
    close_transition_value: str | None = None
    close_false_positive_transition_value: str | None = None
    update_comment: bool = False
    update_comment_value: str | None = None


class ReferenceLinks(BaseModel):
    """Reference URLs rendered into descriptions and recommendation fields."""

    mitre_url: str | None = Field(default=None, description="CWE URL template with a %s placeholder.")
    training_url: str | None = None
    wiki_url: str | None = None

    def mitre_link(self, cwe: str | None) -> str | None:
        if not cwe or not self.mitre_url:
            return None
        return self.mitre_url.replace("%s", cwe)
