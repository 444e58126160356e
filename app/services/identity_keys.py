"""
Identity keys: the deterministic string that ties a finding to its tracker ticket.

A finding's key is written as the ticket summary on create and read back from
the summary on every later run, so there is no persisted identity. Both sides
must go through this module. Changing any format is a migration: existing
tickets would stop matching and duplicates would be created.
"""

import re
from enum import Enum

from pydantic import BaseModel, Field

from app.core.errors import TrackerConfigurationError
from app.schemas.findings import PackageDetails
from app.schemas.tracker import RequestContext

KEY_FORMAT_VERSION = 1

# Tracker summary limit. Longer keys are cut to MAX_SUMMARY_LENGTH - 1 characters.
MAX_SUMMARY_LENGTH = 255

_SEVERITY_ALTERNATION = "Critical|High|Medium|Low|Info"

_DEPENDENCY_KEY_RE = re.compile(
    r"^(?P<finding_id>.+?) \((?P<severity>" + _SEVERITY_ALTERNATION + r"):(?P<score>\d+\.\d)\)"
    r" @ (?P<package>.+):(?P<version>[^:\s\[\]]*)(?: \[(?P<branch>[^\]]*)\])?$"
)
_STATIC_KEY_RE = re.compile(
    r"^(?P<vulnerability>.+?) @ (?P<filename>.+?)(?: \[(?P<branch>[^\]]*)\])?$"
)


class Scope(str, Enum):
    """What a run's tickets are scoped to."""

    BRANCH = "branch"
    REPO = "repo"
    APPLICATION = "application"


class KeyFormat(BaseModel):
    """Summary decoration; part of the key, so changing it orphans existing tickets."""

    prefix: str = ""
    postfix: str = ""
    version: int = KEY_FORMAT_VERSION


class IdentityKeyParts(BaseModel):
    """Fields recovered from a ticket summary."""

    kind: str = Field(..., description="static or dependency")
    vulnerability: str | None = None
    filename: str | None = None
    finding_id: str | None = None
    severity: str | None = None
    score: float | None = None
    package_name: str | None = None
    package_version: str | None = None
    branch: str | None = None


def resolve_scope(
    context: RequestContext,
    *,
    application_only: bool = False,
    application_repo_only: bool = False,
) -> Scope:
    """
    Pick the tracking scope for a request.

    Branch scope needs namespace, repo and branch and is disabled by either
    application-only flag. Otherwise application + repo gives repo scope and
    application alone gives application scope.

    Raises:
        TrackerConfigurationError: Nothing identifies where the tickets belong.
    """
    if (
        not application_only
        and not application_repo_only
        and context.namespace
        and context.repo_name
        and context.branch
    ):
        return Scope.BRANCH
    if context.application and context.repo_name:
        return Scope.REPO
    if context.application:
        return Scope.APPLICATION
    raise TrackerConfigurationError(
        "Namespace/repo/branch or application must be provided in order to track findings"
    )


def _truncate(key: str) -> str:
    if len(key) > MAX_SUMMARY_LENGTH:
        return key[: MAX_SUMMARY_LENGTH - 1]
    return key


def build_static_key(
    vulnerability: str,
    filename: str,
    branch: str | None,
    key_format: KeyFormat,
) -> str:
    """Key for a static-analysis finding. Pass branch only in branch scope."""
    if branch:
        key = f"{key_format.prefix}{vulnerability} @ {filename} [{branch}]{key_format.postfix}"
    else:
        key = f"{key_format.prefix}{vulnerability} @ {filename}{key_format.postfix}"
    return _truncate(key)


def build_dependency_key(
    package: PackageDetails,
    branch: str | None,
    key_format: KeyFormat,
) -> str:
    """Key for a dependency finding: id, severity and score, then package coordinates."""
    head = f"{package.finding_id} ({package.severity.value}:{package.score:.1f})"
    coordinates = f"{package.package_name}:{package.package_version}"
    if branch:
        key = f"{key_format.prefix}{head} @ {coordinates} [{branch}]{key_format.postfix}"
    else:
        key = f"{key_format.prefix}{head} @ {coordinates}{key_format.postfix}"
    return _truncate(key)


def key_branch(context: RequestContext, scope: Scope) -> str | None:
    """Branch component of keys for this scope (None outside branch scope)."""
    return context.branch if scope is Scope.BRANCH else None


def parse_identity_key(summary: str, key_format: KeyFormat | None = None) -> IdentityKeyParts | None:
    """
    Inverse of the key builders. Returns None when the summary was not produced by them.

    Summaries that were truncated may parse with a shortened last component.
    """
    key_format = key_format or KeyFormat()
    body = summary
    if key_format.prefix:
        if not body.startswith(key_format.prefix):
            return None
        body = body[len(key_format.prefix):]
    if key_format.postfix:
        if not body.endswith(key_format.postfix):
            return None
        body = body[: -len(key_format.postfix)]

    m = _DEPENDENCY_KEY_RE.match(body)
    if m:
        return IdentityKeyParts(
            kind="dependency",
            finding_id=m.group("finding_id"),
            severity=m.group("severity"),
            score=float(m.group("score")),
            package_name=m.group("package"),
            package_version=m.group("version"),
            branch=m.group("branch"),
        )
    m = _STATIC_KEY_RE.match(body)
    if m:
        return IdentityKeyParts(
            kind="static",
            vulnerability=m.group("vulnerability"),
            filename=m.group("filename"),
            branch=m.group("branch"),
        )
    return None
