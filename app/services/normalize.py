"""Normalize a finished scan bundle into findings keyed by identity key."""

import logging
import re

from app.schemas.findings import Finding, LineDetail, PackageDetails, Severity
from app.schemas.scan_results import ScanResultBundle, ScaPackage, ScaVulnerability, StaticIssue
from app.schemas.tracker import RequestContext
from app.services.identity_keys import (
    KeyFormat,
    Scope,
    build_dependency_key,
    build_static_key,
    key_branch,
)

logger = logging.getLogger(__name__)

_DEFAULT_SEVERITY = Severity.INFO

# Severity aliases (case-insensitive) -> canonical level.
_SEVERITY_ALIASES: dict[str, Severity] = {
    "critical": Severity.CRITICAL,
    "crit": Severity.CRITICAL,
    "1": Severity.CRITICAL,
    "high": Severity.HIGH,
    "2": Severity.HIGH,
    "medium": Severity.MEDIUM,
    "med": Severity.MEDIUM,
    "moderate": Severity.MEDIUM,
    "3": Severity.MEDIUM,
    "low": Severity.LOW,
    "4": Severity.LOW,
    "info": Severity.INFO,
    "information": Severity.INFO,
    "informational": Severity.INFO,
    "informative": Severity.INFO,
    "0": Severity.INFO,
    "5": Severity.INFO,
}

# CVSS score bands -> severity (used when severity field is missing or invalid).
_CVSS_TO_SEVERITY: list[tuple[tuple[float, float], Severity]] = [
    ((9.0, 10.0), Severity.CRITICAL),
    ((7.0, 8.99), Severity.HIGH),
    ((4.0, 6.99), Severity.MEDIUM),
    ((0.1, 3.99), Severity.LOW),
    ((0.0, 0.09), Severity.INFO),
]

# CVE: CVE-YEAR-NNNNN+ (4+ digits after second hyphen).
_CVE_PATTERN = re.compile(r"CVE-\d{4}-\d{4,}", re.IGNORECASE)
_CWE_PREFIX = re.compile(r"^\s*CWE[-_ ]?", re.IGNORECASE)

MAX_VULN_ID_LENGTH = 255


def normalize_severity(raw_severity: str | None, raw_cvss: float | None = None) -> Severity:
    """
    Map raw severity string and/or CVSS score to canonical Severity.
    Tries aliases first, then CVSS bands when severity is missing or unknown.
    """
    if raw_severity and raw_severity.strip():
        normalized = raw_severity.strip().lower()
        if normalized in _SEVERITY_ALIASES:
            return _SEVERITY_ALIASES[normalized]
    if raw_cvss is not None and 0 <= raw_cvss <= 10:
        for (lo, hi), sev in _CVSS_TO_SEVERITY:
            if lo <= raw_cvss <= hi:
                return sev
    return _DEFAULT_SEVERITY


def extract_cve(text: str | None) -> str | None:
    """Return the first CVE identifier found in text, or None. Bounded to MAX_VULN_ID_LENGTH."""
    if not text:
        return None
    match = _CVE_PATTERN.search(text)
    if not match:
        return None
    value = match.group(0).upper()
    if len(value) > MAX_VULN_ID_LENGTH:
        return None
    return value


def normalize_cwe(raw_cwe: str | None) -> str | None:
    """'CWE-89', 'cwe 89' and '89' all become '89'."""
    if raw_cwe is None:
        return None
    value = _CWE_PREFIX.sub("", str(raw_cwe)).strip()
    return value or None


def _blank_to_none(value: str | None) -> str | None:
    if value is None or not value.strip():
        return None
    return value.strip()


def static_issue_to_finding(issue: StaticIssue) -> Finding:
    """Convert one static-analysis issue. Repeated line numbers keep the last detail."""
    details = {
        d.line: LineDetail(
            code_snippet=d.code_snippet,
            comment=_blank_to_none(d.comment),
            false_positive=d.false_positive,
        )
        for d in issue.details
    }
    return Finding(
        vulnerability=issue.vulnerability.strip(),
        filename=(issue.filename or "").strip().replace("\\", "/"),
        severity=normalize_severity(issue.severity),
        cwe=normalize_cwe(issue.cwe),
        cve=_blank_to_none(issue.cve) or extract_cve(issue.description),
        description=_blank_to_none(issue.description),
        language=_blank_to_none(issue.language),
        link=_blank_to_none(issue.link),
        details=details,
        false_positive=issue.false_positive,
    )


def dependency_to_finding(vulnerability: ScaVulnerability, package: ScaPackage) -> Finding:
    """Convert one SCA finding joined with its package."""
    severity = normalize_severity(vulnerability.severity, vulnerability.score)
    cve = _blank_to_none(vulnerability.cve_name) or extract_cve(vulnerability.id)
    return Finding(
        vulnerability=vulnerability.id.strip(),
        filename=package.name,
        severity=severity,
        cwe=normalize_cwe(vulnerability.cwe),
        cve=cve,
        description=_blank_to_none(vulnerability.description),
        link=_blank_to_none(vulnerability.vulnerability_link),
        package=PackageDetails(
            finding_id=vulnerability.id.strip(),
            severity=severity,
            score=vulnerability.score,
            package_name=package.name,
            package_version=package.version,
            recommended_version=_blank_to_none(vulnerability.recommendations),
            publish_date=_blank_to_none(vulnerability.publish_date),
            cve_name=cve,
            vulnerability_link=_blank_to_none(vulnerability.vulnerability_link),
        ),
        false_positive=vulnerability.false_positive,
    )


def normalize_scan_results(
    bundle: ScanResultBundle,
    context: RequestContext,
    scope: Scope,
    key_format: KeyFormat,
) -> dict[str, Finding]:
    """
    Build the identity key → finding map for one scan.

    Static issues come first, then dependency findings; on key collision the
    later finding wins. Dependency findings whose package is not in the bundle
    are dropped with a warning.
    """
    branch = key_branch(context, scope)
    findings: dict[str, Finding] = {}

    for issue in bundle.static_issues:
        finding = static_issue_to_finding(issue)
        key = build_static_key(finding.vulnerability, finding.filename, branch, key_format)
        findings[key] = finding

    if bundle.sca is not None:
        packages = {p.id: p for p in bundle.sca.packages}
        for vulnerability in bundle.sca.findings:
            package = packages.get(vulnerability.package_id)
            if package is None:
                logger.warning(
                    "Dependency finding references unknown package; skipping",
                    extra={"finding_id": vulnerability.id, "package_id": vulnerability.package_id},
                )
                continue
            finding = dependency_to_finding(vulnerability, package)
            key = build_dependency_key(finding.package, branch, key_format)
            findings[key] = finding

    logger.debug(
        "Normalized scan results",
        extra={"scan_id": bundle.scan_id, "scope": scope.value, "finding_count": len(findings)},
    )
    return findings
