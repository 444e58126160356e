"""Pydantic schemas for the finished scan bundle handed to a sync (static issues + optional SCA results)."""

from pydantic import BaseModel, Field


class StaticLineDetail(BaseModel):
    """One result line of a static-analysis issue."""

    model_config = {"extra": "ignore"}

    line: int = Field(..., ge=0, description="Line number in the file.")
    code_snippet: str | None = Field(default=None, description="Source line text.")
    comment: str | None = Field(default=None, description="Triage comment.")
    false_positive: bool = Field(default=False, description="Line triaged as not exploitable.")


class StaticIssue(BaseModel):
    """Static-analysis issue as reported by the scanner (one vulnerability in one file)."""

    model_config = {"extra": "ignore"}

    vulnerability: str = Field(..., min_length=1, description="Query / vulnerability name (e.g. SQL_Injection).")
    filename: str = Field(default="", description="Path of the affected file.")
    severity: str | None = Field(default=None, description="Raw severity; aliases are normalized.")
    cwe: str | None = Field(default=None, description="CWE id.")
    cve: str | None = Field(default=None, description="CVE id, if any.")
    description: str | None = Field(default=None, description="Issue description.")
    language: str | None = Field(default=None, description="Source language.")
    link: str | None = Field(default=None, description="Link to the result in the scanner UI.")
    details: list[StaticLineDetail] = Field(default_factory=list, description="Reported lines.")
    false_positive: bool = Field(
        default=False,
        description="Issue-level false-positive flag (used when no line details are reported).",
    )


class ScaPackage(BaseModel):
    """Package referenced by SCA findings."""

    model_config = {"extra": "ignore"}

    id: str = Field(..., min_length=1, description="Scanner package id.")
    name: str = Field(..., min_length=1, description="Package name.")
    version: str = Field(default="", description="Resolved version.")


class ScaVulnerability(BaseModel):
    """SCA finding: one vulnerability in one package."""

    model_config = {"extra": "ignore"}

    id: str = Field(..., min_length=1, description="Vulnerability id (e.g. CVE-2021-23337).")
    package_id: str = Field(..., min_length=1, description="Id of the affected package in `packages`.")
    severity: str | None = Field(default=None, description="Raw severity.")
    score: float = Field(default=0.0, ge=0, le=10, description="CVSS score in range 0.0–10.0.")
    cve_name: str | None = Field(default=None, description="CVE name.")
    cwe: str | None = Field(default=None, description="CWE id, if any.")
    description: str | None = Field(default=None, description="Advisory description.")
    publish_date: str | None = Field(default=None, description="Advisory publish date.")
    recommendations: str | None = Field(default=None, description="Recommended (fixed) version.")
    vulnerability_link: str | None = Field(default=None, description="Link to the advisory in the scanner UI.")
    false_positive: bool = Field(default=False, description="Finding triaged as ignored/not exploitable.")


class ScaResults(BaseModel):
    """Software-composition results."""

    findings: list[ScaVulnerability] = Field(default_factory=list)
    packages: list[ScaPackage] = Field(default_factory=list)


class ScanResultBundle(BaseModel):
    """Finished scan results consumed by a sync."""

    scan_id: str | None = Field(default=None, description="Scanner scan id, used for audit reporting.")
    static_issues: list[StaticIssue] = Field(
        default_factory=list,
        max_length=50_000,
        description="Static-analysis issues.",
    )
    sca: ScaResults | None = Field(default=None, description="Dependency results, when an SCA scan ran.")
