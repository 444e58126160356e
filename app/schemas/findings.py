"""Pydantic schemas for normalized findings: the canonical shape reconciled against tracker tickets."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Severity(str, Enum):
    """Ordered finding severity. Values are what ends up in ticket summaries and fields."""

    CRITICAL = "Critical"
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"
    INFO = "Info"

    @property
    def rank(self) -> int:
        """Higher is more severe (Critical=4 ... Info=0)."""
        return _SEVERITY_RANK[self]


_SEVERITY_RANK: dict[Severity, int] = {
    Severity.INFO: 0,
    Severity.LOW: 1,
    Severity.MEDIUM: 2,
    Severity.HIGH: 3,
    Severity.CRITICAL: 4,
}

SEVERITY_VALUES: frozenset[str] = frozenset(s.value for s in Severity)


class LineDetail(BaseModel):
    """One reported line of a static finding."""

    model_config = ConfigDict(frozen=True)

    code_snippet: str | None = Field(default=None, description="Source line as reported by the scanner.")
    comment: str | None = Field(default=None, description="Triage comment left on this line.")
    false_positive: bool = Field(default=False, description="Line was triaged as not exploitable.")


class PackageDetails(BaseModel):
    """Dependency (SCA) details; present only for dependency findings."""

    model_config = ConfigDict(frozen=True)

    finding_id: str = Field(..., min_length=1, description="Scanner vulnerability id (e.g. CVE-2021-23337).")
    severity: Severity = Field(..., description="Severity of the package vulnerability.")
    score: float = Field(default=0.0, ge=0, le=10, description="CVSS score in range 0.0–10.0.")
    package_name: str = Field(..., min_length=1, description="Vulnerable package name.")
    package_version: str = Field(default="", description="Installed (vulnerable) version.")
    recommended_version: str | None = Field(default=None, description="Version that fixes the vulnerability.")
    publish_date: str | None = Field(default=None, description="Advisory publish date.")
    cve_name: str | None = Field(default=None, description="CVE identifier, used for the NVD link.")
    vulnerability_link: str | None = Field(default=None, description="Scanner link to the vulnerability.")


class Finding(BaseModel):
    """
    One normalized vulnerability occurrence.

    Built once per scan from raw scanner output and never mutated; identity across
    runs comes from the identity key, not from anything stored on the finding.
    """

    model_config = ConfigDict(frozen=True)

    vulnerability: str = Field(..., min_length=1, description="Vulnerability/query name or dependency finding id.")
    filename: str = Field(default="", description="Affected file, or package name for dependency findings.")
    severity: Severity = Field(..., description="Canonical severity.")
    cwe: str | None = Field(default=None, description="CWE id without prefix (e.g. 89).")
    cve: str | None = Field(default=None, description="CVE id when known.")
    description: str | None = Field(default=None, description="Scanner description of the issue.")
    language: str | None = Field(default=None, description="Source language.")
    link: str | None = Field(default=None, description="Scanner link to the result.")
    details: dict[int, LineDetail] = Field(
        default_factory=dict,
        description="Line number → line detail, for static findings.",
    )
    package: PackageDetails | None = Field(default=None, description="Present for dependency findings.")
    false_positive: bool = Field(
        default=False,
        description="Explicit scanner flag; only consulted when there are no line details.",
    )

    @property
    def is_dependency(self) -> bool:
        return self.package is not None

    @property
    def all_false_positive(self) -> bool:
        """True iff every line is false positive; without line details, the explicit flag decides."""
        if self.details:
            return all(d.false_positive for d in self.details.values())
        return self.false_positive

    def line_numbers(self, *, false_positive: bool) -> list[int]:
        """Sorted line numbers whose false-positive state matches."""
        return sorted(n for n, d in self.details.items() if d.false_positive == false_positive)
