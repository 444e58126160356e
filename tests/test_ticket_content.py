"""Tests for ticket descriptions, tracking labels and create/update payloads."""

import asyncio
import unittest
from datetime import date

from app.schemas.findings import Finding, LineDetail, PackageDetails, Severity
from app.schemas.tracker import FieldMapping, ReferenceLinks, RequestContext, TrackerTarget
from app.services.identity_keys import Scope
from app.services.ticket_content import (
    ContentOptions,
    TicketPayloadBuilder,
    TrackingLabels,
    normalize_description,
    render_description,
    scope_labels,
)
from tests.fakes import InMemoryTracker

CONTEXT = RequestContext(
    namespace="acme",
    repo_name="shop",
    repo_url="https://github.com/acme/shop",
    branch="main",
    application="shop",
)
STATIC = Finding(
    vulnerability="SQL_Injection",
    filename="src/a.java",
    severity=Severity.HIGH,
    cwe="89",
    description="User input reaches a query.",
    details={
        12: LineDetail(code_snippet="  q = s + x  "),
        40: LineDetail(code_snippet="q2 = s + y", false_positive=True),
    },
)
DEPENDENCY = Finding(
    vulnerability="CVE-2021-23337",
    filename="lodash",
    severity=Severity.HIGH,
    description="Command injection in template.",
    package=PackageDetails(
        finding_id="CVE-2021-23337",
        severity=Severity.HIGH,
        score=7.2,
        package_name="lodash",
        package_version="4.17.20",
        recommended_version="4.17.21",
        cve_name="CVE-2021-23337",
    ),
)


class TestScopeLabels(unittest.TestCase):
    """Tracking labels per scope."""

    def test_branch_scope(self) -> None:
        self.assertEqual(
            scope_labels(CONTEXT, Scope.BRANCH, TrackingLabels()),
            ["sast", "owner:acme", "repo:shop", "branch:main"],
        )

    def test_repo_scope(self) -> None:
        self.assertEqual(scope_labels(CONTEXT, Scope.REPO, TrackingLabels()), ["sast", "app:shop", "repo:shop"])

    def test_application_scope(self) -> None:
        self.assertEqual(scope_labels(CONTEXT, Scope.APPLICATION, TrackingLabels()), ["sast", "app:shop"])

    def test_product_from_context(self) -> None:
        context = CONTEXT.model_copy(update={"product": "sca"})
        self.assertEqual(scope_labels(context, Scope.APPLICATION, TrackingLabels())[0], "sca")


class TestRenderDescription(unittest.TestCase):
    """Plain-text description content."""

    def test_static_description(self) -> None:
        text = render_description(STATIC, CONTEXT, Scope.BRANCH, ContentOptions(links=ReferenceLinks(
            mitre_url="https://cwe.mitre.org/data/definitions/%s.html"
        )))
        lines = text.splitlines()
        self.assertEqual(lines[0], "SQL_Injection issue exists @ src/a.java in branch main")
        self.assertIn("User input reaches a query.", lines)
        self.assertIn("Severity: High", lines)
        self.assertIn("Mitre Details: https://cwe.mitre.org/data/definitions/89.html", lines)
        self.assertIn("Lines: 12", lines)
        self.assertIn("Line #12: https://github.com/acme/shop/blob/main/src/a.java#L12", lines)
        self.assertIn("q = s + x", lines)
        self.assertNotIn("Lines Marked Not Exploitable: 40", lines)

    def test_false_positive_lines_listed_when_enabled(self) -> None:
        text = render_description(STATIC, CONTEXT, Scope.BRANCH, ContentOptions(list_false_positives=True))
        self.assertIn("Lines Marked Not Exploitable: 40", text.splitlines())

    def test_headline_without_branch_outside_branch_scope(self) -> None:
        text = render_description(STATIC, CONTEXT, Scope.REPO, ContentOptions())
        self.assertEqual(text.splitlines()[0], "SQL_Injection issue exists @ src/a.java")

    def test_dependency_description(self) -> None:
        lines = render_description(DEPENDENCY, CONTEXT, Scope.BRANCH, ContentOptions()).splitlines()
        self.assertEqual(lines[0], "Command injection in template.")
        self.assertIn("High Vulnerable Package issue exists @ lodash in branch main", lines)
        self.assertIn("CVSS Score: 7.2", lines)
        self.assertIn("Recommended version: 4.17.21", lines)
        self.assertIn("Reference NVD link: https://nvd.nist.gov/vuln/detail/CVE-2021-23337", lines)

    def test_prefix_and_postfix(self) -> None:
        options = ContentOptions(description_prefix="*Automated*", description_postfix="-- sync")
        lines = render_description(STATIC, CONTEXT, Scope.BRANCH, options).splitlines()
        self.assertEqual(lines[0], "*Automated*")
        self.assertEqual(lines[-1], "-- sync")

    def test_deterministic(self) -> None:
        options = ContentOptions()
        self.assertEqual(
            render_description(STATIC, CONTEXT, Scope.BRANCH, options),
            render_description(STATIC, CONTEXT, Scope.BRANCH, options),
        )

    def test_normalize_description(self) -> None:
        self.assertEqual(normalize_description("  a \n\n \nb  \n"), "a\nb")
        self.assertEqual(normalize_description(""), "")


class TestTicketPayloadBuilder(unittest.TestCase):
    """Create/update payloads and close transition inputs."""

    def _builder(self, **target_updates: object) -> TicketPayloadBuilder:
        target = TrackerTarget(
            project_key="SEC",
            issue_type="Bug",
            priorities={"High": "P2"},
            assignee_account_id="abc123",
            fields=[
                FieldMapping(name="severity", jira_field_name="Severity Field", jira_field_type="single-select"),
                FieldMapping(name="application", jira_field_name="Missing Field"),
            ],
        ).model_copy(update=target_updates)
        return TicketPayloadBuilder(
            target, CONTEXT, Scope.BRANCH, TrackingLabels(), ContentOptions(), today=date(2026, 10, 19)
        )

    def test_create_fields(self) -> None:
        builder = self._builder()
        tracker = InMemoryTracker(field_ids={"Severity Field": "customfield_200"})
        fields = asyncio.run(builder.create_fields(tracker, "SQL_Injection @ src/a.java [main]", STATIC))
        self.assertEqual(fields["summary"], "SQL_Injection @ src/a.java [main]")
        self.assertEqual(fields["priority"], {"name": "P2"})
        self.assertEqual(fields["assignee"], {"accountId": "abc123"})
        self.assertEqual(fields["labels"], ["sast", "owner:acme", "repo:shop", "branch:main"])
        self.assertEqual(fields["customfield_200"], {"value": "High"})
        self.assertEqual(fields["description"], builder.description(STATIC))
        self.assertEqual(builder.skipped_fields, {"Missing Field"})

    def test_update_fields_leave_summary_and_labels(self) -> None:
        builder = self._builder()
        tracker = InMemoryTracker(field_ids={"Severity Field": "customfield_200"})
        fields = asyncio.run(builder.update_fields(tracker, STATIC))
        self.assertNotIn("summary", fields)
        self.assertNotIn("labels", fields)
        self.assertEqual(fields["priority"], {"name": "P2"})

    def test_custom_label_field(self) -> None:
        builder = TicketPayloadBuilder(
            TrackerTarget(project_key="SEC", issue_type="Bug"),
            CONTEXT,
            Scope.APPLICATION,
            TrackingLabels(label_field="Tracking"),
            ContentOptions(),
        )
        tracker = InMemoryTracker(field_ids={"Tracking": "customfield_300"})
        fields = asyncio.run(builder.create_fields(tracker, "k", STATIC))
        self.assertEqual(fields["customfield_300"], ["sast", "app:shop"])
        self.assertNotIn("labels", fields)

    def test_close_field_input(self) -> None:
        builder = self._builder(
            close_transition_field="resolution",
            close_transition_value="Done",
            close_false_positive_transition_value="Won't Fix",
        )
        self.assertEqual(builder.close_field_input(false_positive=False), {"resolution": {"name": "Done"}})
        self.assertEqual(builder.close_field_input(false_positive=True), {"resolution": {"name": "Won't Fix"}})

    def test_close_field_input_unset(self) -> None:
        self.assertIsNone(self._builder().close_field_input(false_positive=True))


if __name__ == "__main__":
    unittest.main()
