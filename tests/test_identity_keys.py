"""Unit tests for app.services.identity_keys: key formats, truncation, scope selection and parsing."""

import unittest

from app.core.errors import TrackerConfigurationError
from app.schemas.findings import PackageDetails, Severity
from app.schemas.tracker import RequestContext
from app.services.identity_keys import (
    MAX_SUMMARY_LENGTH,
    KeyFormat,
    Scope,
    build_dependency_key,
    build_static_key,
    key_branch,
    parse_identity_key,
    resolve_scope,
)


def _package(**kwargs: object) -> PackageDetails:
    defaults = {
        "finding_id": "CVE-2021-23337",
        "severity": Severity.HIGH,
        "score": 7.2,
        "package_name": "lodash",
        "package_version": "4.17.20",
    }
    defaults.update(kwargs)
    return PackageDetails(**defaults)


class TestStaticKey(unittest.TestCase):
    """Static finding keys with and without branch."""

    def test_branch_format(self) -> None:
        key = build_static_key("SQL_Injection", "src/a.java", "main", KeyFormat())
        self.assertEqual(key, "SQL_Injection @ src/a.java [main]")

    def test_no_branch_format(self) -> None:
        key = build_static_key("SQL_Injection", "src/a.java", None, KeyFormat())
        self.assertEqual(key, "SQL_Injection @ src/a.java")

    def test_prefix_and_postfix(self) -> None:
        key = build_static_key("XSS", "a.js", "dev", KeyFormat(prefix="[SAST] ", postfix=" !"))
        self.assertEqual(key, "[SAST] XSS @ a.js [dev] !")

    def test_long_key_truncated_to_254(self) -> None:
        key = build_static_key("Path_Traversal", "x/" * 200 + "a.java", "main", KeyFormat())
        self.assertEqual(len(key), MAX_SUMMARY_LENGTH - 1)

    def test_key_of_exactly_255_kept(self) -> None:
        base = build_static_key("V", "", None, KeyFormat())
        filename = "f" * (MAX_SUMMARY_LENGTH - len(base))
        key = build_static_key("V", filename, None, KeyFormat())
        self.assertEqual(len(key), MAX_SUMMARY_LENGTH)

    def test_deterministic(self) -> None:
        a = build_static_key("XSS", "a.js", "main", KeyFormat())
        b = build_static_key("XSS", "a.js", "main", KeyFormat())
        self.assertEqual(a, b)


class TestDependencyKey(unittest.TestCase):
    """Dependency finding keys carry id, severity, score and package coordinates."""

    def test_branch_format(self) -> None:
        key = build_dependency_key(_package(), "main", KeyFormat())
        self.assertEqual(key, "CVE-2021-23337 (High:7.2) @ lodash:4.17.20 [main]")

    def test_no_branch_format(self) -> None:
        key = build_dependency_key(_package(score=10.0), None, KeyFormat())
        self.assertEqual(key, "CVE-2021-23337 (High:10.0) @ lodash:4.17.20")


class TestResolveScope(unittest.TestCase):
    """Scope selection from request context and tracking flags."""

    def _context(self, **kwargs: object) -> RequestContext:
        defaults = {"namespace": "acme", "repo_name": "shop", "branch": "main", "application": "Shop App"}
        defaults.update(kwargs)
        return RequestContext(**defaults)

    def test_branch_scope(self) -> None:
        self.assertIs(resolve_scope(self._context()), Scope.BRANCH)

    def test_application_only_disables_branch(self) -> None:
        scope = resolve_scope(self._context(), application_only=True)
        self.assertIs(scope, Scope.REPO)

    def test_application_repo_only(self) -> None:
        scope = resolve_scope(self._context(), application_repo_only=True)
        self.assertIs(scope, Scope.REPO)

    def test_application_scope_without_repo(self) -> None:
        scope = resolve_scope(RequestContext(application="shop"))
        self.assertIs(scope, Scope.APPLICATION)

    def test_missing_branch_falls_back(self) -> None:
        scope = resolve_scope(self._context(branch=None))
        self.assertIs(scope, Scope.REPO)

    def test_nothing_resolvable_raises(self) -> None:
        with self.assertRaises(TrackerConfigurationError):
            resolve_scope(RequestContext(namespace="acme", repo_name="shop"))

    def test_key_branch_only_in_branch_scope(self) -> None:
        context = self._context()
        self.assertEqual(key_branch(context, Scope.BRANCH), "main")
        self.assertIsNone(key_branch(context, Scope.REPO))
        self.assertIsNone(key_branch(context, Scope.APPLICATION))

    def test_application_name_sanitized(self) -> None:
        self.assertEqual(self._context().application, "Shop_App")


class TestParseIdentityKey(unittest.TestCase):
    """parse_identity_key reads back what the builders write."""

    def test_static_with_branch(self) -> None:
        parts = parse_identity_key("SQL_Injection @ src/a.java [main]")
        self.assertIsNotNone(parts)
        self.assertEqual(parts.kind, "static")
        self.assertEqual(parts.vulnerability, "SQL_Injection")
        self.assertEqual(parts.filename, "src/a.java")
        self.assertEqual(parts.branch, "main")

    def test_static_without_branch(self) -> None:
        parts = parse_identity_key("XSS @ web/index.js")
        self.assertEqual(parts.filename, "web/index.js")
        self.assertIsNone(parts.branch)

    def test_dependency_key_symmetry(self) -> None:
        package = _package(package_name="org.apache:commons-text", package_version="1.9")
        key = build_dependency_key(package, "release/1.0", KeyFormat())
        parts = parse_identity_key(key)
        self.assertEqual(parts.kind, "dependency")
        self.assertEqual(parts.finding_id, "CVE-2021-23337")
        self.assertEqual(parts.severity, "High")
        self.assertEqual(parts.score, 7.2)
        self.assertEqual(parts.package_name, "org.apache:commons-text")
        self.assertEqual(parts.package_version, "1.9")
        self.assertEqual(parts.branch, "release/1.0")

    def test_prefix_postfix_stripped(self) -> None:
        key_format = KeyFormat(prefix="[SAST] ", postfix=" !")
        key = build_static_key("XSS", "a.js", None, key_format)
        parts = parse_identity_key(key, key_format)
        self.assertEqual(parts.vulnerability, "XSS")
        self.assertEqual(parts.filename, "a.js")

    def test_foreign_summary_returns_none(self) -> None:
        self.assertIsNone(parse_identity_key("Upgrade the build server"))
        self.assertIsNone(parse_identity_key("XSS @ a.js", KeyFormat(prefix="[SAST] ")))


if __name__ == "__main__":
    unittest.main()
