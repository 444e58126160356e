"""Tests for SyncReporter: the in-memory report and best-effort persistence."""

import unittest
from unittest.mock import MagicMock

from sqlalchemy.exc import OperationalError

from app.models import SyncReport
from app.schemas.tracker import RequestContext
from app.services.reconciliation import ReconcileResult
from app.services.reporter import SyncReporter

CONTEXT = RequestContext(namespace="acme", repo_name="shop", branch="main", application="shop")


def _result(*new_ids: str) -> ReconcileResult:
    return ReconcileResult(new_ids=list(new_ids), updated_ids=["SEC-5"], closed_ids=[])


class TestSyncReporter(unittest.TestCase):

    def test_record_builds_report(self) -> None:
        reporter = SyncReporter()
        report = reporter.record("scan-1", CONTEXT, "SEC", _result("SEC-1", "SEC-2"))
        self.assertEqual(report.new_ids, ["SEC-1", "SEC-2"])
        self.assertEqual(report.updated_ids, ["SEC-5"])
        self.assertEqual((report.application, report.repo, report.branch), ("shop", "shop", "main"))
        self.assertIs(reporter.report, report)

    def test_record_replaces_previous_report(self) -> None:
        reporter = SyncReporter()
        reporter.record("scan-1", CONTEXT, "SEC", _result("SEC-1"))
        reporter.record("scan-2", CONTEXT, "SEC", _result())
        self.assertEqual(reporter.report.scan_id, "scan-2")
        self.assertEqual(reporter.report.new_ids, [])

    def test_persists_row(self) -> None:
        session = MagicMock()
        SyncReporter(session).record("scan-1", CONTEXT, "SEC", _result("SEC-1"))
        row = session.add.call_args.args[0]
        self.assertIsInstance(row, SyncReport)
        self.assertEqual(row.project_key, "SEC")
        self.assertEqual(row.new_ids, ["SEC-1"])
        session.commit.assert_called_once()

    def test_database_error_logged_not_raised(self) -> None:
        session = MagicMock()
        session.commit.side_effect = OperationalError("INSERT", {}, Exception("down"))
        with self.assertLogs("app.services.reporter", level="ERROR"):
            report = SyncReporter(session).record("scan-1", CONTEXT, "SEC", _result("SEC-1"))
        self.assertEqual(report.new_ids, ["SEC-1"])
        session.rollback.assert_called_once()


if __name__ == "__main__":
    unittest.main()
