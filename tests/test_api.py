"""HTTP tests for the sync and reports routes with the tracker and database dependencies overridden."""

import unittest
from unittest.mock import MagicMock, patch

from fastapi.testclient import TestClient

from app.api.v1.sync import get_tracker_gateway
from app.core.config import Settings
from app.core.database import get_db
from app.main import app
from tests.fakes import InMemoryTracker

BODY = {
    "scan": {
        "scan_id": "scan-1",
        "static_issues": [{"vulnerability": "SQL_Injection", "filename": "a.java", "severity": "High"}],
    },
    "context": {"namespace": "acme", "repo_name": "shop", "branch": "main", "application": "shop"},
}


def _settings(**kwargs: object) -> Settings:
    defaults = {"JIRA_PROJECT_KEY": "SEC", "PR_STATUS_ENABLED": False}
    defaults.update(kwargs)
    return Settings(**defaults)


class TestSyncRoute(unittest.TestCase):
    """POST /api/v1/sync status codes."""

    def setUp(self) -> None:
        self.tracker = InMemoryTracker()
        self.db = MagicMock()
        app.dependency_overrides[get_db] = lambda: self.db
        app.dependency_overrides[get_tracker_gateway] = lambda: self.tracker
        self.client = TestClient(app)

    def tearDown(self) -> None:
        app.dependency_overrides.clear()

    def _post(self, settings: Settings, body: dict | None = None):
        with patch("app.api.v1.sync.get_settings", return_value=settings):
            return self.client.post("/api/v1/sync", json=body or BODY)

    def test_sync_creates_ticket(self) -> None:
        resp = self._post(_settings())
        self.assertEqual(resp.status_code, 200)
        data = resp.json()
        self.assertEqual(data["created"], 1)
        self.assertEqual(data["report"]["new_ids"], ["SEC-1"])
        self.db.add.assert_called_once()

    def test_configuration_error_is_422(self) -> None:
        resp = self._post(_settings(JIRA_PROJECT_KEY=None))
        self.assertEqual(resp.status_code, 422)
        self.assertEqual(self.tracker.calls, [])

    def test_tracker_server_error_is_502(self) -> None:
        self.tracker.fail_on = ("create", "SQL_Injection @ a.java [main]")
        resp = self._post(_settings())
        self.assertEqual(resp.status_code, 502)
        self.assertIn("SQL_Injection @ a.java [main]", resp.json()["detail"])

    def test_invalid_body_is_422(self) -> None:
        resp = self._post(_settings(), {"scan": {}, "context": {"application": "shop"}, "target": {"fields": "x"}})
        self.assertEqual(resp.status_code, 422)


class TestGatewayDependency(unittest.TestCase):

    def tearDown(self) -> None:
        app.dependency_overrides.clear()

    def test_unconfigured_jira_is_503(self) -> None:
        app.dependency_overrides[get_db] = lambda: MagicMock()
        client = TestClient(app)
        settings = _settings(JIRA_BASE_URL=None, JIRA_EMAIL=None, JIRA_API_TOKEN=None)
        with patch("app.api.v1.sync.get_settings", return_value=settings):
            resp = client.post("/api/v1/sync", json=BODY)
        self.assertEqual(resp.status_code, 503)


class TestReportsRoute(unittest.TestCase):

    def tearDown(self) -> None:
        app.dependency_overrides.clear()

    def test_limit_bounds(self) -> None:
        app.dependency_overrides[get_db] = lambda: MagicMock()
        client = TestClient(app)
        self.assertEqual(client.get("/api/v1/reports?limit=0").status_code, 422)
        self.assertEqual(client.get("/api/v1/reports?limit=101").status_code, 422)

    def test_empty_list(self) -> None:
        db = MagicMock()
        db.query.return_value.order_by.return_value.limit.return_value.all.return_value = []
        app.dependency_overrides[get_db] = lambda: db
        resp = TestClient(app).get("/api/v1/reports")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {"reports": []})


if __name__ == "__main__":
    unittest.main()
