"""Tests for the HTTP surface."""

import json
from io import BytesIO

import pytest
from fastapi.testclient import TestClient
from openpyxl import load_workbook

from conftest import NOW, make_article, make_tag
from daily_intelligence.api import create_app
from daily_intelligence.config import Config
from daily_intelligence.export import COLUMNS
from daily_intelligence.errors import StoreError
from daily_intelligence.models import KPIStats, Note
from daily_intelligence.ui_state import InMemoryPreferencesStore

XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@pytest.fixture
def config():
    return Config(
        supabase_url="https://fake.supabase.co",
        supabase_key="fake-key",
        session_secret="test-secret",
    )


@pytest.fixture
def client(config, mock_store):
    preferences = {}

    def preferences_factory(user_id):
        return preferences.setdefault(user_id, InMemoryPreferencesStore())

    app = create_app(config, store=mock_store, preferences_factory=preferences_factory, clock=lambda: NOW)
    return TestClient(app)


@pytest.fixture
def logged_in(client):
    response = client.post("/api/auth/login", json={"email": "ops@example.com", "password": "pw"})
    assert response.status_code == 200
    return client


# ---------------------------------------------------------------------------
# Session guard
# ---------------------------------------------------------------------------


class TestAuth:
    def test_health_is_public(self, client):
        assert client.get("/health").json() == {"status": "healthy"}

    def test_api_requires_session(self, client):
        response = client.get("/api/dashboard/data")
        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}

    def test_pages_redirect_to_login(self, client):
        response = client.get("/dashboard", follow_redirects=False)
        assert response.status_code in (302, 307)
        assert response.headers["location"] == "/login"

    def test_login_requires_both_fields(self, client):
        response = client.post("/api/auth/login", json={"email": "ops@example.com"})
        assert response.status_code == 400
        assert response.json()["error"] == "Email and password are required"

    def test_rejected_credentials(self, client, mock_store):
        mock_store.sign_in.return_value = None
        response = client.post("/api/auth/login", json={"email": "ops@example.com", "password": "bad"})
        assert response.status_code == 401

    def test_login_then_me_then_logout(self, logged_in):
        me = logged_in.get("/api/auth/me").json()
        assert me == {"authenticated": True, "user": {"id": "user-1", "email": "ops@example.com"}}

        logged_in.post("/api/auth/logout")

        assert logged_in.get("/api/auth/me").json() == {"authenticated": False}
        assert logged_in.get("/api/dashboard/kpis").status_code == 401


# ---------------------------------------------------------------------------
# Dashboard data
# ---------------------------------------------------------------------------


class TestDashboard:
    def test_bulk_data(self, logged_in, mock_store):
        mock_store.fetch_processed_articles.return_value = [
            make_article("a1", lead_score=9, location_country="UK"),
            make_article("a2", lead_score=3),
        ]
        mock_store.fetch_tags.return_value = [make_tag()]

        body = logged_in.get("/api/dashboard/data").json()

        assert [a["id"] for a in body["articles"]] == ["a1", "a2"]
        assert body["tags"][0]["name"] == "Follow up"
        assert body["kpis"]["total_today"] == 2
        assert body["kpis"]["high_priority_today"] == 1
        assert body["filterOptions"]["countries"] == ["UK"]

    def test_first_bulk_load_fetches_once(self, logged_in, mock_store):
        mock_store.fetch_processed_articles.return_value = [make_article("a1")]

        logged_in.get("/api/dashboard/data")
        assert mock_store.fetch_processed_articles.call_count == 1

        logged_in.get("/api/dashboard/data")
        assert mock_store.fetch_processed_articles.call_count == 2

    def test_rpc_search_defaults_to_no_score_window(self, logged_in, mock_store):
        mock_store.search_articles.return_value = [make_article("a1")]
        mock_store.count_filtered_articles.return_value = 31

        response = logged_in.post(
            "/api/dashboard/articles",
            json={"page": 1, "pageSize": 10, "filters": {"search": "mri", "tag_ids": ["t1"]}},
        )

        assert response.json()["total"] == 31
        filters, page, page_size = mock_store.search_articles.call_args[0]
        assert (page, page_size) == (1, 10)
        assert filters.search == "mri"
        assert filters.tag_ids == ["t1"]
        assert filters.min_score is None
        assert filters.max_score is None

    def test_malformed_body_is_a_validation_error(self, logged_in):
        response = logged_in.post("/api/dashboard/articles", json={"page": "first"})
        assert response.status_code == 400

    def test_store_failure_is_500(self, logged_in, mock_store):
        mock_store.dashboard_kpis.side_effect = StoreError("function get_dashboard_kpis does not exist")

        response = logged_in.get("/api/dashboard/kpis")

        assert response.status_code == 500
        assert "get_dashboard_kpis" in response.json()["error"]

    def test_server_kpis(self, logged_in, mock_store):
        mock_store.dashboard_kpis.return_value = KPIStats(total_today=5)
        assert logged_in.get("/api/dashboard/kpis").json()["total_today"] == 5

    def test_filters_and_view(self, logged_in, mock_store):
        mock_store.fetch_processed_articles.return_value = [
            make_article("a1", title="MRI scanners"),
            make_article("a2", title="Payroll"),
        ]

        state = logged_in.patch("/api/dashboard/filters", json={"search": "mri"}).json()
        view = logged_in.get("/api/dashboard/view").json()

        assert state["search"] == "mri"
        assert [a["id"] for a in view["articles"]] == ["a1"]
        assert view["total"] == 1

        cleared = logged_in.post("/api/dashboard/filters/clear").json()
        assert cleared["search"] == ""

    def test_unknown_filter_field(self, logged_in):
        response = logged_in.patch("/api/dashboard/filters", json={"colour": "red"})
        assert response.status_code == 400
        assert response.json()["field"] == "colour"

    def test_export(self, logged_in, mock_store):
        mock_store.fetch_processed_articles.return_value = [make_article("a1")]

        response = logged_in.get("/api/dashboard/export")

        assert response.status_code == 200
        assert response.headers["content-type"] == XLSX
        assert "leads-export-2024-06-12.xlsx" in response.headers["content-disposition"]
        assert response.content[:2] == b"PK"

    def test_export_uses_configured_groups(self, config, mock_store, tmp_path):
        groups = tmp_path / "groups.json"
        groups.write_text(json.dumps({"7": "Grants"}))
        config.groups_file = str(groups)
        mock_store.fetch_processed_articles.return_value = [make_article("a1", group_name="7")]
        app = create_app(
            config,
            store=mock_store,
            preferences_factory=lambda user_id: InMemoryPreferencesStore(),
            clock=lambda: NOW,
        )
        client = TestClient(app)
        client.post("/api/auth/login", json={"email": "ops@example.com", "password": "pw"})

        ws = load_workbook(BytesIO(client.get("/api/dashboard/export").content)).active

        assert ws.cell(row=2, column=[h for h, _, _ in COLUMNS].index("Group") + 1).value == "Grants"


# ---------------------------------------------------------------------------
# Tags
# ---------------------------------------------------------------------------


class TestTags:
    def test_add_article_tag(self, logged_in, mock_store):
        mock_store.fetch_processed_articles.return_value = [make_article("a1")]
        mock_store.fetch_tags.return_value = [make_tag("t1")]

        response = logged_in.post("/api/dashboard/article-tags", json={"article_id": "a1", "tag_id": "t1"})

        assert response.json() == {"success": True, "skipped": False}
        mock_store.add_article_tag.assert_called_once_with("a1", "t1")

    def test_article_tag_requires_both_ids(self, logged_in):
        response = logged_in.post("/api/dashboard/article-tags", json={"article_id": "a1"})
        assert response.status_code == 400
        assert response.json()["error"] == "article_id and tag_id are required"

    def test_failed_article_tag_is_500(self, logged_in, mock_store):
        mock_store.remove_article_tag.side_effect = StoreError("delete failed")

        response = logged_in.delete("/api/dashboard/article-tags", params={"article_id": "a1", "tag_id": "t1"})

        assert response.status_code == 500

    def test_create_tag(self, logged_in, mock_store):
        mock_store.create_tag.return_value = make_tag("t5", "Q3 pipeline")

        response = logged_in.post("/api/dashboard/tags", json={"name": " Q3 pipeline ", "color": "#000"})

        assert response.json()["id"] == "t5"
        mock_store.create_tag.assert_called_once_with("Q3 pipeline", "#000")

    def test_create_tag_requires_color(self, logged_in):
        response = logged_in.post("/api/dashboard/tags", json={"name": "Q3"})
        assert response.status_code == 400

    def test_delete_tag_requires_id(self, logged_in):
        assert logged_in.delete("/api/dashboard/tags").status_code == 400


# ---------------------------------------------------------------------------
# Notes
# ---------------------------------------------------------------------------


class TestNotes:
    def test_blank_content_is_rejected(self, logged_in):
        response = logged_in.post("/api/dashboard/notes", json={"articleId": "a1", "content": "   "})
        assert response.status_code == 400
        assert response.json()["error"] == "Content must be a non-empty string"

    def test_non_string_content_is_rejected(self, logged_in):
        response = logged_in.put("/api/dashboard/notes", json={"noteId": "n1", "content": 42})
        assert response.status_code == 400

    def test_create_note_trims_content(self, logged_in, mock_store):
        mock_store.create_note.return_value = Note(id="n1", article_id="a1", content="hello")

        response = logged_in.post("/api/dashboard/notes", json={"articleId": "a1", "content": "  hello "})

        assert response.json()["note"]["id"] == "n1"
        mock_store.create_note.assert_called_once_with("a1", "hello")

    def test_second_create_updates_existing_note(self, logged_in, mock_store):
        mock_store.create_note.side_effect = StoreError("duplicate key", code="23505")
        mock_store.get_note.return_value = Note(id="n1", article_id="a1", content="old")
        mock_store.update_note.return_value = Note(id="n1", article_id="a1", content="new")

        response = logged_in.post("/api/dashboard/notes", json={"articleId": "a1", "content": "new"})

        assert response.status_code == 200
        mock_store.update_note.assert_called_once_with("n1", "new")

    def test_get_note_requires_article_id(self, logged_in):
        assert logged_in.get("/api/dashboard/notes").status_code == 400

    def test_get_missing_note(self, logged_in, mock_store):
        mock_store.get_note.return_value = None
        assert logged_in.get("/api/dashboard/notes", params={"articleId": "a1"}).json() == {"note": None}


# ---------------------------------------------------------------------------
# Analytics and preferences
# ---------------------------------------------------------------------------


class TestAnalytics:
    def test_summary_for_date_range(self, logged_in, mock_store):
        mock_store.fetch_analytics_articles.return_value = [
            make_article("a1", lead_score=9),
            make_article("a2", lead_score=4, processed_at=NOW.replace(month=1)),
        ]

        body = logged_in.get("/api/analytics/summary", params={"start": "2024-06-01", "end": "2024-06-12"}).json()

        assert body["snapshot"]["total"] == 1
        assert body["snapshot"]["high_priority"] == 1
        assert len(body["trend"]) == 12

    def test_reversed_range_is_rejected(self, logged_in):
        response = logged_in.get("/api/analytics/summary", params={"start": "2024-06-12", "end": "2024-06-01"})
        assert response.status_code == 400

    def test_raw_dump(self, logged_in, mock_store):
        mock_store.fetch_analytics_articles.return_value = [make_article("a1")]
        assert [a["id"] for a in logged_in.get("/api/analytics").json()["articles"]] == ["a1"]


class TestPreferences:
    def test_sidebar_preference_round_trip(self, logged_in):
        assert logged_in.get("/api/preferences").json()["sidebar_collapsed"] is True

        logged_in.put("/api/preferences", json={"sidebar_collapsed": False})

        assert logged_in.get("/api/preferences").json()["sidebar_collapsed"] is False
