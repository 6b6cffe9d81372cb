"""
Unit Tests for staff_editor.api.session router and the application factory.
"""

import asyncio
import logging

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from staff_editor.api import session_router
from staff_editor.api.session import EXPORT_FILENAME
from staff_editor.core.app_context import AppContext
from staff_editor.core.sheet import decode_csv
from staff_editor.services import InMemoryConfigStore, StaffSession
from staff_editor.services.staff_session import (
    MSG_NOT_FOUND,
    MSG_SAVE_FAILED,
    MSG_UNPERSISTED,
)

SHEET_URL = "https://script.google.com/macros/s/AKfycbTESTDEPLOYMENT123/exec"


@pytest.fixture
def build_client(mock_sheet_client, fallback_csv):
    """Factory for a TestClient over the session router."""
    def _create(default_url: str = SHEET_URL) -> tuple[TestClient, StaffSession]:
        session = StaffSession(
            sheet_client=mock_sheet_client,
            config_store=InMemoryConfigStore(),
            fallback_text=fallback_csv,
            default_url=default_url,
        )
        asyncio.run(session.initialize())

        app = FastAPI()
        app.state.staff_session = session
        app.include_router(session_router, prefix="/api")
        return TestClient(app), session

    return _create


@pytest.fixture
def client(build_client):
    return build_client()[0]


@pytest.fixture
def offline_client(build_client):
    return build_client(default_url="")[0]


def _login(client: TestClient, identifier: str = "840110-07-5583"):
    return client.post("/api/session/login", json={"identifier": identifier})


class TestStatus:
    """Tests for GET /api/status."""

    def test_status(self, client):
        response = client.get("/api/status")

        assert response.status_code == 200
        data = response.json()
        assert data["is_connected"] is True
        assert data["roster_size"] == 3
        assert data["logged_in"] is False
        assert data["save_state"] == "idle"

    def test_uninitialized_session(self):
        app = FastAPI()
        app.include_router(session_router, prefix="/api")

        response = TestClient(app).get("/api/status")
        assert response.status_code == 503


class TestLoginAndRecord:
    """Tests for login and record endpoints."""

    def test_login(self, client):
        response = _login(client, "840110075583")

        assert response.status_code == 200
        data = response.json()
        assert data["record"]["NAMA"] == "Ali bin Abu"
        assert data["dirty"] is False

    def test_login_not_found(self, client):
        response = _login(client, "999999999999")

        assert response.status_code == 404
        assert response.json()["detail"] == MSG_NOT_FOUND

    def test_login_twice(self, client):
        _login(client)
        assert _login(client, "870522-10-6124").status_code == 409

    def test_record_requires_login(self, client):
        assert client.get("/api/session/record").status_code == 401
        response = client.patch("/api/session/record", json={"field": "NO_TEL", "value": "1"})
        assert response.status_code == 401

    def test_edit(self, client):
        _login(client)
        response = client.patch(
            "/api/session/record", json={"field": "NO_TEL", "value": "012-3456789"}
        )

        assert response.status_code == 200
        assert response.json()["record"]["NO_TEL"] == "012-3456789"
        assert response.json()["dirty"] is True
        assert client.get("/api/session/record").json()["record"]["NO_TEL"] == "012-3456789"

    @pytest.mark.parametrize("field_name", ["BIL", "NO_KAD_PENGENALAN", "EMAIL"])
    def test_edit_rejected_fields(self, client, field_name):
        _login(client)
        response = client.patch("/api/session/record", json={"field": field_name, "value": "x"})

        assert response.status_code == 400


class TestSave:
    """Tests for POST /api/session/save."""

    def test_save_connected(self, client):
        _login(client)
        client.patch("/api/session/record", json={"field": "GRED", "value": "DG54"})

        response = client.post("/api/session/save")

        assert response.status_code == 200
        data = response.json()
        assert data["outcome"] == "saved"
        assert data["persisted"] is True
        assert data["save_state"] == "saved"

    def test_save_failed(self, client, mock_sheet_client):
        mock_sheet_client.save_one.return_value = False
        _login(client)

        response = client.post("/api/session/save")

        assert response.status_code == 502
        assert response.json()["detail"] == MSG_SAVE_FAILED
        assert client.get("/api/status").json()["save_state"] == "error"

    def test_save_offline_warns(self, offline_client):
        _login(offline_client)
        offline_client.patch("/api/session/record", json={"field": "AGAMA", "value": "ISLAM"})

        response = offline_client.post("/api/session/save")

        assert response.status_code == 200
        data = response.json()
        assert data["outcome"] == "unpersisted"
        assert data["persisted"] is False
        assert data["message"] == MSG_UNPERSISTED

    def test_save_requires_login(self, client):
        assert client.post("/api/session/save").status_code == 401


class TestDiscardAndLogout:
    """Tests for discard and logout."""

    def test_discard(self, client):
        _login(client)
        client.patch("/api/session/record", json={"field": "NO_TEL", "value": "012"})

        response = client.post("/api/session/discard")

        assert response.status_code == 200
        assert response.json()["record"]["NO_TEL"] == ""
        assert response.json()["dirty"] is False

    def test_discard_record_gone(self, client, mock_sheet_client, sample_roster):
        _login(client)
        mock_sheet_client.fetch_all.return_value = sample_roster[1:]

        response = client.post("/api/session/discard")

        assert response.status_code == 200
        assert response.json() == {"logged_in": False}

    def test_logout_dirty_needs_confirm(self, client):
        _login(client)
        client.patch("/api/session/record", json={"field": "NO_TEL", "value": "012"})

        assert client.post("/api/session/logout").status_code == 409
        assert client.get("/api/status").json()["logged_in"] is True

        response = client.post("/api/session/logout", params={"confirm": "true"})
        assert response.status_code == 200
        assert response.json() == {"logged_in": False}

    def test_logout_clean(self, client):
        _login(client)
        assert client.post("/api/session/logout").status_code == 200


class TestConnectionAndExport:
    """Tests for the connection and export endpoints."""

    def test_connect(self, offline_client):
        response = offline_client.put("/api/connection", json={"url": SHEET_URL})

        assert response.status_code == 200
        data = response.json()
        assert data["is_connected"] is True
        assert data["sheet_url"] == SHEET_URL
        assert data["roster_size"] == 3

    def test_connect_blank(self, offline_client):
        assert offline_client.put("/api/connection", json={"url": " "}).status_code == 400

    def test_connection_changes_appear_in_status_events(self, offline_client, config_loader):
        offline_client.app.state.context = AppContext(config=config_loader)

        offline_client.put("/api/connection", json={"url": SHEET_URL})
        offline_client.delete("/api/connection")
        events = offline_client.get("/api/status").json()["events"]

        assert len(events) == 2
        assert "[SUCCESS] Sheet connected: 3 record(s)" in events[0]
        assert "Sheet disconnected" in events[1]

    def test_status_without_context_has_no_events(self, client):
        assert client.get("/api/status").json()["events"] == []

    def test_disconnect(self, client):
        response = client.delete("/api/connection")

        assert response.status_code == 200
        assert response.json()["is_connected"] is False
        assert response.json()["roster_size"] == 2

    def test_export(self, client, sample_roster):
        response = client.get("/api/export")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert EXPORT_FILENAME in response.headers["content-disposition"]
        assert decode_csv(response.text) == sample_roster


class TestCreateApp:
    """Tests for the application factory and its lifespan."""

    def test_lifespan_loads_fallback_roster(self, mock_env_vars, monkeypatch, tmp_path):
        from staff_editor.main import create_app

        monkeypatch.setenv("SHEET_DEFAULT_URL", "")
        monkeypatch.chdir(tmp_path)

        root = logging.getLogger()
        saved_handlers, saved_level = list(root.handlers), root.level
        try:
            context = AppContext()
            app = create_app(context=context, config_store=InMemoryConfigStore())
            with TestClient(app) as client:
                data = client.get("/api/status").json()
                assert data["roster_size"] == 4
                assert any("Roster loaded: 4" in line for line in data["events"])
                assert data["is_connected"] is False
                assert hasattr(app.state, "http_client")

            assert not hasattr(app.state, "staff_session")
            assert any("Roster loaded: 4" in line for line in context.get_event_log())
        finally:
            for handler in root.handlers:
                handler.close()
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)

    def test_create_staff_session_uses_shared_client(
        self, config_loader, mock_httpx_client_factory, mock_httpx_response_factory, sheet_rows
    ):
        """The session fetches through the injected httpx client."""
        from staff_editor.main import create_staff_session

        http = mock_httpx_client_factory(
            get_response=mock_httpx_response_factory(json_data=sheet_rows)
        )
        session = create_staff_session(
            AppContext(config=config_loader), http, InMemoryConfigStore()
        )
        asyncio.run(session.initialize())

        assert session.is_connected is True
        assert len(session.roster) == 2
        http.get.assert_awaited_once_with(SHEET_URL, timeout=15.0, follow_redirects=True)

    def test_module_logger(self):
        from staff_editor import main

        assert main.logger.name == "staff_editor.main"
