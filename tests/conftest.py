"""
Pytest Configuration and Shared Fixtures.

Provides common test fixtures for the staff editor unit tests.
"""

import pytest
import httpx
from unittest.mock import MagicMock, AsyncMock
from typing import Any, Callable

from staff_editor.core.sheet import StaffRecord, get_header_map


SHEET_URL = "https://script.google.com/macros/s/AKfycbTESTDEPLOYMENT123/exec"


# =============================================================================
# Environment Fixtures
# =============================================================================


@pytest.fixture
def mock_env_vars(monkeypatch, tmp_path):
    """Set up mock environment variables for testing."""
    env_vars = {
        "SERVER_HOST": "127.0.0.1",
        "SERVER_PORT": "8000",
        "APP_DEBUG": "true",
        "APP_LOG_LEVEL": "DEBUG",
        "STAFF_EDITOR_DATA_DIR": str(tmp_path / "data"),
        "SHEET_DEFAULT_URL": SHEET_URL,
        "SHEET_TIMEOUT": "15",
    }

    for key, value in env_vars.items():
        monkeypatch.setenv(key, value)
    monkeypatch.delenv("FALLBACK_CSV_PATH", raising=False)

    return env_vars


@pytest.fixture
def config_loader(mock_env_vars):
    """Create a ConfigLoader instance with mock environment."""
    from staff_editor.core.app_context import ConfigLoader

    loader = ConfigLoader()
    loader.load()
    return loader


# =============================================================================
# Sheet Fixtures
# =============================================================================


@pytest.fixture
def header_map():
    """The packaged column layout."""
    return get_header_map()


@pytest.fixture
def make_record() -> Callable[..., StaffRecord]:
    """Factory for StaffRecord values with sensible defaults."""
    def _create(**values: str) -> StaffRecord:
        defaults = {
            "BIL": "1",
            "NAMA": "Ali bin Abu",
            "NO_KAD_PENGENALAN": "840110-07-5583",
            "JAWATAN": "GURU BESAR",
            "GRED": "DG52",
        }
        defaults.update(values)
        return StaffRecord(**defaults)

    return _create


@pytest.fixture
def sample_roster(make_record) -> list[StaffRecord]:
    """Three staff records."""
    return [
        make_record(),
        make_record(
            BIL="2",
            NAMA="Siti Aminah binti Hassan",
            NO_KAD_PENGENALAN="870522-10-6124",
            JAWATAN="GPK PENTADBIRAN",
            GRED="DG48",
        ),
        make_record(
            BIL="3",
            NAMA="Lim Mei Ling",
            NO_KAD_PENGENALAN="900304-08-5566",
            JAWATAN="GURU AKADEMIK BIASA",
            GRED="DG44",
            ALAMAT_TERKINI="18, Lorong Melur 2",
        ),
    ]


@pytest.fixture
def fallback_csv(header_map) -> str:
    """
    Minimal fallback CSV: two title rows, an unquoted header row whose
    multi-line titles are quoted, and two staff rows.
    """
    def cell(header: str) -> str:
        return f'"{header}"' if "\n" in header else header

    lines = list(header_map.decorative_rows)
    lines.append(",".join(cell(h) for h in header_map.headers))
    lines.append("1,Ali,840110-07-5583,GURU BESAR,DG52" + "," * 22)
    lines.append("2,Siti,870522-10-6124,GPK PENTADBIRAN,DG48" + "," * 22)
    return "\r\n".join(lines)


@pytest.fixture
def sheet_rows(header_map) -> list[dict[str, Any]]:
    """Rows as returned by the Apps Script web app."""
    return [
        {
            "BIL": 1,
            "NAMA": "Ali bin Abu",
            "NO KAD PENGENALAN": "840110-07-5583",
            "JAWATAN": "GURU BESAR",
            "GRED": "DG52",
            "Tarikh Lantikan Pertama Guru - DG5/DG9 AKP - N1": "01/03/2008",
            "Fasa 1 - Lantikan bulan Januari-Jun": "/",
        },
        {
            "BIL": 2,
            "NAMA": "Siti Aminah binti Hassan",
            "NO KAD PENGENALAN": "870522-10-6124",
            "UMUR BERSARA (TAHUN)": 60.0,
            "KUATERS KERAJAAN": True,
        },
    ]


# =============================================================================
# HTTP Client Fixtures
# =============================================================================


@pytest.fixture
def mock_httpx_response_factory() -> Callable[..., httpx.Response]:
    """
    Factory fixture for creating httpx responses bound to a request,
    so raise_for_status() behaves as in production.
    """
    def _create_response(
        status_code: int = 200,
        json_data: Any = None,
        text: str | None = None,
        method: str = "GET",
        url: str = SHEET_URL,
    ) -> httpx.Response:
        request = httpx.Request(method, url)
        if text is not None:
            return httpx.Response(status_code, text=text, request=request)
        return httpx.Response(status_code, json=json_data, request=request)

    return _create_response


@pytest.fixture
def mock_httpx_client_factory() -> Callable[..., MagicMock]:
    """
    Factory for creating mock async httpx clients with pre-configured responses.
    """
    def _create_client(
        get_response: Any = None,
        post_response: Any = None,
        get_side_effect: Exception | None = None,
        post_side_effect: Exception | None = None,
    ) -> MagicMock:
        mock_client = MagicMock()
        mock_client.get = AsyncMock(return_value=get_response, side_effect=get_side_effect)
        mock_client.post = AsyncMock(return_value=post_response, side_effect=post_side_effect)
        mock_client.aclose = AsyncMock()
        return mock_client

    return _create_client


@pytest.fixture
def mock_sheet_client(sample_roster):
    """Mock SheetClient whose fetch returns sample_roster and saves succeed."""
    client = MagicMock()
    client.fetch_all = AsyncMock(return_value=list(sample_roster))
    client.save_one = AsyncMock(return_value=True)
    return client
