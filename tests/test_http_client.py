"""
Unit Tests for staff_editor.core.http_client module.
"""

import httpx
import pytest
from fastapi import FastAPI

from staff_editor.core.http_client import (
    HttpClientManager,
    create_http_client_context,
)


class TestHttpClientManager:
    """Tests for HttpClientManager."""

    @pytest.mark.asyncio
    async def test_start_and_stop(self):
        manager = HttpClientManager(timeout=5.0)
        client = await manager.start()

        assert isinstance(client, httpx.AsyncClient)
        assert client.follow_redirects is True
        assert manager.is_running is True
        assert manager.client is client

        await manager.stop()
        assert manager.is_running is False

    @pytest.mark.asyncio
    async def test_start_twice(self):
        manager = HttpClientManager()
        await manager.start()
        try:
            with pytest.raises(RuntimeError):
                await manager.start()
        finally:
            await manager.stop()

    def test_client_before_start(self):
        with pytest.raises(RuntimeError):
            HttpClientManager().client


class TestContexts:
    """Tests for create_http_client_context()."""

    @pytest.mark.asyncio
    async def test_app_context_sets_and_clears_state(self):
        app = FastAPI()

        async with create_http_client_context(app, timeout=5.0) as manager:
            assert app.state.http_client is manager.client
            assert app.state.http_client_manager is manager

        assert not hasattr(app.state, "http_client")
        assert not hasattr(app.state, "http_client_manager")
