"""
HTTP Client Lifecycle Management.

Provides lifecycle-managed httpx.AsyncClient for talking to the sheet web app.
The client is bound to its owning scope instead of living in global state.

Usage:
    # In the FastAPI lifespan:
    async with create_http_client_context(app) as http_manager:
        yield
"""

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, AsyncGenerator, Optional

import httpx

if TYPE_CHECKING:
    from fastapi import FastAPI

logger = logging.getLogger(__name__)


class HttpClientManager:
    """
    Manages the lifecycle of httpx.AsyncClient.

    Apps Script web apps answer through a redirect to googleusercontent.com,
    so redirects are always followed.
    """

    def __init__(
        self,
        timeout: float = 30.0,
        max_connections: int = 10,
        max_keepalive_connections: int = 5,
        keepalive_expiry: float = 30.0,
    ) -> None:
        """
        Initialize the HTTP client manager.

        Args:
            timeout: Default timeout for requests in seconds.
            max_connections: Maximum number of concurrent connections.
            max_keepalive_connections: Maximum keep-alive connections.
            keepalive_expiry: Keep-alive connection expiry in seconds.
        """
        self._timeout = timeout
        self._limits = httpx.Limits(
            max_connections=max_connections,
            max_keepalive_connections=max_keepalive_connections,
            keepalive_expiry=keepalive_expiry,
        )
        self._client: Optional[httpx.AsyncClient] = None

    async def start(self) -> httpx.AsyncClient:
        """
        Create and start the HTTP client.

        Raises:
            RuntimeError: If client is already started.
        """
        if self._client is not None:
            raise RuntimeError("HTTP client already started")

        self._client = httpx.AsyncClient(
            timeout=self._timeout,
            limits=self._limits,
            follow_redirects=True,
        )
        logger.info(
            f"HTTP client started (timeout={self._timeout}s, "
            f"max_connections={self._limits.max_connections})"
        )
        return self._client

    async def stop(self) -> None:
        """Close the HTTP client and release resources."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.info("HTTP client closed")

    @property
    def client(self) -> httpx.AsyncClient:
        """
        Get the managed HTTP client.

        Raises:
            RuntimeError: If client is not started.
        """
        if self._client is None:
            raise RuntimeError(
                "HTTP client not started. Ensure lifespan context is properly configured."
            )
        return self._client

    @property
    def is_running(self) -> bool:
        """Check if the HTTP client is running."""
        return self._client is not None and not self._client.is_closed


@asynccontextmanager
async def create_http_client_context(
    app: "FastAPI",
    timeout: float = 30.0,
    max_connections: int = 10,
) -> AsyncGenerator[HttpClientManager, None]:
    """
    Async context manager for HTTP client lifecycle.

    Stores the client in app.state.http_client for the duration of the
    context and removes it on exit.
    """
    manager = HttpClientManager(timeout=timeout, max_connections=max_connections)

    try:
        client = await manager.start()
        app.state.http_client = client
        app.state.http_client_manager = manager
        yield manager
    finally:
        await manager.stop()
        if hasattr(app.state, "http_client"):
            delattr(app.state, "http_client")
        if hasattr(app.state, "http_client_manager"):
            delattr(app.state, "http_client_manager")
