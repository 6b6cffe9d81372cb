"""
Staff Editor - Entry Point.

Headless ASGI application for uvicorn execution.

Usage:
    uvicorn staff_editor.main:app --host 127.0.0.1 --port 8000

Or run directly:
    staff-editor
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator, Optional

import httpx
import uvicorn
from fastapi import FastAPI

from staff_editor import __version__
from staff_editor.api import session_router
from staff_editor.core.app_context import AppContext
from staff_editor.core.http_client import create_http_client_context
from staff_editor.core.logging_config import setup_logging
from staff_editor.core.sheet import SheetClient
from staff_editor.services import ConfigStore, JsonFileConfigStore, StaffSession

logger = logging.getLogger(__name__)


def create_staff_session(
    context: AppContext,
    http_client: httpx.AsyncClient,
    config_store: Optional[ConfigStore] = None,
) -> StaffSession:
    """Wire a StaffSession from configuration."""
    config = context.config
    if config_store is None:
        config_store = JsonFileConfigStore(Path(config.get("app.data_dir")))

    sheet_client = SheetClient(http_client, timeout=config.get("sheet.timeout", 30.0))
    return StaffSession(
        sheet_client=sheet_client,
        config_store=config_store,
        fallback_text=config.read_fallback_csv(),
        default_url=config.get("sheet.default_url", ""),
    )


def create_app(
    context: Optional[AppContext] = None,
    config_store: Optional[ConfigStore] = None,
) -> FastAPI:
    """Create the FastAPI application with the session router and lifespan."""
    context = context or AppContext()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        log_level = getattr(logging, str(context.config.get("app.log_level", "INFO")).upper(), logging.INFO)
        setup_logging(log_level)
        logger.info("Starting Staff Editor...")

        timeout = context.config.get("sheet.timeout", 30.0)
        async with create_http_client_context(app, timeout=timeout) as http_manager:
            session = create_staff_session(context, http_manager.client, config_store)
            await session.initialize()
            app.state.staff_session = session

            snapshot = session.status()
            context.log_event(
                f"Roster loaded: {snapshot.roster_size} record(s), "
                f"sheet {'connected' if snapshot.is_connected else 'offline'}",
                "SUCCESS" if snapshot.is_connected else "WARNING",
            )

            yield

            logger.info("Shutting down Staff Editor...")
            if session.is_dirty:
                logger.warning("Shutting down with unsaved edits in the open record")
            del app.state.staff_session

    app = FastAPI(title="Staff Editor", version=__version__, lifespan=lifespan)
    app.state.context = context
    app.include_router(session_router, prefix="/api")
    return app


# Export for uvicorn
app = create_app()


def main() -> None:
    """Run the application directly with uvicorn."""
    config = app.state.context.config
    uvicorn.run(
        "staff_editor.main:app",
        host=config.get("server.host", "127.0.0.1"),
        port=config.get("server.port", 8000),
        reload=config.get("app.debug", False),
        log_level="warning",
        access_log=False,
    )


if __name__ == "__main__":
    main()
