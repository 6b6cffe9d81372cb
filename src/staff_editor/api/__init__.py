"""
API routers.
"""

from staff_editor.api.session import router as session_router

__all__ = ["session_router"]
