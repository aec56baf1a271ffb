"""Diagnostics API routes."""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ...app import Application
from ...graph import GraphError
from ...logging_config import get_logger
from ...notifications import DiagnosticsResumeHandler
from .common import get_caller_upn, to_http_exception

logger = get_logger(__name__)


class GraphDiagnosticsResponse(BaseModel):
    success: bool
    message: str
    user_count: int | None = None
    details: str | None = None
    timestamp: datetime


class TestCardResponse(BaseModel):
    upn: str
    status: str
    error_message: str | None = None


def create_diagnostics_router(app: Application) -> APIRouter:
    """Create diagnostics router."""
    router = APIRouter(prefix="/api/diagnostics", tags=["diagnostics"])

    @router.get("/graph", response_model=GraphDiagnosticsResponse)
    async def test_graph_connection() -> dict:
        """Count tenant users to check that Graph credentials work."""
        logger.info("Testing Graph API connection")
        timestamp = datetime.now(timezone.utc)
        try:
            graph = app.graph
            if not graph:
                raise RuntimeError("Graph is not configured")
            user_count = await graph.get_user_count()
            return {
                "success": True,
                "message": "Successfully connected to Graph API",
                "user_count": user_count,
                "timestamp": timestamp,
            }
        except Exception as e:
            logger.error(f"Error testing Graph connection: {e}", exc_info=True)
            details = e.message if isinstance(e, GraphError) else None
            return {
                "success": False,
                "message": str(e),
                "details": details,
                "timestamp": timestamp,
            }

    @router.post("/test-card", response_model=TestCardResponse)
    async def send_test_card(
        upn: str | None = None, caller: str = Depends(get_caller_upn)
    ) -> dict:
        """Send the diagnostics card to a user (the caller by default)."""
        target = upn or caller
        try:
            handler = DiagnosticsResumeHandler(app.config.bot_name)
            result = await app.resume_manager.resume_conversation(target, handler)
            return {
                "upn": target,
                "status": result.status.value,
                "error_message": result.error_message,
            }
        except Exception as e:
            raise to_http_exception(e)

    return router
