"""Dashboard statistics API routes."""

from fastapi import APIRouter
from pydantic import BaseModel

from ...app import Application
from .common import to_http_exception


class MessageStatusStatsResponse(BaseModel):
    sent_count: int
    failed_count: int
    pending_count: int
    total_count: int


class UserCoverageStatsResponse(BaseModel):
    total_users_in_tenant: int
    users_messaged: int
    users_not_messaged: int
    coverage_percentage: float


def create_statistics_router(app: Application) -> APIRouter:
    """Create statistics router."""
    router = APIRouter(prefix="/api/statistics", tags=["statistics"])

    @router.get("/message-status", response_model=MessageStatusStatsResponse)
    async def message_status():
        try:
            return await app.statistics.get_message_status_stats()
        except Exception as e:
            raise to_http_exception(e)

    @router.get("/user-coverage", response_model=UserCoverageStatsResponse)
    async def user_coverage():
        try:
            return await app.statistics.get_user_coverage_stats()
        except Exception as e:
            raise to_http_exception(e)

    return router
