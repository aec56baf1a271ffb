"""Directory user and user cache API routes."""

from dataclasses import asdict
from datetime import datetime

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from ...app import Application
from ...logging_config import get_logger
from .common import to_http_exception

logger = get_logger(__name__)


class CacheStatusResponse(BaseModel):
    cached_user_count: int
    last_full_sync_date: datetime | None = None
    last_delta_sync_date: datetime | None = None
    last_copilot_stats_update: datetime | None = None
    last_sync_status: str | None = None
    last_sync_error: str | None = None
    last_sync_user_count: int = 0
    has_delta_link: bool


def create_users_router(app: Application) -> APIRouter:
    """Create users and user cache router."""
    router = APIRouter(prefix="/api", tags=["users"])

    @router.get("/users")
    async def list_users(department: str | None = None) -> list[dict]:
        """Cached directory users, optionally filtered by department."""
        try:
            if department:
                users = await app.user_service.get_users_by_department(department)
            else:
                users = await app.user_service.get_all_users_with_metadata()
            return [u.to_dict() for u in users]
        except Exception as e:
            raise to_http_exception(e)

    @router.get("/users/{upn}")
    async def get_user(upn: str) -> dict:
        try:
            user = await app.user_service.get_user_with_metadata(upn)
            if not user:
                raise HTTPException(status_code=404, detail=f"User {upn} not found")
            return user.to_dict()
        except HTTPException:
            raise
        except Exception as e:
            raise to_http_exception(e)

    @router.get("/user-cache/status", response_model=CacheStatusResponse)
    async def cache_status() -> dict:
        """Sync bookkeeping without triggering a sync."""
        try:
            metadata = await app.user_cache.get_sync_metadata()
            users = await app.storage.get_directory_users()
            status = asdict(metadata)
            status.pop("delta_link")
            return {
                **status,
                "cached_user_count": len(users),
                "has_delta_link": bool(metadata.delta_link),
            }
        except Exception as e:
            raise to_http_exception(e)

    @router.post("/user-cache/sync")
    async def sync(force: bool = False) -> dict:
        try:
            metadata = await app.user_cache.sync_users(force_full_sync=force)
            return {
                "message": "User cache synchronized successfully.",
                "user_count": metadata.last_sync_user_count,
            }
        except Exception as e:
            raise to_http_exception(e)

    @router.post("/user-cache/copilot-stats")
    async def update_copilot_stats(force: bool = False) -> dict:
        try:
            updated = await app.user_cache.update_copilot_stats(force=force)
            metadata = await app.user_cache.get_sync_metadata()
            return {
                "message": "Copilot statistics updated for cached users.",
                "users_updated": updated,
                "last_update": metadata.last_copilot_stats_update,
            }
        except Exception as e:
            raise to_http_exception(e)

    @router.delete("/user-cache")
    async def clear_cache() -> dict:
        try:
            await app.user_cache.clear_cache()
            return {
                "message": "User cache cleared. A full sync will occur on next access."
            }
        except Exception as e:
            raise to_http_exception(e)

    return router
