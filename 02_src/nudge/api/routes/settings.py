"""Application settings API routes."""

from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ...app import Application
from .common import get_caller_upn, to_http_exception


class SettingsResponse(BaseModel):
    follow_up_chat_system_prompt: str
    is_default_prompt: bool
    last_modified_date: datetime | None = None
    last_modified_by_upn: str | None = None


class SettingsUpdateRequest(BaseModel):
    follow_up_chat_system_prompt: str | None = None


def create_settings_router(app: Application) -> APIRouter:
    """Create settings router."""
    router = APIRouter(prefix="/api/settings", tags=["settings"])

    async def current() -> dict:
        manager = app.settings_manager
        settings = await manager.get_settings()
        return {
            "follow_up_chat_system_prompt": await manager.get_effective_follow_up_chat_system_prompt(),
            "is_default_prompt": not (settings.follow_up_chat_system_prompt or "").strip(),
            "last_modified_date": settings.last_modified_date,
            "last_modified_by_upn": settings.last_modified_by_upn,
        }

    @router.get("", response_model=SettingsResponse)
    async def get_settings() -> dict:
        """Settings with the effective prompt (the default when none is saved)."""
        try:
            return await current()
        except Exception as e:
            raise to_http_exception(e)

    @router.put("", response_model=SettingsResponse)
    async def update_settings(
        request: SettingsUpdateRequest, caller: str = Depends(get_caller_upn)
    ) -> dict:
        try:
            await app.settings_manager.update_settings(
                request.follow_up_chat_system_prompt, caller
            )
            return await current()
        except Exception as e:
            raise to_http_exception(e)

    @router.post("/reset-prompt", response_model=SettingsResponse)
    async def reset_prompt(caller: str = Depends(get_caller_upn)) -> dict:
        try:
            await app.settings_manager.reset_follow_up_chat_system_prompt(caller)
            return await current()
        except Exception as e:
            raise to_http_exception(e)

    return router
