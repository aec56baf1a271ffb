"""Smart group API routes."""

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from ...app import Application
from .common import get_caller_upn, to_http_exception


class SmartGroupRequest(BaseModel):
    name: str
    description: str


class PreviewRequest(BaseModel):
    description: str
    max_users: int = 500


class SmartGroupResponse(BaseModel):
    id: str
    name: str
    description: str
    created_by_upn: str
    created_date: datetime
    last_resolved_date: datetime | None = None
    last_resolved_member_count: int | None = None


class SmartGroupMemberResponse(BaseModel):
    group_id: str
    user_principal_name: str
    display_name: str | None = None
    department: str | None = None
    job_title: str | None = None
    confidence_score: float | None = None
    reason: str | None = None
    cached_date: datetime | None = None


class ResolutionResponse(BaseModel):
    group_id: str
    members: list[SmartGroupMemberResponse]
    resolved_at: datetime | None = None
    from_cache: bool


def create_smart_groups_router(app: Application) -> APIRouter:
    """Create smart groups router."""
    router = APIRouter(prefix="/api/smart-groups", tags=["smart-groups"])

    @router.get("", response_model=list[SmartGroupResponse])
    async def list_groups():
        try:
            return await app.smart_groups.get_all_groups()
        except Exception as e:
            raise to_http_exception(e)

    @router.post("", response_model=SmartGroupResponse)
    async def create_group(
        request: SmartGroupRequest, caller: str = Depends(get_caller_upn)
    ):
        try:
            return await app.smart_groups.create_group(
                request.name, request.description, caller
            )
        except Exception as e:
            raise to_http_exception(e)

    @router.post("/preview", response_model=list[SmartGroupMemberResponse])
    async def preview(request: PreviewRequest):
        """Match users against a description without saving anything."""
        try:
            return await app.smart_groups.preview_group_members(
                request.description, request.max_users
            )
        except Exception as e:
            raise to_http_exception(e)

    @router.get("/{group_id}", response_model=SmartGroupResponse)
    async def get_group(group_id: str):
        try:
            group = await app.smart_groups.get_group(group_id)
            if not group:
                raise HTTPException(status_code=404, detail=f"Smart group {group_id} not found")
            return group
        except HTTPException:
            raise
        except Exception as e:
            raise to_http_exception(e)

    @router.put("/{group_id}", response_model=SmartGroupResponse)
    async def update_group(group_id: str, request: SmartGroupRequest):
        try:
            return await app.smart_groups.update_group(
                group_id, request.name, request.description
            )
        except Exception as e:
            raise to_http_exception(e)

    @router.delete("/{group_id}")
    async def delete_group(group_id: str) -> dict:
        try:
            await app.smart_groups.delete_group(group_id)
            return {"status": "ok"}
        except Exception as e:
            raise to_http_exception(e)

    @router.post("/{group_id}/resolve", response_model=ResolutionResponse)
    async def resolve(group_id: str, force_refresh: bool = False):
        try:
            return await app.smart_groups.resolve_group_members(group_id, force_refresh)
        except Exception as e:
            raise to_http_exception(e)

    @router.get("/{group_id}/upns", response_model=list[str])
    async def member_upns(group_id: str):
        try:
            return await app.smart_groups.get_group_member_upns(group_id)
        except Exception as e:
            raise to_http_exception(e)

    return router
