"""Template, batch and message log API routes."""

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel

from ...app import Application
from .common import get_caller_upn, to_http_exception


class TemplateRequest(BaseModel):
    template_name: str
    json_payload: str


class TemplateResponse(BaseModel):
    id: str
    template_name: str
    json_payload: str
    created_by_upn: str
    created_date: datetime


class BatchResponse(BaseModel):
    id: str
    batch_name: str
    template_id: str
    sender_upn: str
    created_date: datetime


class MessageLogResponse(BaseModel):
    id: str
    message_batch_id: str
    recipient_upn: str | None = None
    status: str
    sent_date: datetime | None = None
    last_error: str | None = None


class LogStatusRequest(BaseModel):
    status: str
    last_error: str | None = None


def create_templates_router(app: Application) -> APIRouter:
    """Create templates router."""
    router = APIRouter(prefix="/api", tags=["templates"])

    # Templates
    @router.get("/templates", response_model=list[TemplateResponse])
    async def list_templates():
        try:
            return await app.template_service.get_all_templates()
        except Exception as e:
            raise to_http_exception(e)

    @router.post("/templates", response_model=TemplateResponse)
    async def create_template(
        request: TemplateRequest, caller: str = Depends(get_caller_upn)
    ):
        try:
            return await app.template_service.create_template(
                request.template_name, request.json_payload, caller
            )
        except Exception as e:
            raise to_http_exception(e)

    @router.get("/templates/{template_id}", response_model=TemplateResponse)
    async def get_template(template_id: str):
        try:
            template = await app.template_service.get_template_by_id(template_id)
            if not template:
                raise HTTPException(status_code=404, detail=f"Template {template_id} not found")
            return template
        except HTTPException:
            raise
        except Exception as e:
            raise to_http_exception(e)

    @router.put("/templates/{template_id}", response_model=TemplateResponse)
    async def update_template(template_id: str, request: TemplateRequest):
        try:
            return await app.template_service.update_template(
                template_id, request.template_name, request.json_payload
            )
        except Exception as e:
            raise to_http_exception(e)

    @router.delete("/templates/{template_id}")
    async def delete_template(template_id: str) -> dict:
        try:
            await app.template_service.delete_template(template_id)
            return {"status": "ok"}
        except Exception as e:
            raise to_http_exception(e)

    @router.get("/templates/{template_id}/json")
    async def get_template_json(template_id: str) -> Response:
        """The raw adaptive card JSON of a template."""
        try:
            payload = await app.template_service.get_template_json(template_id)
            if payload is None:
                raise HTTPException(status_code=404, detail=f"Template {template_id} not found")
            return Response(content=payload, media_type="application/json")
        except HTTPException:
            raise
        except Exception as e:
            raise to_http_exception(e)

    @router.get("/templates/{template_id}/logs", response_model=list[MessageLogResponse])
    async def get_template_logs(template_id: str):
        try:
            return await app.template_service.get_message_logs(template_id)
        except Exception as e:
            raise to_http_exception(e)

    # Batches
    @router.get("/batches", response_model=list[BatchResponse])
    async def list_batches():
        try:
            return await app.template_service.get_all_batches()
        except Exception as e:
            raise to_http_exception(e)

    @router.get("/batches/{batch_id}", response_model=BatchResponse)
    async def get_batch(batch_id: str):
        try:
            batch = await app.template_service.get_batch_by_id(batch_id)
            if not batch:
                raise HTTPException(status_code=404, detail=f"Batch {batch_id} not found")
            return batch
        except HTTPException:
            raise
        except Exception as e:
            raise to_http_exception(e)

    @router.delete("/batches/{batch_id}")
    async def delete_batch(batch_id: str) -> dict:
        try:
            await app.template_service.delete_batch(batch_id)
            return {"status": "ok"}
        except Exception as e:
            raise to_http_exception(e)

    @router.get("/batches/{batch_id}/logs", response_model=list[MessageLogResponse])
    async def get_batch_logs(batch_id: str):
        try:
            return await app.template_service.get_message_logs_by_batch(batch_id)
        except Exception as e:
            raise to_http_exception(e)

    # Logs
    @router.get("/logs", response_model=list[MessageLogResponse])
    async def list_logs():
        try:
            return await app.template_service.get_all_message_logs()
        except Exception as e:
            raise to_http_exception(e)

    @router.put("/logs/{log_id}/status", response_model=MessageLogResponse)
    async def update_log_status(log_id: str, request: LogStatusRequest):
        try:
            return await app.template_service.update_log_status(
                log_id, request.status, request.last_error
            )
        except Exception as e:
            raise to_http_exception(e)

    return router
