"""Send-nudge API routes."""

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from pydantic import BaseModel

from ...app import Application
from ...logging_config import get_logger
from .common import get_caller_upn, to_http_exception
from .templates import BatchResponse, MessageLogResponse

logger = get_logger(__name__)


class ParseFileResponse(BaseModel):
    upns: list[str]


class SendNudgeRequest(BaseModel):
    batch_name: str
    template_id: str
    recipient_upns: list[str] = []


class SendNudgeResponse(BaseModel):
    batch: BatchResponse
    message_count: int
    logs: list[MessageLogResponse]


def parse_upn_lines(content: str) -> list[str]:
    """First comma-separated column of every non-blank line."""
    upns = []
    for line in content.splitlines():
        if not line.strip():
            continue
        upn = line.split(",")[0].strip()
        if upn:
            upns.append(upn)
    return upns


def create_nudges_router(app: Application) -> APIRouter:
    """Create nudges router."""
    router = APIRouter(prefix="/api/nudges", tags=["nudges"])

    @router.post("/parse-file", response_model=ParseFileResponse)
    async def parse_file(file: UploadFile = File(...)) -> dict:
        """Read recipient UPNs from an uploaded text or CSV file."""
        content = await file.read()
        if not content:
            raise HTTPException(status_code=400, detail="No file uploaded")
        try:
            upns = parse_upn_lines(content.decode("utf-8-sig"))
        except UnicodeDecodeError:
            raise HTTPException(status_code=400, detail="File must be UTF-8 text")

        logger.info(f"Parsed {len(upns)} UPNs from file {file.filename}")
        return {"upns": upns}

    @router.post("/send", response_model=SendNudgeResponse)
    async def send(
        request: SendNudgeRequest, caller: str = Depends(get_caller_upn)
    ) -> dict:
        """Create a batch for the recipients and queue a message for each."""
        if not request.batch_name.strip():
            raise HTTPException(status_code=400, detail="Batch name is required")
        if not request.template_id.strip():
            raise HTTPException(status_code=400, detail="Template id is required")
        recipients = [u.strip() for u in request.recipient_upns if u and u.strip()]
        if not recipients:
            raise HTTPException(
                status_code=400, detail="At least one recipient UPN is required"
            )

        try:
            templates = app.template_service
            template = await templates.get_template_by_id(request.template_id)
            if not template:
                raise HTTPException(
                    status_code=404, detail=f"Template {request.template_id} not found"
                )

            batch = await templates.create_batch(
                request.batch_name, request.template_id, caller
            )
            logs = await templates.log_batch_messages(batch, recipients)
            logger.info(f"Created batch {batch.id} with {len(logs)} messages")
            return {"batch": batch, "message_count": len(logs), "logs": logs}
        except HTTPException:
            raise
        except Exception as e:
            raise to_http_exception(e)

    return router
