"""Bot Framework messaging endpoint."""

from botbuilder.schema import Activity
from fastapi import APIRouter, HTTPException, Request, Response
from fastapi.responses import JSONResponse

from ...app import Application
from ...logging_config import get_logger

logger = get_logger(__name__)


def create_bot_router(app: Application) -> APIRouter:
    """Create bot router."""
    router = APIRouter(prefix="/api", tags=["bot"])

    @router.post("/messages")
    async def messages(request: Request) -> Response:
        """Receive an activity from the Bot Framework channel."""
        if "application/json" not in request.headers.get("Content-Type", ""):
            return Response(status_code=415)

        body = await request.json()
        activity = Activity().deserialize(body)
        auth_header = request.headers.get("Authorization", "")

        try:
            response = await app.adapter.process_activity(
                activity, auth_header, app.bot.on_turn
            )
        except PermissionError as e:
            logger.warning(f"Rejected bot activity: {e}")
            raise HTTPException(status_code=401, detail="Unauthorized")

        if response:
            return JSONResponse(content=response.body, status_code=response.status)
        return Response(status_code=201)

    return router
