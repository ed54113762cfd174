"""Chat relay API endpoints."""

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.background import BackgroundTask

from chatrelay.core.cors import CORS_HEADERS
from chatrelay.core.exceptions import InvalidRequestError
from chatrelay.core.logging import setup_logger
from chatrelay.dependencies.get_relay_service import get_relay_service
from chatrelay.models.chat import ErrorResponse
from chatrelay.services.relay import MESSAGES_REQUIRED, RelayService

logger = setup_logger(__name__)

router = APIRouter(tags=["chat"], prefix="/api/chat")

STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    **CORS_HEADERS,
}


@router.post(
    "",
    status_code=status.HTTP_200_OK,
    summary="Relay a chat completion, streamed via Server-Sent Events by default",
    responses={
        400: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
        504: {"model": ErrorResponse},
    },
)
async def relay_chat(
    request: Request,
    relay: RelayService = Depends(get_relay_service),
):
    """
    Relay a conversation to the upstream provider.

    This endpoint:
    1. Validates that `messages` is a non-empty array
    2. Forwards only the most recent 16 messages with the relay's fixed model
    3. With `stream=true` (default) re-emits the reply as normalized SSE frames
       `data: {"choices":[{"delta":{"content":"..."},"index":0}]}` and ends with
       `data: [DONE]`
    4. With `stream=false` returns the upstream JSON object unchanged

    Raises:
        InvalidRequestError: Malformed body (400)
        UpstreamError: Upstream failure before streaming begins (502)
        UpstreamTimeoutError: Upstream deadline exceeded before streaming begins (504)

    Failures after the stream has started abort the stream instead.
    """
    try:
        body = await request.json()
    except ValueError as e:
        raise InvalidRequestError(
            MESSAGES_REQUIRED, details={"reason": "Request body is not valid JSON"}
        ) from e

    chat_request = relay.parse_request(body)

    if chat_request.stream:
        frames = await relay.open_stream(chat_request)
        # Runs even if the client leaves before the body is iterated
        return StreamingResponse(
            frames,
            media_type="text/event-stream",
            headers=STREAM_HEADERS,
            background=BackgroundTask(frames.aclose),
        )

    data = await relay.complete(chat_request)
    return JSONResponse(content=data, headers=CORS_HEADERS)


@router.options("", summary="CORS preflight for the chat relay")
async def chat_options() -> JSONResponse:
    """Answer preflight requests with permissive cross-origin headers."""
    return JSONResponse(content={}, headers=CORS_HEADERS)
