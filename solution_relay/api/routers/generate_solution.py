"""Generate-solution API router: relays an image to Gemini and returns its answer."""

import asyncio
import logging
import time
import uuid
from typing import Optional, Tuple

from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse

from ..models.solution import ErrorResponse, SolutionResponse
from ...errors import RelayError
from ...services.relay_pipeline import RelayPipeline

logger = logging.getLogger(__name__)

router = APIRouter(tags=["generate-solution"])

# How often an in-flight request checks whether its client went away
DISCONNECT_POLL_INTERVAL = 0.25

# Not sent on the wire; the client is gone. Used for logging only.
CLIENT_CLOSED_REQUEST = 499


def get_pipeline(request: Request) -> RelayPipeline:
    """Return the pipeline built during application startup."""
    return request.app.state.pipeline


async def _wait_for_disconnect(request: Request) -> None:
    while not await request.is_disconnected():
        await asyncio.sleep(DISCONNECT_POLL_INTERVAL)


async def _run_until_disconnect(
    request: Request,
    pipeline: RelayPipeline,
    body: bytes,
    request_id: str,
) -> Tuple[bool, Optional[str]]:
    """
    Run the pipeline, cancelling it if the client disconnects first.

    If the handler itself is cancelled, the relay is cancelled with it.

    Returns:
        Tuple of (completed, solution). ``completed`` is False when the
        client went away and the relay was cancelled.
    """
    relay = asyncio.ensure_future(pipeline.generate_solution(body, request_id))
    watcher = asyncio.ensure_future(_wait_for_disconnect(request))
    try:
        await asyncio.wait({relay, watcher}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        relay.cancel()
        raise
    finally:
        watcher.cancel()

    if relay.done():
        return True, relay.result()

    relay.cancel()
    try:
        await relay
    except asyncio.CancelledError:
        pass
    return False, None


@router.post(
    "/generate-solution",
    response_model=SolutionResponse,
    responses={
        400: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
    },
)
async def generate_solution(request: Request):
    """
    Generate a solution for a base64-encoded image.

    The body must be a JSON object ``{"data": "<base64>"}``. The image is
    forwarded with a fixed instruction prompt to Gemini and the text of the
    first candidate is returned.

    Returns:
        ``{"solution": "<text>"}`` on success, ``{"error": ...}`` otherwise
    """
    request_id = str(uuid.uuid4())
    start_time = time.time()
    body = await request.body()

    try:
        completed, solution = await _run_until_disconnect(
            request, get_pipeline(request), body, request_id
        )
    except RelayError as e:
        processing_time_ms = int((time.time() - start_time) * 1000)
        if e.status_code < 500:
            logger.warning(
                f"Rejected request {request_id}: {e.message} ({processing_time_ms}ms)"
            )
        else:
            logger.error(
                f"Relay failed for request {request_id}: {e.message}: {e.detail} "
                f"({processing_time_ms}ms)"
            )
        return JSONResponse(status_code=e.status_code, content=e.to_body())

    processing_time_ms = int((time.time() - start_time) * 1000)
    if not completed:
        logger.info(
            f"Client disconnected, cancelled request {request_id} ({processing_time_ms}ms)"
        )
        return Response(status_code=CLIENT_CLOSED_REQUEST)

    logger.info(
        f"Solution generated for request {request_id}: "
        f"{len(solution)} chars ({processing_time_ms}ms)"
    )
    return SolutionResponse(solution=solution)


@router.options("/generate-solution", status_code=204)
async def generate_solution_options() -> Response:
    """Answer a bare OPTIONS request; CORS preflights are handled by middleware."""
    return Response(status_code=204)
