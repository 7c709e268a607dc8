import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse

from backend.config import settings
from backend.errors import ConfigurationError
from backend.routers.deps import get_extraction_client, get_user_id
from backend.schemas.chat import ChatRequest
from backend.services.chat import build_system_prompt
from backend.services.extraction import ChatTurn, ExtractionClient

router = APIRouter(prefix="/api/chat", tags=["chat"])
logger = logging.getLogger(__name__)


async def stream_reply(extraction: ExtractionClient, system_prompt: str, turns: list[ChatTurn], max_duration: float):
    """Relay model deltas until the stream ends or the wall-clock limit is reached."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + max_duration
    stream = extraction.stream_chat(system_prompt, turns)
    try:
        while True:
            remaining = deadline - loop.time()
            if remaining <= 0:
                logger.warning("Chat reply cut off after %.0fs", max_duration)
                break
            try:
                delta = await asyncio.wait_for(stream.__anext__(), timeout=remaining)
            except StopAsyncIteration:
                break
            except asyncio.TimeoutError:
                logger.warning("Chat reply cut off after %.0fs", max_duration)
                break
            yield delta
    except Exception:
        logger.exception("Chat stream failed")
        yield "\n\n[The assistant is unavailable right now. Please try again later.]"
    finally:
        await stream.aclose()


@router.post("")
async def chat(
    payload: ChatRequest,
    extraction: ExtractionClient = Depends(get_extraction_client),
    user_id: str = Depends(get_user_id),
):
    try:
        await extraction.ensure_chat_ready()
    except ConfigurationError as exc:
        logger.error("Chat unavailable: %s", exc)
        raise HTTPException(status_code=500, detail="Server configuration error") from exc

    turns = [ChatTurn(role=m.role, content=m.content) for m in payload.messages]
    system_prompt = build_system_prompt(payload.report_context)
    logger.info("Chat request from %s with %s messages", user_id, len(turns))
    return StreamingResponse(
        stream_reply(extraction, system_prompt, turns, settings.chat_max_duration_seconds),
        media_type="text/plain; charset=utf-8",
    )
