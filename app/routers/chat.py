"""
Direct-chat API: application clients post a conversation and get a reply.

POST /chat   -> 200 {"reply"}, 400 {"error"} on a bad body, 500 {"error"}
OPTIONS /chat -> 204; browser preflights are answered by the CORS middleware,
                 also with 204
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from app.commands.chat.direct_chat_command import DirectChatCommand, DirectChatError
from app.routers.utils.dependencies import get_direct_chat_command
from app.schemas.chat import ChatReply, ChatRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"])

INVALID_BODY_ERROR = "uid and messages are required"
GENERATION_ERROR = "LLM error"


@router.options("")
def chat_preflight() -> Response:
    return Response(status_code=204)


@router.post("", response_model=ChatReply)
async def chat(
    request: Request,
    command: DirectChatCommand = Depends(get_direct_chat_command),
):
    try:
        payload = await request.json()
    except ValueError:
        return JSONResponse(status_code=400, content={"error": INVALID_BODY_ERROR})
    try:
        body = ChatRequest.model_validate(payload)
    except ValidationError as e:
        logger.info("Rejected chat request: %s", e.errors(include_url=False))
        return JSONResponse(status_code=400, content={"error": INVALID_BODY_ERROR})
    try:
        return await command.execute(body)
    except DirectChatError:
        return JSONResponse(status_code=500, content={"error": GENERATION_ERROR})
