"""
Chat API endpoints

- Send a message about a document and get the assistant's reply
"""

import logging
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from docchat.api.auth import verify_api_key
from docchat.api.dependencies import get_services
from docchat.core.ai.providers.base import ChatMessage
from docchat.core.services import ServiceContainer

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/chat", tags=["chat"])


class HistoryMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    """A new user message plus the conversation so far."""
    message: str = Field(..., min_length=1)
    history: List[HistoryMessage] = []


class ChatResponseModel(BaseModel):
    """Assistant reply. is_error marks sentinel/error replies."""
    reply: str
    is_error: bool = False
    context_kind: Optional[str] = None


@router.post("/{document_id}/messages", response_model=ChatResponseModel)
async def send_message(
    document_id: str,
    request: ChatRequest,
    services: ServiceContainer = Depends(get_services),
    _: Optional[str] = Depends(verify_api_key),
):
    """Answer a message grounded in the document."""
    history = [ChatMessage(role=m.role, content=m.content) for m in request.history]
    reply = await services.chat.send_message(document_id, history, request.message)
    return ChatResponseModel(
        reply=reply.text,
        is_error=reply.is_error,
        context_kind=reply.context_kind.value if reply.context_kind else None,
    )
