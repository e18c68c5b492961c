"""Chat API routes of the reference game server."""

import base64
import binascii
from typing import Any

from pydantic import BaseModel, Field
from fastapi import APIRouter, HTTPException

from ...app import IApplication
from ...llm import LLMError
from ...logging_config import get_logger
from ...master import (
    ConversationNotFoundError,
    EmptyRequestError,
    MessageNotFoundError,
)
from ...models import OutgoingFile

logger = get_logger(__name__)

LLM_ERROR_STATUSES = {"rate_limit": 429, "moderation": 422}


class CreateChatRequest(BaseModel):
    """Request model for creating a conversation."""

    title: str | None = None


class ChatTokenResponse(BaseModel):
    """Response carrying a conversation id."""

    chatToken: str


class FilePayload(BaseModel):
    """A file attached to a turn (base64 data)."""

    name: str
    mimeType: str = "application/octet-stream"
    data: str


class GenerateRequest(BaseModel):
    """Request model for a player turn."""

    message: str = ""
    previousVectorMemory: list[dict[str, Any]] = Field(default_factory=list)
    files: list[FilePayload] = Field(default_factory=list)


class EditRequest(BaseModel):
    newContent: str


class DeleteMemoriesRequest(BaseModel):
    messageids: list[str]


class BranchRequest(BaseModel):
    messageid: str


def error_detail(message: str, error_type: str | None) -> dict:
    return {"error": message, "errorType": error_type}


def http_error(e: Exception) -> HTTPException:
    """Map a game master failure to an HTTPException."""
    if isinstance(e, (ConversationNotFoundError, MessageNotFoundError)):
        return HTTPException(status_code=404, detail=error_detail(str(e), "not_found"))
    if isinstance(e, EmptyRequestError):
        return HTTPException(status_code=400, detail=error_detail(str(e), "validation"))
    if isinstance(e, LLMError):
        status = LLM_ERROR_STATUSES.get(e.error_type or "", 502)
        return HTTPException(
            status_code=status, detail=error_detail(e.message, e.error_type or "llm")
        )
    logger.error("Unexpected error: %s", e, exc_info=True)
    return HTTPException(status_code=500, detail=error_detail(str(e), None))


def decode_files(files: list[FilePayload]) -> list[OutgoingFile]:
    decoded = []
    for f in files:
        try:
            data = base64.b64decode(f.data, validate=True)
        except (binascii.Error, ValueError):
            raise HTTPException(
                status_code=400,
                detail=error_detail(f"Invalid file data: {f.name}", "validation"),
            )
        decoded.append(OutgoingFile(name=f.name, mime_type=f.mimeType, data=data))
    return decoded


def create_chat_router(app: IApplication) -> APIRouter:
    """Create chat router."""
    router = APIRouter(prefix="/api/chat", tags=["chat"])

    @router.post("/create", response_model=ChatTokenResponse)
    async def create_chat(request: CreateChatRequest | None = None) -> dict:
        """Start a new conversation."""
        try:
            conversation = await app.game_master.create_conversation(
                request.title if request else None
            )
            return {"chatToken": conversation.id}
        except Exception as e:
            raise http_error(e)

    @router.get("/{chat_id}/history")
    async def get_history(chat_id: str) -> list[dict]:
        """Full ordered history of a conversation."""
        try:
            history = await app.game_master.history(chat_id)
            return [msg.to_wire() for msg in history]
        except Exception as e:
            raise http_error(e)

    @router.post("/generate/{chat_id}")
    async def generate(chat_id: str, request: GenerateRequest) -> dict:
        """Send a player turn and get the complete history back."""
        files = decode_files(request.files)
        try:
            result = await app.game_master.generate(
                chat_id, request.message, request.previousVectorMemory, files
            )
        except Exception as e:
            raise http_error(e)

        return {
            "history": [msg.to_wire() for msg in result.history],
            "newVectorMemory": result.new_vector_memory,
            "pendingDeletions": [
                {"messageid": d.id, "text": d.text, "category": d.category}
                for d in result.pending_deletions
            ],
        }

    @router.put("/edit/{chat_id}/{message_id}")
    async def edit_message(chat_id: str, message_id: str, request: EditRequest) -> dict:
        try:
            await app.game_master.edit(chat_id, message_id, request.newContent)
            return {"status": "ok"}
        except Exception as e:
            raise http_error(e)

    @router.delete("/message/{chat_id}/{message_id}")
    async def delete_message(chat_id: str, message_id: str) -> dict:
        try:
            await app.game_master.delete(chat_id, message_id)
            return {"status": "ok"}
        except Exception as e:
            raise http_error(e)

    @router.post("/{chat_id}/memories/delete")
    async def delete_memories(chat_id: str, request: DeleteMemoriesRequest) -> dict:
        """Forget the memories the player confirmed."""
        try:
            deleted = await app.game_master.delete_memories(chat_id, request.messageids)
            return {"deleted": deleted}
        except Exception as e:
            raise http_error(e)

    @router.post("/{chat_id}/branch", response_model=ChatTokenResponse)
    async def branch(chat_id: str, request: BranchRequest) -> dict:
        """Start a new conversation from a prefix of this one."""
        try:
            conversation = await app.game_master.branch(chat_id, request.messageid)
            return {"chatToken": conversation.id}
        except Exception as e:
            raise http_error(e)

    return router
