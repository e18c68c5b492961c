"""HTTP transport for the game server API."""

import base64
import os
from typing import Any

import httpx

from ..config import resolve_api_url, resolve_timeout
from ..logging_config import get_logger
from ..models import (
    ErrorKind,
    GenerationResult,
    Message,
    OutgoingFile,
    PendingDeletion,
    RemoteCallError,
)

logger = get_logger(__name__)

VALIDATION_STATUSES = {400, 404, 409, 422}


def classify_response(status_code: int, error_type: str | None) -> ErrorKind:
    """Map an HTTP error response to an ErrorKind."""
    if error_type == "moderation":
        return ErrorKind.MODERATION_REJECTION
    if error_type == "rate_limit" or status_code == 429:
        return ErrorKind.RATE_LIMITED
    if status_code in VALIDATION_STATUSES:
        return ErrorKind.VALIDATION_FAILURE
    return ErrorKind.UNCLASSIFIED


class HttpTransport:
    """ITransport over the REST API of the game server."""

    def __init__(
        self,
        api_url: str | None = None,
        token: str | None = None,
        timeout: float | None = None,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._api_url = resolve_api_url(api_url)
        self._token = token or os.getenv("DMCHAT_API_TOKEN")
        self._timeout = resolve_timeout(timeout)
        self._http_transport = http_transport
        self._client: httpx.AsyncClient | None = None

    async def start(self) -> None:
        """Open the HTTP client."""
        if self._client:
            return

        headers = {"Accept": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"

        self._client = httpx.AsyncClient(
            base_url=self._api_url,
            headers=headers,
            timeout=self._timeout,
            transport=self._http_transport,
        )

    async def stop(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "HttpTransport":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        """Send a request and return the decoded JSON body (None if empty)."""
        if not self._client:
            raise RuntimeError("HttpTransport not started")

        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            logger.warning("%s %s timed out", method, path)
            raise RemoteCallError(
                ErrorKind.NETWORK_FAILURE, "The server took too long to answer."
            ) from e
        except httpx.RequestError as e:
            logger.warning("%s %s failed: %s", method, path, e)
            raise RemoteCallError(
                ErrorKind.NETWORK_FAILURE, f"Could not reach the server: {e}"
            ) from e

        if response.is_error:
            raise self._error_from_response(response)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise RemoteCallError(
                ErrorKind.UNCLASSIFIED,
                "The server sent an unreadable response.",
                response.status_code,
            ) from e

    def _error_from_response(self, response: httpx.Response) -> RemoteCallError:
        body: Any = None
        try:
            body = response.json()
        except ValueError:
            pass

        # FastAPI wraps HTTPException payloads in "detail"
        if isinstance(body, dict) and isinstance(body.get("detail"), dict):
            body = body["detail"]

        if isinstance(body, dict):
            message = body.get("error") or body.get("detail") or response.reason_phrase
            error_type = body.get("errorType")
        else:
            message = response.reason_phrase or f"HTTP {response.status_code}"
            error_type = None

        kind = classify_response(response.status_code, error_type)
        logger.warning(
            "Request failed with HTTP %s",
            response.status_code,
            extra={"context": {"kind": kind.value, "error_type": error_type}},
        )
        return RemoteCallError(kind, str(message), response.status_code)

    async def generate(
        self,
        conversation_id: str,
        text: str,
        vector_memory_context: list[dict],
        files: list[OutgoingFile],
    ) -> GenerationResult:
        payload = {
            "message": text,
            "previousVectorMemory": vector_memory_context,
            "files": [
                {
                    "name": f.name,
                    "mimeType": f.mime_type,
                    "data": base64.b64encode(f.data).decode("ascii"),
                }
                for f in files
            ],
        }
        data = await self._request(
            "POST", f"/chat/generate/{conversation_id}", json=payload
        )

        try:
            return GenerationResult(
                history=[Message.from_wire(record) for record in data["history"]],
                new_vector_memory=list(data.get("newVectorMemory") or []),
                pending_deletions=[
                    PendingDeletion.from_wire(item)
                    for item in data.get("pendingDeletions") or []
                ],
            )
        except (KeyError, TypeError) as e:
            raise RemoteCallError(
                ErrorKind.UNCLASSIFIED, "The server sent an incomplete history."
            ) from e

    async def edit_message(
        self, conversation_id: str, message_id: str, new_text: str
    ) -> None:
        await self._request(
            "PUT",
            f"/chat/edit/{conversation_id}/{message_id}",
            json={"newContent": new_text},
        )

    async def delete_message(self, conversation_id: str, message_id: str) -> None:
        await self._request("DELETE", f"/chat/message/{conversation_id}/{message_id}")

    async def delete_memories(self, conversation_id: str, ids: list[str]) -> None:
        await self._request(
            "POST",
            f"/chat/{conversation_id}/memories/delete",
            json={"messageids": ids},
        )

    async def branch(self, conversation_id: str, from_message_id: str) -> str:
        data = await self._request(
            "POST",
            f"/chat/{conversation_id}/branch",
            json={"messageid": from_message_id},
        )
        try:
            return str(data["chatToken"])
        except (KeyError, TypeError) as e:
            raise RemoteCallError(
                ErrorKind.UNCLASSIFIED, "The server did not return the new chat."
            ) from e

    async def get_history(self, conversation_id: str) -> list[Message]:
        data = await self._request("GET", f"/chat/{conversation_id}/history")
        try:
            return [Message.from_wire(record) for record in data]
        except (KeyError, TypeError) as e:
            raise RemoteCallError(
                ErrorKind.UNCLASSIFIED, "The server sent an unreadable history."
            ) from e
