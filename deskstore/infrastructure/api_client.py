"""Desktop API Client - httpx transport for the remote desktop store.

Invariants:
    - Non-2xx responses raise NetworkError carrying the server's "error" text
      (or "HTTP <status>" when the body has none)
    - Connection failures and timeouts raise NetworkError; uploads raise UploadError
    - No retries: the next user action (or a reload) is the retry path
    - Bearer token sent on every request when configured

Design Decisions:
    - One AsyncClient per store, closed by bootstrap on shutdown
    - Error mapping lives here so services/ only ever sees DeskStoreError subclasses
"""

import json
import logging
from collections.abc import Callable

import httpx

from deskstore.core.errors import ErrorContext, NetworkError, UploadError
from deskstore.schemas.item import DesktopItem, GridPosition
from deskstore.schemas.sync import (
    DesktopResponse, ItemPatch, UploadResponse, UploadedFile,
)

logger = logging.getLogger(__name__)


def _error_text(response: httpx.Response) -> str:
    """Server error message from a failed response."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return f"HTTP {response.status_code}"


class DesktopApiClient:
    """Implements DesktopTransport over HTTP."""

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        timeout_seconds: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self.client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=timeout_seconds,
            transport=transport,
        )

    def set_token(self, token: str | None) -> None:
        if token:
            self.client.headers["Authorization"] = f"Bearer {token}"
        else:
            self.client.headers.pop("Authorization", None)

    async def _request(
        self, method: str, path: str, operation: str, **kwargs,
    ) -> httpx.Response:
        try:
            response = await self.client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            raise NetworkError(
                "Request timed out", operation,
                context=ErrorContext(debug_info={"error": str(e)}),
            )
        except httpx.HTTPError as e:
            raise NetworkError(
                f"Connection failed: {e}", operation,
            )
        if response.is_error:
            message = _error_text(response)
            logger.warning(
                f"Desktop API {method} {path} failed: {message}",
                extra={"operation": operation, "error_code": response.status_code},
            )
            raise NetworkError(message, operation, status_code=response.status_code)
        return response

    async def fetch_desktop(self) -> DesktopResponse:
        response = await self._request("GET", "/api/desktop", "fetch_desktop")
        return DesktopResponse.model_validate(response.json())

    async def create_item(self, item: DesktopItem) -> None:
        await self._request(
            "POST", "/api/desktop/items", "create_item", json=item.to_wire(),
        )

    async def update_items(self, patches: list[ItemPatch]) -> None:
        await self._request(
            "PATCH", "/api/desktop/items", "update_items",
            json=[patch.model_dump(mode="json") for patch in patches],
        )

    async def delete_item(self, item_id: str) -> None:
        await self._request(
            "DELETE", f"/api/desktop/items/{item_id}", "delete_item",
        )

    async def empty_trash(self) -> None:
        await self._request("DELETE", "/api/trash", "empty_trash")

    async def upload_file(
        self,
        file: UploadedFile,
        parent_id: str | None,
        position: GridPosition,
        on_progress: Callable[[int], None] | None = None,
    ) -> DesktopItem:
        """Multipart upload. Progress is reported at start (0) and completion (100)."""
        if on_progress:
            on_progress(0)
        try:
            response = await self._request(
                "POST", "/api/upload", "upload_file",
                files={"file": (file.filename, file.data, file.content_type)},
                data={
                    "parentId": parent_id or "",
                    "position": json.dumps(position.model_dump()),
                },
            )
        except NetworkError as e:
            raise UploadError(e.message, file.filename)
        if on_progress:
            on_progress(100)
        return UploadResponse.model_validate(response.json()).item

    async def aclose(self) -> None:
        await self.client.aclose()
