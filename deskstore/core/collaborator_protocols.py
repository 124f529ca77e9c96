"""Boundary Protocols - contracts between the store and its collaborators.

Invariants:
    - Core NEVER imports from infrastructure - dependency arrows point inward only
    - Remote IO is reached only through DesktopTransport
    - Notifier.report_error and SoundPlayer.play never raise

Design Decisions:
    - Protocol over ABC: structural subtyping, tests pass plain fakes
    - Async transport methods because implementations do IO; the store schedules
      them as tasks and never awaits them inside a mutation
"""

from collections.abc import Callable
from typing import Protocol

from deskstore.core.domain_types import SoundKind
from deskstore.schemas.item import DesktopItem, GridPosition
from deskstore.schemas.sync import DesktopResponse, ItemPatch, UploadedFile


class DesktopTransport(Protocol):
    """Contract for the remote desktop API. Failures raise NetworkError / UploadError."""
    async def fetch_desktop(self) -> DesktopResponse: ...
    async def create_item(self, item: DesktopItem) -> None: ...
    async def update_items(self, patches: list[ItemPatch]) -> None: ...
    async def delete_item(self, item_id: str) -> None: ...
    async def empty_trash(self) -> None: ...
    async def upload_file(
        self,
        file: UploadedFile,
        parent_id: str | None,
        position: GridPosition,
        on_progress: Callable[[int], None] | None = None,
    ) -> DesktopItem: ...


class Notifier(Protocol):
    """User-visible, non-blocking error notification."""
    def report_error(self, message: str, title: str | None = None) -> None: ...


class SoundPlayer(Protocol):
    """Fire-and-forget feedback sounds."""
    def play(self, kind: SoundKind) -> None: ...


class KeyValueStore(Protocol):
    """Durable string key/value storage. Failures raise CacheError."""
    async def get(self, key: str) -> str | None: ...
    async def set(self, key: str, value: str) -> None: ...
