"""Item Store - canonical in-memory desktop collection with optimistic sync.

Invariants:
    - Every mutation is synchronous: self.items reflects it before the call returns
    - Remote writes are scheduled, never awaited inside a mutation; a failed write
      is reported through the notifier and local state is NOT rolled back
    - Position writes are debounced per item id; only the last position is sent
    - Structural writes (create, delete, update, trash, restore, cut-move,
      duplicate-create, sort) are sent immediately, one call per logical edit
    - self.items keeps insertion order; items are replaced, never mutated in place
    - Ids are unique; parent_id only ever points at an existing, non-trashed folder
      when set by a store operation
    - No non-trashed item ever has a trashed ancestor; trash fields change only
      through move_to_trash/restore_from_trash
    - Items placed on request (create, upload, update) land on a free cell;
      removing a folder removes its subtree

Design Decisions:
    - Pure computations (layout, sorting, cascade) live in core/; this class only
      applies their results and schedules IO
    - Offline mode = no transport: the same operations run, minus remote writes
    - Restore is not cascading; a restored item whose ancestor is still trashed
      is put back on the root container instead of into the trashed folder
"""

import asyncio
import logging
from collections.abc import Iterable
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from deskstore.config import Settings
from deskstore.core.clipboard import Clipboard
from deskstore.core.collaborator_protocols import (
    DesktopTransport, Notifier, SoundPlayer,
)
from deskstore.core.domain_types import (
    ItemType, SortKey, SoundKind, SyncStatus, new_item_id, now_ms,
)
from deskstore.core.errors import (
    DeskStoreError, DuplicateItemError, ErrorContext, InvalidTargetError,
    ItemNotFoundError, ValidationError,
)
from deskstore.core.layout import allocate, find_nearest_free
from deskstore.core.sorting import sort_container
from deskstore.core.trash import collect_descendants, resolve_cascade
from deskstore.schemas.item import DesktopItem, GridPosition
from deskstore.schemas.sync import ItemPatch, UploadProgress, UploadedFile
from deskstore.services.local_cache import LocalCache, SortPreferences
from deskstore.services.sync_scheduler import SyncScheduler
from deskstore.services.uploads import UploadTracker, validate_upload

logger = logging.getLogger(__name__)

_UNCHANGED: Any = object()

# Trash state only changes through move_to_trash / restore_from_trash.
_LOCKED_FIELDS = ("id", "is_trashed", "trashed_at")

PositionLike = GridPosition | tuple[int, int] | dict


def _position_key(item_id: str) -> str:
    return f"position:{item_id}"


class ItemStore:
    """Owns items + selection; drives allocator, sorter, cascade, scheduler and cache."""

    def __init__(
        self,
        *,
        settings: Settings,
        scheduler: SyncScheduler,
        preferences: SortPreferences,
        notifier: Notifier,
        sounds: SoundPlayer,
        transport: DesktopTransport | None = None,
        cache: LocalCache | None = None,
        items: Iterable[DesktopItem] = (),
    ):
        self.items: list[DesktopItem] = list(items)
        self.selected_ids: set[str] = set()
        self.loading: bool = False
        self._settings = settings
        self._scheduler = scheduler
        self._preferences = preferences
        self._notifier = notifier
        self._sounds = sounds
        self._transport = transport
        self._cache = cache
        self._uploads = UploadTracker()
        self._clear_handles: dict[str, asyncio.TimerHandle] = {}
        self._rows = settings.grid_rows_per_column

    @property
    def network_enabled(self) -> bool:
        return self._transport is not None

    # --- Queries --------------------------------------------------------------

    def get_item(self, item_id: str) -> DesktopItem | None:
        for item in self.items:
            if item.id == item_id:
                return item
        return None

    def get_items_by_parent(
        self, parent_id: str | None, include_trashed: bool = False,
    ) -> list[DesktopItem]:
        return [
            item for item in self.items
            if item.parent_id == parent_id and (include_trashed or not item.is_trashed)
        ]

    def get_trashed_items(self) -> list[DesktopItem]:
        return [item for item in self.items if item.is_trashed]

    def get_trash_count(self) -> int:
        return sum(1 for item in self.items if item.is_trashed)

    def get_sort_preference(self, parent_id: str | None) -> SortKey | None:
        return self._preferences.get(parent_id)

    @property
    def uploads(self) -> list[UploadProgress]:
        return self._uploads.snapshot()

    def sync_status_of(self, item_id: str) -> SyncStatus:
        return self._scheduler.status_of(item_id)

    @property
    def has_pending_sync(self) -> bool:
        return self._scheduler.has_work

    # --- Selection (local only) -------------------------------------------------

    def select_item(self, item_id: str, add_to_selection: bool = False) -> None:
        if add_to_selection:
            self.selected_ids = self.selected_ids | {item_id}
        else:
            self.selected_ids = {item_id}

    def select_all(self, parent_id: str | None = None) -> None:
        self.selected_ids = {item.id for item in self.get_items_by_parent(parent_id)}

    def deselect_all(self) -> None:
        self.selected_ids = set()

    def is_selected(self, item_id: str) -> bool:
        return item_id in self.selected_ids

    # --- Basic mutations --------------------------------------------------------

    def set_items(self, items: Iterable[DesktopItem]) -> None:
        """Replace the whole collection (server truth or a reset)."""
        self.items = list(items)
        known = {item.id for item in self.items}
        self.selected_ids = self.selected_ids & known
        self._write_cache()

    def add_item(self, item: DesktopItem) -> None:
        if self.get_item(item.id) is not None:
            raise DuplicateItemError(item.id)
        self.items = [*self.items, item]
        self._write_cache()
        self._remote(
            "create_item", lambda: self._transport.create_item(item), (item.id,),
            f'Could not create "{item.name}".', "Create Failed",
        )

    def create_item(
        self,
        item_type: ItemType | str,
        name: str,
        parent_id: str | None = None,
        position: PositionLike | None = None,
        **payload: Any,
    ) -> DesktopItem:
        """Build a new item with a fresh id; auto-place it when no position is given."""
        self._check_target(parent_id)
        cell = self._place(parent_id, position, operation="create_item")
        stamp = now_ms()
        try:
            item = DesktopItem(
                id=new_item_id(), type=item_type, name=name, parent_id=parent_id,
                position=cell, created_at=stamp, updated_at=stamp, **payload,
            )
        except PydanticValidationError as e:
            raise ValidationError(str(e), context=ErrorContext(operation="create_item"))
        self.add_item(item)
        return item

    def remove_item(self, item_id: str) -> bool:
        """Permanently delete an item, and a folder's whole subtree with it.

        Returns False if the item was not present.
        """
        if self.get_item(item_id) is None:
            return False
        removed = collect_descendants(self.items, item_id) | {item_id}
        # Descendants are deleted before their folder.
        order = [item.id for item in self.items if item.id in removed and item.id != item_id]
        order.append(item_id)
        self.items = [item for item in self.items if item.id not in removed]
        self.selected_ids = self.selected_ids - removed
        for removed_id in removed:
            self._scheduler.cancel(_position_key(removed_id))
        self._scheduler.forget(removed)
        self._write_cache()
        if len(removed) > 1:
            logger.info("Removed folder subtree", extra={"item_id": item_id, "count": len(removed)})

        async def delete_all() -> None:
            for removed_id in order:
                await self._transport.delete_item(removed_id)

        self._remote(
            "delete_item", delete_all, tuple(order),
            "Could not delete item.", "Delete Failed",
        )
        return True

    def update_item(self, item_id: str, **fields: Any) -> DesktopItem:
        """Merge fields into one item and send them as a single patch."""
        item = self._require(item_id)
        for locked in _LOCKED_FIELDS:
            if locked in fields:
                raise ValidationError(f"{locked} cannot be changed with update_item", locked)
        fields.pop("updated_at", None)
        new_parent = fields.get("parent_id", item.parent_id)
        if new_parent != item.parent_id:
            self._check_target(new_parent, moving=(item_id,))
        if new_parent != item.parent_id or "position" in fields:
            fields["position"] = self._place(
                new_parent, fields.get("position", item.position),
                operation="update_item", exclude_id=item_id,
            )
            self._scheduler.cancel(_position_key(item_id))
        try:
            updated = item.with_updates(**fields, updated_at=self._stamp(item))
        except PydanticValidationError as e:
            raise ValidationError(str(e), context=ErrorContext(item_id=item_id))
        self._replace({item_id: updated})
        self._write_cache()
        patch = ItemPatch.of(
            item_id, **{key: getattr(updated, key, value) for key, value in fields.items()},
        )
        self._remote(
            "update_item", lambda: self._transport.update_items([patch]), (item_id,),
            "Could not save changes.", "Sync Failed",
        )
        return updated

    def rename_item(self, item_id: str, name: str) -> DesktopItem:
        return self.update_item(item_id, name=name)

    # --- Movement ---------------------------------------------------------------

    def move_item(self, item_id: str, position: PositionLike) -> None:
        """Optimistic position write; the remote write waits for the drag to settle."""
        item = self._require(item_id)
        cell = GridPosition.of(position)
        self._replace({
            item_id: item.model_copy(
                update={"position": cell, "updated_at": self._stamp(item)},
            ),
        })
        if not self.network_enabled:
            return

        async def send_position() -> None:
            try:
                await self._transport.update_items([ItemPatch.of(item_id, position=cell)])
            finally:
                self._write_cache()

        self._scheduler.debounce(
            _position_key(item_id),
            self._settings.position_debounce_ms / 1000,
            "position_update", send_position, (item_id,),
            on_error=lambda e: self._report(e, "Could not save changes.", "Sync Failed"),
        )

    def drop_item(
        self,
        item_id: str,
        target: PositionLike,
        parent_id: str | None = _UNCHANGED,
    ) -> GridPosition:
        """End of a drag: settle on the nearest free cell, optionally in a new container."""
        item = self._require(item_id)
        new_parent = item.parent_id if parent_id is _UNCHANGED else parent_id
        if new_parent != item.parent_id:
            self._check_target(new_parent, moving=(item_id,))
        cell = find_nearest_free(
            self.items, new_parent, GridPosition.of(target), item_id, self._rows,
        )
        self._sounds.play(SoundKind.DROP)
        if new_parent == item.parent_id:
            self.move_item(item_id, cell)
            return cell

        self._scheduler.cancel(_position_key(item_id))
        self._replace({
            item_id: item.model_copy(update={
                "parent_id": new_parent, "position": cell,
                "updated_at": self._stamp(item),
            }),
        })
        self._write_cache()
        patch = ItemPatch.of(item_id, parent_id=new_parent, position=cell)
        self._remote(
            "move_item", lambda: self._transport.update_items([patch]), (item_id,),
            "Could not move item.", "Move Failed",
        )
        return cell

    # --- Arrangement --------------------------------------------------------------

    def sort(self, parent_id: str | None, key: SortKey | str) -> None:
        """Reposition the container by `key` and remember the choice."""
        self._arrange(parent_id, SortKey(key))
        self._preferences.set(parent_id, SortKey(key))

    def sort_by_name(self, parent_id: str | None = None) -> None:
        self.sort(parent_id, SortKey.NAME)

    def sort_by_date(self, parent_id: str | None = None) -> None:
        self.sort(parent_id, SortKey.DATE)

    def sort_by_kind(self, parent_id: str | None = None) -> None:
        self.sort(parent_id, SortKey.KIND)

    def clean_up(self, parent_id: str | None = None) -> None:
        """Tidy the container alphabetically without recording a preference."""
        self._arrange(parent_id, SortKey.NAME)

    def _arrange(self, parent_id: str | None, key: SortKey) -> None:
        new_items, patches = sort_container(
            self.items, parent_id, key, now_ms(), self._rows,
        )
        if not patches:
            return
        self.items = new_items
        ids = tuple(patch.id for patch in patches)
        for item_id in ids:
            self._scheduler.cancel(_position_key(item_id))
        self._write_cache()
        logger.info(
            f"Sorted container by {key.value}",
            extra={"container_id": parent_id, "count": len(patches)},
        )
        self._remote(
            "sort_items", lambda: self._transport.update_items(patches), ids,
            "Could not save the new arrangement.", "Sync Failed",
        )

    # --- Copy / cut / paste -----------------------------------------------------

    async def duplicate_items(
        self, item_ids: Iterable[str], target_parent_id: str | None,
    ) -> list[DesktopItem]:
        """Shallow copies in the target container, added locally in one step."""
        self._check_target(target_parent_id)
        originals = [item for item in map(self.get_item, item_ids) if item is not None]
        if not originals:
            return []
        cells = allocate(self.items, target_parent_id, len(originals), rows=self._rows)
        stamp = now_ms()
        duplicates = [
            original.model_copy(update={
                "id": new_item_id(),
                "name": f"{original.name} copy",
                "parent_id": target_parent_id,
                "position": cell,
                "created_at": stamp,
                "updated_at": stamp,
                "is_trashed": False,
                "trashed_at": None,
            }, deep=True)
            for original, cell in zip(originals, cells)
        ]
        self.items = [*self.items, *duplicates]
        self._write_cache()
        if not self.network_enabled:
            return duplicates

        failed: list[Exception] = []
        tasks = [
            self._scheduler.submit(
                "duplicate_item",
                lambda dup=dup: self._transport.create_item(dup),
                (dup.id,),
                on_error=failed.append,
            )
            for dup in duplicates
        ]
        await asyncio.gather(*tasks, return_exceptions=True)
        if failed:
            self._report(
                failed[0],
                f"Could not create {len(failed)} of {len(duplicates)} copies.",
                "Duplicate Failed",
            )
        return duplicates

    async def paste_items(
        self, item_ids: Iterable[str], is_cut: bool, target_parent_id: str | None,
    ) -> list[DesktopItem]:
        """Cut moves items into the target; copy duplicates them there."""
        item_ids = list(item_ids)
        if not is_cut:
            return await self.duplicate_items(item_ids, target_parent_id)

        self._check_target(target_parent_id, moving=item_ids)
        moving = [
            item for item in map(self.get_item, item_ids)
            if item is not None and not item.is_trashed
            and item.parent_id != target_parent_id
        ]
        if not moving:
            return []
        cells = allocate(
            self.items, target_parent_id, len(moving),
            exclude_ids=[item.id for item in moving], rows=self._rows,
        )
        moved: dict[str, DesktopItem] = {}
        patches: list[ItemPatch] = []
        for item, cell in zip(moving, cells):
            self._scheduler.cancel(_position_key(item.id))
            moved[item.id] = item.model_copy(update={
                "parent_id": target_parent_id, "position": cell,
                "updated_at": self._stamp(item),
            })
            patches.append(ItemPatch.of(item.id, parent_id=target_parent_id, position=cell))
        self._replace(moved)
        self._write_cache()
        self._remote(
            "move_items", lambda: self._transport.update_items(patches), tuple(moved),
            "Could not move items.", "Move Failed",
        )
        return list(moved.values())

    async def paste_clipboard(
        self, clipboard: Clipboard, target_parent_id: str | None,
    ) -> list[DesktopItem]:
        """Paste a core.clipboard.Clipboard; a cut is consumed by the paste."""
        if not clipboard.has_items:
            return []
        entry = clipboard.entry
        pasted = await self.paste_items(list(entry.item_ids), entry.is_cut, target_parent_id)
        if entry.is_cut:
            clipboard.clear()
        return pasted

    # --- Trash --------------------------------------------------------------------

    def move_to_trash(self, item_ids: Iterable[str]) -> set[str]:
        """Trash the items and every descendant of trashed folders."""
        cascade = resolve_cascade(self.items, item_ids)
        if not cascade:
            return cascade
        stamp = now_ms()
        trashed: dict[str, DesktopItem] = {}
        for item in self.items:
            if item.id in cascade and not item.is_trashed:
                trashed[item.id] = item.model_copy(update={
                    "is_trashed": True, "trashed_at": stamp,
                    "updated_at": max(stamp, item.updated_at),
                })
                self._scheduler.cancel(_position_key(item.id))
        self.selected_ids = self.selected_ids - cascade
        if not trashed:
            return cascade
        self._replace(trashed)
        self._write_cache()
        self._sounds.play(SoundKind.TRASH)
        logger.info("Moved items to trash", extra={"count": len(trashed)})
        patches = [
            ItemPatch.of(item_id, is_trashed=True, trashed_at=stamp)
            for item_id in trashed
        ]
        self._remote(
            "trash_items", lambda: self._transport.update_items(patches), tuple(trashed),
            "Could not move items to the trash.", "Sync Failed",
        )
        return cascade

    def restore_from_trash(self, item_ids: Iterable[str]) -> list[DesktopItem]:
        """Restore exactly the given ids. Descendants stay trashed."""
        requested = set(item_ids)
        targets = [item for item in self.items if item.id in requested and item.is_trashed]
        if not targets:
            return []
        restoring = {item.id for item in targets}
        stamp = now_ms()
        restored: dict[str, DesktopItem] = {}
        patches: list[ItemPatch] = []
        for item in targets:
            # Later items in the batch see earlier restores when picking cells.
            view = [restored.get(i.id, i) for i in self.items]
            parent_id = item.parent_id
            if self._has_trashed_ancestor(view, item, restoring):
                parent_id = None
            others = [i for i in view if i.id != item.id]
            cell = find_nearest_free(others, parent_id, item.position, rows=self._rows)
            restored[item.id] = item.model_copy(update={
                "is_trashed": False, "trashed_at": None, "parent_id": parent_id,
                "position": cell, "updated_at": max(stamp, item.updated_at),
            })
            fields: dict[str, Any] = {"is_trashed": False, "trashed_at": None}
            if cell != item.position:
                fields["position"] = cell
            if parent_id != item.parent_id:
                fields["parent_id"] = parent_id
            patches.append(ItemPatch.of(item.id, **fields))
        self._replace(restored)
        self._write_cache()
        self._remote(
            "restore_items", lambda: self._transport.update_items(patches), tuple(restored),
            "Could not restore items.", "Sync Failed",
        )
        return list(restored.values())

    def empty_trash(self) -> int:
        """Permanently drop every trashed item locally and once remotely."""
        trashed_ids = {item.id for item in self.items if item.is_trashed}
        if not trashed_ids:
            return 0
        self.items = [item for item in self.items if item.id not in trashed_ids]
        self.selected_ids = self.selected_ids - trashed_ids
        for item_id in trashed_ids:
            self._scheduler.cancel(_position_key(item_id))
        self._scheduler.forget(trashed_ids)
        self._write_cache()
        self._sounds.play(SoundKind.EMPTY_TRASH)
        logger.info("Emptied trash", extra={"count": len(trashed_ids)})
        self._remote(
            "empty_trash", lambda: self._transport.empty_trash(), (),
            "Could not empty the trash.", "Empty Trash Failed",
        )
        return len(trashed_ids)

    # --- Uploads ------------------------------------------------------------------

    async def upload_file(
        self,
        file: UploadedFile,
        parent_id: str | None,
        position: PositionLike | None = None,
    ) -> DesktopItem | None:
        """Validate, upload and add the server-created item. None on failure."""
        if not self.network_enabled:
            logger.warning("Upload not available in offline mode")
            return None
        validate_upload(file, self._settings.upload_max_bytes)
        self._check_target(parent_id)
        cell = self._place(parent_id, position, operation="upload_file")

        upload_id = self._uploads.start(file.filename)
        logger.info(
            f"Uploading {file.filename}",
            extra={"upload_id": upload_id, "container_id": parent_id},
        )
        try:
            item = await self._transport.upload_file(
                file, parent_id, cell,
                lambda percent: self._uploads.progress(upload_id, percent),
            )
        except DeskStoreError as e:
            self._uploads.fail(upload_id, e.user_message())
            logger.error(
                f"Upload of {file.filename} failed: {e.message}",
                extra={"upload_id": upload_id, "error_code": e.code},
            )
            self._report(e, f'Could not upload "{file.filename}".', "Upload Failed")
            return None

        if self.get_item(item.id) is None:
            self.items = [*self.items, item]
        else:
            self._replace({item.id: item})
        self._write_cache()
        self._uploads.complete(upload_id)
        self._clear_handles[upload_id] = asyncio.get_running_loop().call_later(
            self._settings.upload_clear_after_ms / 1000, self.clear_upload, upload_id,
        )
        return item

    def clear_upload(self, upload_id: str) -> None:
        handle = self._clear_handles.pop(upload_id, None)
        if handle is not None:
            handle.cancel()
        self._uploads.clear(upload_id)

    # --- Remote load --------------------------------------------------------------

    async def load_desktop(self) -> bool:
        """Replace items with server truth. Returns False when the fetch failed."""
        if not self.network_enabled:
            return True
        has_cache = len(self.items) > 0
        if not has_cache:
            self.loading = True
        try:
            response = await self._transport.fetch_desktop()
        except DeskStoreError as e:
            self.loading = False
            logger.error(f"Failed to load desktop: {e.message}", extra={"error_code": e.code})
            if not has_cache:
                self._report(e, "Could not load your desktop.", "Loading Failed")
            return False
        self.set_items(response.items)
        self.loading = False
        logger.info("Desktop loaded", extra={"count": len(self.items)})
        return True

    # --- Lifecycle ----------------------------------------------------------------

    async def flush(self) -> None:
        """Send every pending write now and wait for all of them."""
        await self._scheduler.flush()

    async def aclose(self) -> None:
        for handle in self._clear_handles.values():
            handle.cancel()
        self._clear_handles.clear()
        await self._scheduler.flush()
        await self._scheduler.aclose()

    # --- Internals ----------------------------------------------------------------

    def _require(self, item_id: str) -> DesktopItem:
        item = self.get_item(item_id)
        if item is None:
            raise ItemNotFoundError(item_id)
        return item

    def _replace(self, replacements: dict[str, DesktopItem]) -> None:
        self.items = [replacements.get(item.id, item) for item in self.items]

    @staticmethod
    def _stamp(item: DesktopItem) -> int:
        return max(now_ms(), item.updated_at, item.created_at)

    def _place(
        self,
        parent_id: str | None,
        position: PositionLike | None,
        operation: str,
        exclude_id: str | None = None,
    ) -> GridPosition:
        """Free cell for an item entering `parent_id`: the first slot, or the
        free cell nearest the requested position."""
        if position is None:
            exclude = () if exclude_id is None else (exclude_id,)
            return allocate(self.items, parent_id, 1, exclude, self._rows)[0]
        try:
            target = GridPosition.of(position)
        except PydanticValidationError as e:
            raise ValidationError(
                str(e), "position", context=ErrorContext(operation=operation),
            )
        return find_nearest_free(self.items, parent_id, target, exclude_id, self._rows)

    def _check_target(
        self, target_id: str | None, moving: Iterable[str] = (),
    ) -> None:
        """Target must be root or a live folder outside the moved subtrees."""
        if target_id is None:
            return
        target = self.get_item(target_id)
        if target is None or not target.is_folder or target.is_trashed:
            raise InvalidTargetError(
                f"'{target_id}' is not a folder that can hold items", target_id,
            )
        for moving_id in moving:
            if target_id == moving_id or target_id in collect_descendants(self.items, moving_id):
                raise InvalidTargetError(
                    "A folder cannot be moved into itself or one of its subfolders",
                    target_id,
                )

    @staticmethod
    def _has_trashed_ancestor(
        items: list[DesktopItem], item: DesktopItem, restoring: set[str],
    ) -> bool:
        by_id = {i.id: i for i in items}
        seen: set[str] = set()
        parent_id = item.parent_id
        while parent_id is not None and parent_id not in seen:
            seen.add(parent_id)
            parent = by_id.get(parent_id)
            if parent is None:
                return False
            if parent.is_trashed and parent.id not in restoring:
                return True
            parent_id = parent.parent_id
        return False

    def _write_cache(self) -> None:
        if self._cache is not None:
            self._cache.schedule_write(self.items)

    def _remote(
        self, label: str, factory, item_ids: tuple[str, ...],
        failure_message: str, title: str,
    ) -> None:
        if not self.network_enabled:
            return
        self._scheduler.submit(
            label, factory, item_ids,
            on_error=lambda e: self._report(e, failure_message, title),
        )

    def _report(self, error: Exception, message: str, title: str) -> None:
        detail = (
            error.user_message() if isinstance(error, DeskStoreError)
            else "Please try again."
        )
        self._notifier.report_error(f"{message} {detail}", title)
