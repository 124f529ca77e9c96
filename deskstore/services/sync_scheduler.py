"""Sync Scheduler - immediate and per-key debounced background writes.

Invariants:
    - submit() starts the write right away as an asyncio task
    - debounce() keeps at most one pending task per key; scheduling the key again
      cancels the previous task before its write ever starts
    - Once a debounced write has started it is in flight and can no longer be
      replaced; a newer debounce for the same key waits its own quiet period
    - Failures are caught at the task boundary, logged, and handed to the
      caller's on_error callback; nothing is retried and nothing escapes into
      the event loop unobserved
    - Per-item status: PENDING while any write for the item is pending or in
      flight, FAILED after a failed write until the next successful one

Design Decisions:
    - One scheduler per store (no module-level timer map)
    - Callers pass coroutine factories, not coroutines: a cancelled debounce
      never creates the coroutine, so no "never awaited" warnings
    - Must be driven from inside a running event loop; the store's
      synchronous mutations rely on asyncio.get_running_loop()
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field

from deskstore.core.domain_types import SyncStatus
from deskstore.core.errors import DeskStoreError

logger = logging.getLogger(__name__)

WriteFactory = Callable[[], Awaitable[None]]
ErrorCallback = Callable[[Exception], None]


@dataclass
class _PendingWrite:
    label: str
    factory: WriteFactory
    item_ids: tuple[str, ...]
    on_error: ErrorCallback | None
    task: asyncio.Task | None = field(default=None)


class SyncScheduler:
    """Runs remote and cache writes in the background for one store."""

    def __init__(self):
        self._pending: dict[str, _PendingWrite] = {}
        self._inflight: set[asyncio.Task] = set()
        self._outstanding: dict[str, int] = {}
        self._failed: set[str] = set()

    # --- Scheduling ---------------------------------------------------------

    def submit(
        self,
        label: str,
        factory: WriteFactory,
        item_ids: Iterable[str] = (),
        on_error: ErrorCallback | None = None,
    ) -> asyncio.Task:
        """Start a write now."""
        write = _PendingWrite(label, factory, tuple(item_ids), on_error)
        self._begin(write.item_ids)
        return self._spawn(write)

    def debounce(
        self,
        key: str,
        delay: float,
        label: str,
        factory: WriteFactory,
        item_ids: Iterable[str] = (),
        on_error: ErrorCallback | None = None,
    ) -> None:
        """Run the write after `delay` seconds without another call for `key`."""
        write = _PendingWrite(label, factory, tuple(item_ids), on_error)
        previous = self._pending.pop(key, None)
        if previous is not None:
            previous.task.cancel()
            self._end(previous.item_ids, failed=None)
            logger.debug(
                f"Replaced pending {previous.label}",
                extra={"debounce_key": key},
            )
        self._begin(write.item_ids)
        write.task = asyncio.get_running_loop().create_task(
            self._fire_after(key, delay, write),
        )
        self._pending[key] = write

    def cancel(self, key: str) -> bool:
        """Drop a pending debounce without running it."""
        write = self._pending.pop(key, None)
        if write is None:
            return False
        write.task.cancel()
        self._end(write.item_ids, failed=None)
        return True

    # --- Introspection ------------------------------------------------------

    def is_pending(self, key: str) -> bool:
        return key in self._pending

    @property
    def pending_keys(self) -> list[str]:
        return list(self._pending)

    @property
    def has_work(self) -> bool:
        return bool(self._pending or self._inflight)

    def status_of(self, item_id: str) -> SyncStatus:
        if self._outstanding.get(item_id, 0) > 0:
            return SyncStatus.PENDING
        if item_id in self._failed:
            return SyncStatus.FAILED
        return SyncStatus.SYNCED

    def forget(self, item_ids: Iterable[str]) -> None:
        """Drop failure markers for items that no longer exist locally."""
        self._failed.difference_update(item_ids)

    # --- Lifecycle ----------------------------------------------------------

    async def flush(self) -> None:
        """Fire every pending debounce now and wait until all writes settle."""
        while self._pending or self._inflight:
            for key in list(self._pending):
                write = self._pending.pop(key)
                write.task.cancel()
                self._spawn(write)
            if self._inflight:
                await asyncio.gather(*list(self._inflight), return_exceptions=True)

    async def aclose(self) -> None:
        """Cancel everything still scheduled or running."""
        tasks = [w.task for w in self._pending.values()] + list(self._inflight)
        self._pending.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._inflight.clear()

    # --- Internals ----------------------------------------------------------

    def _spawn(self, write: _PendingWrite) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(self._run(write))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return task

    async def _fire_after(self, key: str, delay: float, write: _PendingWrite) -> None:
        await asyncio.sleep(delay)
        if self._pending.get(key) is not write:
            return
        del self._pending[key]
        task = asyncio.current_task()
        self._inflight.add(task)
        try:
            await self._run(write)
        finally:
            self._inflight.discard(task)

    async def _run(self, write: _PendingWrite) -> None:
        error: Exception | None = None
        failed: bool | None = None
        try:
            await write.factory()
            failed = False
        except DeskStoreError as e:
            error, failed = e, True
            logger.error(
                f"{write.label} failed: {e.message}",
                extra={
                    "operation": write.label, "error_code": e.code,
                    "item_id": ",".join(write.item_ids) or None,
                    "sync_status": SyncStatus.FAILED.value,
                },
            )
        except Exception as e:
            error, failed = e, True
            logger.error(
                f"{write.label} failed unexpectedly: {e}",
                exc_info=True,
                extra={"operation": write.label, "sync_status": SyncStatus.FAILED.value},
            )
        finally:
            self._end(write.item_ids, failed=failed)
        if error is not None and write.on_error is not None:
            write.on_error(error)

    def _begin(self, item_ids: tuple[str, ...]) -> None:
        for item_id in item_ids:
            self._outstanding[item_id] = self._outstanding.get(item_id, 0) + 1

    def _end(self, item_ids: tuple[str, ...], failed: bool | None) -> None:
        """Release outstanding counts. failed=None means cancelled (no verdict)."""
        for item_id in item_ids:
            remaining = self._outstanding.get(item_id, 0) - 1
            if remaining > 0:
                self._outstanding[item_id] = remaining
            else:
                self._outstanding.pop(item_id, None)
            if failed:
                self._failed.add(item_id)
            elif failed is False:
                self._failed.discard(item_id)
