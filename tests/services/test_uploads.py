"""Uploads - tests for validation, progress tracking and store integration.

Tests cover:
    - validate_upload accepts the allowed types and rejects the rest
    - size limit enforcement
    - UploadTracker progress only moves forward
    - ItemStore.upload_file adds the server item and clears its progress entry
    - failed uploads mark the entry as error and notify once
    - offline stores refuse uploads
"""

import asyncio

import pytest

from deskstore.core.domain_types import UploadStatus
from deskstore.core.errors import UploadValidationError
from deskstore.schemas.item import GridPosition
from deskstore.schemas.sync import UploadedFile
from deskstore.services.uploads import UploadTracker, validate_upload

from tests.item_factory import make_folder, make_item


def _png(name="photo.png", size=64):
    return UploadedFile(filename=name, content_type="image/png", data=b"\x89" * size)


# ─── validation ──────────────────────────────────────────────────

@pytest.mark.parametrize("content_type", ["image/jpeg", "image/webp", "text/markdown"])
def test_allowed_types_pass(content_type):
    validate_upload(UploadedFile(filename="f", content_type=content_type, data=b"x"))


def test_rejected_type():
    file = UploadedFile(filename="a.exe", content_type="application/x-msdownload", data=b"x")
    with pytest.raises(UploadValidationError) as exc:
        validate_upload(file)
    assert exc.value.field == "content_type"
    assert exc.value.code == "UPLOAD_REJECTED"


def test_too_large():
    with pytest.raises(UploadValidationError) as exc:
        validate_upload(_png(size=2 * 1024 * 1024 + 1), max_bytes=2 * 1024 * 1024)
    assert exc.value.field == "size"
    assert "2MB" in exc.value.message


# ─── tracker ─────────────────────────────────────────────────────

def test_tracker_progress_is_monotonic():
    tracker = UploadTracker()
    upload_id = tracker.start("a.png")
    tracker.progress(upload_id, 60)
    tracker.progress(upload_id, 30)
    tracker.progress(upload_id, 250)
    assert tracker.get(upload_id).progress == 100


def test_tracker_ignores_progress_after_failure():
    tracker = UploadTracker()
    upload_id = tracker.start("a.png")
    tracker.fail(upload_id, "quota")
    tracker.progress(upload_id, 80)
    entry = tracker.get(upload_id)
    assert entry.status == UploadStatus.ERROR
    assert entry.progress == 0
    assert tracker.failed == [entry]


def test_tracker_clear():
    tracker = UploadTracker()
    upload_id = tracker.start("a.png")
    tracker.complete(upload_id)
    tracker.clear(upload_id)
    assert tracker.snapshot() == []


# ─── store integration ───────────────────────────────────────────

async def test_upload_adds_item_and_clears_progress(store, transport):
    store.set_items([make_item("a")])
    item = await store.upload_file(_png(), None)
    assert item is not None
    assert store.get_item(item.id) == item
    assert item.position == GridPosition(x=0, y=1)
    [entry] = store.uploads
    assert entry.status == UploadStatus.COMPLETE
    assert entry.progress == 100
    await asyncio.sleep(0.15)
    assert store.uploads == []


async def test_upload_into_folder_at_position(store, transport):
    store.set_items([make_folder("f")])
    item = await store.upload_file(_png(), "f", position=(2, 3))
    assert item.parent_id == "f"
    assert item.position == GridPosition(x=2, y=3)


async def test_upload_explicit_position_avoids_collision(store):
    store.set_items([make_item("a", x=2, y=3)])
    item = await store.upload_file(_png(), None, position=(2, 3))
    assert item.position != GridPosition(x=2, y=3)


async def test_upload_rejected_before_any_change(store, transport):
    bad = UploadedFile(filename="a.zip", content_type="application/zip", data=b"x")
    with pytest.raises(UploadValidationError):
        await store.upload_file(bad, None)
    assert store.uploads == []
    assert transport.calls_of("upload_file") == []


async def test_upload_respects_configured_limit(settings, store_factory):
    s = store_factory(settings.model_copy(update={"upload_max_bytes": 16}))
    with pytest.raises(UploadValidationError):
        await s.upload_file(_png(size=17), None)


async def test_upload_failure_reports(store, transport, notifier):
    transport.fail.add("upload_file")
    result = await store.upload_file(_png("big.png"), None)
    assert result is None
    assert store.items == []
    [entry] = store.uploads
    assert entry.status == UploadStatus.ERROR
    assert entry.error == "Storage quota exceeded"
    assert notifier.errors == [
        ('Could not upload "big.png". Storage quota exceeded', "Upload Failed"),
    ]


async def test_upload_offline_unavailable(offline_store):
    assert await offline_store.upload_file(_png(), None) is None
    assert offline_store.uploads == []
