"""Demo Items - seed collection used when no desktop API is configured.

Invariants:
    - Ids are fixed strings so demo sessions are reproducible
    - Every parent_id references a folder in the same collection
"""

from deskstore.core.domain_types import ItemType
from deskstore.schemas.item import DesktopItem, GridPosition


def demo_items(stamp: int) -> list[DesktopItem]:
    """Fresh demo desktop, every item timestamped `stamp`."""

    def make(item_id: str, kind: ItemType, name: str, x: int, y: int,
             parent_id: str | None = None, **payload) -> DesktopItem:
        return DesktopItem(
            id=item_id, type=kind, name=name, parent_id=parent_id,
            position=GridPosition(x=x, y=y), created_at=stamp,
            updated_at=stamp, **payload,
        )

    return [
        make("folder-documents", ItemType.FOLDER, "Documents", 0, 0),
        make("folder-images", ItemType.FOLDER, "Images", 0, 1),
        make("text-readme", ItemType.TEXT, "ReadMe.txt", 0, 2,
             text_content="Welcome to your desktop!\n\nYour corner of the internet."),
        make("image-sample", ItemType.IMAGE, "Sample.png", 1, 0,
             mime_type="image/png"),
        make("link-website", ItemType.LINK, "My Website", 1, 1,
             url="https://example.com"),
        make("text-notes", ItemType.TEXT, "Notes.txt", 0, 0,
             parent_id="folder-documents", text_content="My personal notes..."),
    ]
