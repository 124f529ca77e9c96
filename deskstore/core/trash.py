"""Trash Cascade Resolver - expands trash requests to whole subtrees.

Invariants:
    - resolve_cascade(R) = R (known ids) + every item reachable from a folder in R
      by following parent_id edges downward, regardless of trashed state
    - Each id is visited at most once, so traversal terminates even on a
      corrupted parent graph that contains a cycle
    - Cost is proportional to the visited subtree plus one index build

Design Decisions:
    - Breadth-first over an explicit parent -> children index, built once per call,
      instead of rescanning the collection per folder
    - Restore is deliberately NOT cascading; there is no restore counterpart here
"""

from collections import deque
from collections.abc import Iterable, Sequence

from deskstore.core.domain_types import ItemType
from deskstore.schemas.item import DesktopItem


def build_children_index(items: Sequence[DesktopItem]) -> dict[str | None, list[str]]:
    """Map each parent id (None = root) to its children ids, trashed included."""
    index: dict[str | None, list[str]] = {}
    for item in items:
        index.setdefault(item.parent_id, []).append(item.id)
    return index


def _walk(
    start: Iterable[str],
    index: dict[str | None, list[str]],
    seen: set[str],
) -> set[str]:
    queue = deque(start)
    while queue:
        parent = queue.popleft()
        for child in index.get(parent, ()):
            if child not in seen:
                seen.add(child)
                queue.append(child)
    return seen


def resolve_cascade(
    items: Sequence[DesktopItem], requested_ids: Iterable[str],
) -> set[str]:
    """Full set of ids to mark trashed for a trash request."""
    by_id = {item.id: item for item in items}
    requested = [item_id for item_id in requested_ids if item_id in by_id]
    result = set(requested)
    folders = [
        item_id for item_id in requested
        if by_id[item_id].type == ItemType.FOLDER
    ]
    if not folders:
        return result
    return _walk(folders, build_children_index(items), result)


def collect_descendants(
    items: Sequence[DesktopItem], folder_id: str,
) -> set[str]:
    """Every transitive child of `folder_id`, excluding the folder itself."""
    descendants = _walk([folder_id], build_children_index(items), set())
    descendants.discard(folder_id)
    return descendants
