"""Item Schemas - the DesktopItem entity and its grid coordinate.

Invariants:
    - GridPosition is an immutable, hashable integer cell; both axes >= 0
    - DesktopItem.updated_at >= created_at (enforced on validation)
    - Payload fields the store does not know are kept verbatim (extra="allow")
    - to_wire() is the only serialization used for the API and the local cache

Design Decisions:
    - camelCase aliases with populate_by_name: server JSON validates as-is,
      Python code uses snake_case attribute names
    - Items are replaced, never mutated in place: the store swaps in model_copy()
      or with_updates() results so readers always see consistent snapshots
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_validator
from pydantic.alias_generators import to_camel

from deskstore.core.domain_types import ItemType

_JSONABLE = TypeAdapter(Any)


class GridPosition(BaseModel):
    """Integer layout cell inside a container."""
    model_config = ConfigDict(frozen=True)

    x: int = Field(ge=0)
    y: int = Field(ge=0)

    @classmethod
    def of(cls, value: "GridPosition | tuple[int, int] | dict") -> "GridPosition":
        """Coerce tuples and wire dicts into a GridPosition."""
        if isinstance(value, GridPosition):
            return value
        if isinstance(value, tuple):
            return cls(x=value[0], y=value[1])
        return cls.model_validate(value)

    def as_tuple(self) -> tuple[int, int]:
        return (self.x, self.y)


class DesktopItem(BaseModel):
    """A single file, folder, link or widget on the desktop."""
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="allow",
    )

    id: str = Field(min_length=1)
    type: ItemType
    name: str
    parent_id: str | None = None
    position: GridPosition = GridPosition(x=0, y=0)
    is_public: bool = True
    created_at: int = 0
    updated_at: int = 0

    # Trash state
    is_trashed: bool = False
    trashed_at: int | None = None

    # Type-specific payload (opaque to the store)
    r2_key: str | None = None
    thumbnail_key: str | None = None
    mime_type: str | None = None
    file_size: int | None = None
    text_content: str | None = None
    url: str | None = None
    custom_icon: str | None = None
    widget_type: str | None = None
    widget_config: dict | None = None

    @model_validator(mode="after")
    def updated_not_before_created(self) -> "DesktopItem":
        if self.updated_at < self.created_at:
            self.updated_at = self.created_at
        return self

    @property
    def is_folder(self) -> bool:
        return self.type == ItemType.FOLDER

    def with_updates(self, **fields: Any) -> "DesktopItem":
        """Validated copy with the given snake_case fields merged in."""
        return type(self).model_validate(self.model_dump() | fields)

    def to_wire(self) -> dict:
        """JSON-safe camelCase dict, None fields omitted."""
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)


def wire_updates(fields: dict[str, Any]) -> dict[str, Any]:
    """Convert snake_case field updates to the camelCase JSON patch body."""
    return {
        to_camel(key): _JSONABLE.dump_python(value, mode="json")
        for key, value in fields.items()
    }
