"""Services Layer - the item store and the async machinery it drives.

Invariants:
    - Only services/ schedules asyncio tasks
    - Store mutations are synchronous; network and cache IO is scheduled, never awaited inline
"""
