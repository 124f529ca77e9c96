"""Core Layer - pure desktop logic, no IO, no async, no DB.

Invariants:
    - No module in core/ imports from services/, infrastructure/, or db/
    - Functions take the item collection as an argument and return new values;
      they never mutate the list they are given
"""
