"""Pydantic Schemas - item model and sync payloads exchanged with the desktop API.

Invariants:
    - Wire format is camelCase (alias generator); Python attributes are snake_case
    - Domain types from core/ used for enum fields
"""
