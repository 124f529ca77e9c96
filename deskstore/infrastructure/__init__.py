"""Infrastructure Layer - HTTP transport, cache database, notifications, logging.

Invariants:
    - Every external failure is mapped to a DeskStoreError subclass (core/errors.py)
"""
