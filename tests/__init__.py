"""
DocQuery Test Suite.

This package contains:
- unit/: Unit tests (no collaborators)
- integration/: DocumentModel against in-memory collections and cache
- fakes.py: In-memory Collection / Queryable / cache stand-ins
"""
