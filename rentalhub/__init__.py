"""
RentalHub Backend — Application Package Initializer
=====================================================

What: Marks the `rentalhub` directory as a Python package.
Who:  Imported by Alembic, pytest, uvicorn and the seed/setup scripts.

Architecture Note:
    The backend keeps a layered layout:

    ┌─────────────────────────────────────┐
    │      Routes + Dependencies (API)    │  ← HTTP, auth, envelopes
    ├─────────────────────────────────────┤
    │         Services (Business Logic)   │  ← conflicts, pricing, ratings
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← Async SQLAlchemy sessions
    └─────────────────────────────────────┘

    Apart from the health probe, routes never issue SQL directly; queries
    live in services so they can be unit-tested against a mocked session.
"""

__version__ = "1.0.0"
