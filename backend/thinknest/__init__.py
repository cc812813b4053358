"""
Think Nest Backend — Application Package
=========================================

What: REST backend for the Think Nest notes app (accounts, sessions, notes).
Who:  Imported by uvicorn (`thinknest.main:app`), Alembic and pytest.

Layering:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP, cookies, envelopes
    ├─────────────────────────────────────┤
    │         Services (Business Logic)   │  ← auth, notes, mail
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← Async SQLAlchemy sessions
    └─────────────────────────────────────┘

Routes never touch the database directly; services never touch HTTP objects.
"""

__version__ = "1.0.0"
