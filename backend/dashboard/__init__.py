"""
Dashboard Backend — Application Package
=========================================

What: User dashboard API: session-verified profile picture upload and serving.
Who:  Imported by uvicorn (dashboard.main:app), Alembic and pytest.

Layers:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  HTTP concerns only
    ├─────────────────────────────────────┤
    │     Services (Business Logic)       │  sessions, blobs, user records
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  async SQLAlchemy sessions
    └─────────────────────────────────────┘
"""

__version__ = "1.0.0"
