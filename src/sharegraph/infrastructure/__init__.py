"""Infrastructure layer — database, directory adapters, store.

This layer depends on stdlib and third-party libs (SQLAlchemy, Alembic).
It must never import from services, commands, or output.
The service layer bridges between domain models and infrastructure.
"""
