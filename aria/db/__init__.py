"""Database bootstrap for the assessment service.

Engine construction and a small SQL migrations runner applying the files
under `migrations/`. ORM models are not used; repositories in `aria/logic/`
issue SQL text directly.
"""

from aria.db.base import dispose_engine, get_engine
from aria.db.migrations_runner import apply_migrations

__all__ = [
    "get_engine",
    "dispose_engine",
    "apply_migrations",
]
