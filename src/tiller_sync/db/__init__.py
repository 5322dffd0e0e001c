"""Local SQLite datastore: schema migrations and typed access."""

from .migrations import CURRENT_VERSION, MIGRATIONS, Migration, run_migrations
from .store import Db, open_read_only

__all__ = [
    "CURRENT_VERSION",
    "Db",
    "MIGRATIONS",
    "Migration",
    "open_read_only",
    "run_migrations",
]
