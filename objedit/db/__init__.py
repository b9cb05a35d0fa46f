"""Database layer package.

Public re-exports so callers can write::

    from objedit.db import get_connection, init_db
    from objedit.db import objects
"""

from objedit.db.connection import get_connection
from objedit.db.migrations import init_db
from objedit.db import objects, tags

__all__ = ["get_connection", "init_db", "objects", "tags"]
