"""Host interface for docmap.

Provides abstractions for host platform operations (environment, time).
"""

from .environment import get_env, get_db_path
from .time import now_utc

__all__ = [
    "get_env",
    "get_db_path",
    "now_utc",
]
