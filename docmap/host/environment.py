"""Environment variable access and path resolution.

Path Resolution Order for the SQLite document store:
1. Explicit environment variable (DOCMAP_DATABASE_PATH)
2. Shared data directory (DOCMAP_DATA_DIR/docmap.db)
3. Current directory (./docmap.db)
"""

import os
from pathlib import Path

DEFAULT_DB_FILENAME = "docmap.db"


def get_env(key: str, default: str | None = None) -> str | None:
    """Get environment variable.

    Args:
        key: Environment variable name
        default: Default value if not found

    Returns:
        Environment variable value or default
    """
    return os.environ.get(key, default)


def get_db_path() -> Path:
    """Resolve the SQLite database path.

    Returns:
        Path to database file

    Examples:
        >>> os.environ['DOCMAP_DATABASE_PATH'] = '/custom/app.db'
        >>> get_db_path()
        Path('/custom/app.db')

        >>> del os.environ['DOCMAP_DATABASE_PATH']
        >>> os.environ['DOCMAP_DATA_DIR'] = '/data'
        >>> get_db_path()
        Path('/data/docmap.db')
    """
    explicit_path = get_env("DOCMAP_DATABASE_PATH")
    if explicit_path:
        return Path(explicit_path)

    data_dir = get_env("DOCMAP_DATA_DIR")
    if data_dir:
        return Path(data_dir) / DEFAULT_DB_FILENAME

    return Path(f"./{DEFAULT_DB_FILENAME}")
