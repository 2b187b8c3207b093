from __future__ import annotations

from functools import lru_cache
from pathlib import Path


SQL_DIR = Path(__file__).with_name("sql")


@lru_cache(maxsize=None)
def load_sql(name: str) -> str:
    """Read one statement bundled under ``app/repositories/sql``."""
    path = SQL_DIR / name
    if path.suffix != ".sql" or path.parent != SQL_DIR:
        raise ValueError(f"unsupported sql resource: {name}")
    statement = path.read_text(encoding="utf-8").strip()
    if not statement:
        raise ValueError(f"sql resource is empty: {name}")
    return statement
