import sqlite3
from pathlib import Path
from typing import Any, Mapping

SETTINGS_TABLE = "radar_settings"


def connect(db_path: str | Path) -> sqlite3.Connection:
    """
    Open the settings database (WAL, short busy timeout) so a rerunning
    dashboard and a second browser tab do not lock each other out.
    """
    db_file = Path(db_path)
    if not db_file.is_absolute():
        db_file = Path.cwd() / db_file
    db_file.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_file)
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    conn.execute("PRAGMA busy_timeout=5000;")
    return conn


def _ensure_table(conn: sqlite3.Connection) -> None:
    conn.execute(
        f"""
        CREATE TABLE IF NOT EXISTS {SETTINGS_TABLE} (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL
        )
        """
    )


def get_settings(conn: sqlite3.Connection, prefix: str) -> dict[str, str]:
    """All settings whose key starts with `prefix`, keyed without it."""
    _ensure_table(conn)
    rows = conn.execute(
        f"SELECT key, value FROM {SETTINGS_TABLE} WHERE substr(key, 1, ?) = ?",
        (len(prefix), prefix),
    ).fetchall()
    return {key[len(prefix):]: value for key, value in rows}


def set_settings(conn: sqlite3.Connection, values: Mapping[str, Any]) -> None:
    _ensure_table(conn)
    conn.executemany(
        f"""
        INSERT INTO {SETTINGS_TABLE} (key, value)
        VALUES (?, ?)
        ON CONFLICT(key) DO UPDATE SET
          value=excluded.value
        """,
        [(key, _encode(value)) for key, value in values.items()],
    )
    conn.commit()


def _encode(value: Any) -> str:
    if isinstance(value, bool):
        return "1" if value else "0"
    return str(value)
