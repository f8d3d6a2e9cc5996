from __future__ import annotations

import sqlite3
from pathlib import Path


def connect(db_path: Path) -> sqlite3.Connection:
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(db_path))
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    return conn


def init_schema(conn: sqlite3.Connection) -> None:
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS copy_state (
            repo TEXT NOT NULL,
            copy_tag TEXT NOT NULL,
            build_id TEXT NOT NULL,
            recorded_at TEXT NOT NULL,
            PRIMARY KEY (repo, copy_tag)
        );

        CREATE TABLE IF NOT EXISTS owl_bot_configs (
            repo TEXT NOT NULL,
            yaml_path TEXT NOT NULL,
            position INTEGER NOT NULL,
            yaml_json TEXT NOT NULL,
            commit_hash TEXT,
            PRIMARY KEY (repo, yaml_path)
        );
        """
    )
    conn.commit()
