from __future__ import annotations

import base64
import json
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

from codegen_sync.common.storage import connect, init_schema
from codegen_sync.domain.entities import GithubRepo


def copy_tag_from(yaml_path: str, source_commit_hash: str) -> str:
    """Deterministic tag identifying one config copied from one source commit."""
    payload = json.dumps({"p": yaml_path, "h": source_commit_hash}, separators=(",", ":"))
    return base64.urlsafe_b64encode(payload.encode("utf-8")).decode("ascii")


def unpack_copy_tag(copy_tag: str) -> tuple[str, str]:
    raw = json.loads(base64.urlsafe_b64decode(copy_tag.encode("ascii")).decode("utf-8"))
    return str(raw["p"]), str(raw["h"])


class CopyStateStore(Protocol):
    """Ledger of copies already performed by earlier builds."""

    def record_build_for_copy(self, repo: GithubRepo, copy_tag: str, build_id: str) -> None:
        ...

    def find_build_for_copy(self, repo: GithubRepo, copy_tag: str) -> str | None:
        """Return the build id that performed the copy, or None."""
        ...


@dataclass
class SqliteCopyStateStore(CopyStateStore):
    db_path: Path
    _conn: sqlite3.Connection | None = field(default=None, init=False, repr=False)

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = connect(self.db_path)
            init_schema(self._conn)
        return self._conn

    def record_build_for_copy(self, repo: GithubRepo, copy_tag: str, build_id: str) -> None:
        conn = self._connection()
        # First build wins; records are never overwritten.
        conn.execute(
            """
            INSERT OR IGNORE INTO copy_state (repo, copy_tag, build_id, recorded_at)
            VALUES (?, ?, ?, ?)
            """,
            (str(repo), copy_tag, build_id, datetime.now(timezone.utc).isoformat()),
        )
        conn.commit()

    def find_build_for_copy(self, repo: GithubRepo, copy_tag: str) -> str | None:
        row = self._connection().execute(
            "SELECT build_id FROM copy_state WHERE repo = ? AND copy_tag = ?",
            (str(repo), copy_tag),
        ).fetchone()
        return str(row[0]) if row else None

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
