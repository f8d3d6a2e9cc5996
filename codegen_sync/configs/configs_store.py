from __future__ import annotations

import json
import logging
import sqlite3
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol, Sequence

from codegen_sync.common.storage import connect, init_schema
from codegen_sync.configs.owlbot_yaml import OwlBotYaml, owl_bot_yaml_matches
from codegen_sync.domain.entities import AffectedRepo, GithubRepo, OwlBotYamlAndPath

logger = logging.getLogger(__name__)


class ConfigsStore(Protocol):
    """Stores the .OwlBot.yaml configs of every downstream repository."""

    def find_repos_affected_by_file_changes(
        self, touched_files: Sequence[str]
    ) -> list[AffectedRepo]:
        """Return repos with at least one config whose rules match a touched file.

        Each AffectedRepo carries only the configs that matched.
        """
        ...

    def get_configs(self, repo: GithubRepo) -> list[OwlBotYamlAndPath]:
        ...

    def store_configs(
        self,
        repo: GithubRepo,
        yamls: Sequence[OwlBotYamlAndPath],
        commit_hash: str | None = None,
    ) -> None:
        ...


@dataclass
class SqliteConfigsStore(ConfigsStore):
    db_path: Path
    _conn: sqlite3.Connection | None = field(default=None, init=False, repr=False)

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = connect(self.db_path)
            init_schema(self._conn)
        return self._conn

    def store_configs(
        self,
        repo: GithubRepo,
        yamls: Sequence[OwlBotYamlAndPath],
        commit_hash: str | None = None,
    ) -> None:
        """Replace all configs stored for repo."""
        conn = self._connection()
        with conn:
            conn.execute("DELETE FROM owl_bot_configs WHERE repo = ?", (str(repo),))
            conn.executemany(
                """
                INSERT INTO owl_bot_configs (repo, yaml_path, position, yaml_json, commit_hash)
                VALUES (?, ?, ?, ?, ?)
                """,
                [
                    (str(repo), y.path, pos, json.dumps(y.yaml.to_json_dict()), commit_hash)
                    for pos, y in enumerate(yamls)
                ],
            )
        logger.info("Stored %d configs for %s", len(yamls), repo)

    def get_configs(self, repo: GithubRepo) -> list[OwlBotYamlAndPath]:
        rows = self._connection().execute(
            """
            SELECT yaml_path, yaml_json FROM owl_bot_configs
            WHERE repo = ?
            ORDER BY position
            """,
            (str(repo),),
        ).fetchall()
        return [_to_yaml_and_path(path, raw) for path, raw in rows]

    def find_repos_affected_by_file_changes(
        self, touched_files: Sequence[str]
    ) -> list[AffectedRepo]:
        rows = self._connection().execute(
            """
            SELECT repo, yaml_path, yaml_json FROM owl_bot_configs
            ORDER BY repo, position
            """
        ).fetchall()

        matched: dict[str, list[OwlBotYamlAndPath]] = {}
        for repo_full, path, raw in rows:
            entry = _to_yaml_and_path(path, raw)
            if owl_bot_yaml_matches(entry.yaml, touched_files):
                matched.setdefault(repo_full, []).append(entry)

        return [
            AffectedRepo(repo=GithubRepo.parse(repo_full), yamls=yamls)
            for repo_full, yamls in matched.items()
        ]

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None


def _to_yaml_and_path(path: str, raw: str) -> OwlBotYamlAndPath:
    return OwlBotYamlAndPath(path=path, yaml=OwlBotYaml.model_validate(json.loads(raw)))
