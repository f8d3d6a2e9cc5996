from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from codegen_sync.copy.copy_code import WithNestedCommitDelimiters


def _expand(path: str) -> Path:
    return Path(os.path.expanduser(path)).resolve()


def _read_toml(path: Path) -> dict[str, Any]:
    """Read TOML into a dict, supporting Python 3.10+.

    Uses tomllib when available, falls back to tomli.
    """
    data = path.read_bytes()
    try:
        import tomllib  # type: ignore[attr-defined]

        return tomllib.loads(data.decode("utf-8"))
    except ModuleNotFoundError:
        import tomli  # type: ignore[import-not-found]

        return tomli.loads(data.decode("utf-8"))


class SourceConfig(BaseModel):
    repo: str = Field(
        default="googleapis/googleapis-gen",
        description="owner/repo on GitHub, or an absolute path to a local clone.",
    )
    clone_depth: int = Field(default=100, ge=1, description="How many commits of history to scan.")


class GithubConfig(BaseModel):
    token_env_var: str = Field(default="GITHUB_TOKEN")
    api_base_url: str = Field(default="https://api.github.com")
    clone_url_template: str = Field(default="https://github.com/{owner}/{repo}.git")


class ScanOptions(BaseModel):
    combine_pulls_threshold: int | None = Field(
        default=None,
        ge=0,
        description="Combine a commit's changes to one repo into one PR above this many configs.",
    )
    max_yaml_count_per_pull_request: int | None = Field(
        default=None,
        ge=1,
        description="Hard ceiling on configs per pull request. Unset means unbounded.",
    )
    nested_commit_delimiters: bool = Field(default=False)
    draft_pull_requests: bool = Field(default=False)

    @field_validator("combine_pulls_threshold", "max_yaml_count_per_pull_request", mode="before")
    @classmethod
    def _unbounded_sentinel(cls, value: Any) -> Any:
        # TOML has no null; "unbounded" or a negative number mean no limit.
        if isinstance(value, str) and value.strip().lower() in ("", "unbounded", "none"):
            return None
        if isinstance(value, int) and value < 0:
            return None
        return value

    def nested_delimiters(self) -> WithNestedCommitDelimiters:
        if self.nested_commit_delimiters:
            return WithNestedCommitDelimiters.YES
        return WithNestedCommitDelimiters.NO


class OutputConfig(BaseModel):
    base_dir: str = Field(default="~/codegen_sync")
    state_db: str = Field(default="state.sqlite", description="Copy-state ledger and config store.")
    work_dir: str = Field(default="work")
    logs_dir: str = Field(default="logs")

    def resolve(self) -> "ResolvedOutputPaths":
        base = _expand(self.base_dir)
        return ResolvedOutputPaths(
            base_dir=base,
            state_db=base / self.state_db,
            work_dir=base / self.work_dir,
            logs_dir=base / self.logs_dir,
        )


class ScanConfig(BaseModel):
    source: SourceConfig = Field(default_factory=SourceConfig)
    github: GithubConfig = Field(default_factory=GithubConfig)
    scan: ScanOptions = Field(default_factory=ScanOptions)
    outputs: OutputConfig = Field(default_factory=OutputConfig)

    @classmethod
    def load(cls, path: Path) -> "ScanConfig":
        raw = _read_toml(path)
        return cls.model_validate(raw)


class ResolvedOutputPaths(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    base_dir: Path
    state_db: Path
    work_dir: Path
    logs_dir: Path

    def ensure_dirs(self) -> None:
        for p in (self.base_dir, self.work_dir, self.logs_dir):
            p.mkdir(parents=True, exist_ok=True)
