from __future__ import annotations

import logging
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Protocol, Sequence

from codegen_sync.adapters.git.git_ops import (
    DEFAULT_CLONE_URL_TEMPLATE,
    LocalSourceRepo,
    to_local_repo,
)
from codegen_sync.adapters.github.client_factory import GitHubClientFactory
from codegen_sync.configs.configs_store import ConfigsStore
from codegen_sync.copy.copy_code import (
    CopyParams,
    WithNestedCommitDelimiters,
    copy_code_and_append_or_create_pull_request,
)
from codegen_sync.copy.copy_state_store import CopyStateStore, copy_tag_from
from codegen_sync.domain.entities import GithubRepo, OwlBotYamlAndPath, Todo

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, int, int], None]
Copier = Callable[[CopyParams, list[str], WithNestedCommitDelimiters, bool], None]


class SourceHistory(Protocol):
    """Read access to the history of the source repository."""

    def files_modified_by(self, commit_hash: str) -> list[str]:
        ...

    def summary(self, commit_hash: str) -> str:
        ...


def is_commit_hash_too_old(
    yamls: Sequence[OwlBotYamlAndPath] | None,
    commit_index: int,
    commit_hashes: Sequence[str],
) -> bool:
    """Test whether commit_hashes[commit_index] predates a config's begin-after-commit-hash.

    commit_hashes runs from newest to oldest, so a larger index is an older
    commit. Only the first config declaring a boundary counts. A boundary
    outside the scanned window never makes a commit stale.
    """
    begin_after_commit_hash = ""
    for entry in yamls or ():
        value = (entry.yaml.begin_after_commit_hash or "").strip()
        if value:
            begin_after_commit_hash = value
            break
    if not begin_after_commit_hash:
        return False
    try:
        begin_index = list(commit_hashes).index(begin_after_commit_hash)
    except ValueError:
        return False
    return begin_index <= commit_index


def combine_todos(
    repo: GithubRepo,
    commit_hash: str,
    yaml_paths: Sequence[str],
    combine_pulls_threshold: int | None = None,
) -> list[Todo]:
    """One combined Todo when yaml_paths exceeds the threshold, else one per path.

    A threshold of None never combines.
    """
    if combine_pulls_threshold is not None and len(yaml_paths) > combine_pulls_threshold:
        return [Todo(repo=repo, commit_hash=commit_hash, yaml_paths=list(yaml_paths))]
    return [Todo(repo=repo, commit_hash=commit_hash, yaml_paths=[p]) for p in yaml_paths]


def _normalize_touched_file(path: str) -> str:
    # .OwlBot.yaml regexes expect paths that begin with a slash.
    return path if path.startswith("/") else "/" + path


@dataclass
class PullRequestScheduler:
    """Decides which copies are pending in source history and replays them in commit order."""

    source: SourceHistory
    source_dir: Path
    configs_store: ConfigsStore
    copy_state_store: CopyStateStore
    github_factory: GitHubClientFactory
    copier: Copier = copy_code_and_append_or_create_pull_request
    combine_pulls_threshold: int | None = None
    max_yaml_count_per_pull_request: int | None = None
    with_nested_commit_delimiters: WithNestedCommitDelimiters = WithNestedCommitDelimiters.NO
    draft_pull_requests: bool = False
    source_repo_name: str | None = None
    work_dir: Path | None = None
    clone_url_template: str = DEFAULT_CLONE_URL_TEMPLATE

    def collect_todos(self, commit_hashes: Sequence[str]) -> list[Todo]:
        """Walk history newest-first and return pending Todos in discovery order.

        Scanning stops at the first commit that affects some repo but yields
        no new Todo: everything older has already been handled.
        """
        todos: list[Todo] = []
        for commit_index, commit_hash in enumerate(commit_hashes):
            commit_text = self.source.summary(commit_hash)
            touched_files = [
                _normalize_touched_file(f) for f in self.source.files_modified_by(commit_hash)
            ]
            logger.info(commit_text)
            for f in touched_files:
                logger.debug(f)

            repos = self.configs_store.find_repos_affected_by_file_changes(touched_files)
            logger.info("affecting %d repos.", len(repos))
            found_before = len(todos)

            for affected in repos:
                # Created once, on the first affected repo, and reused for replay.
                self.github_factory.get_client()
                if is_commit_hash_too_old(affected.yamls, commit_index, commit_hashes):
                    logger.info("Ignoring %s because %s is too old.", affected.repo, commit_hash)
                    continue

                todo_yamls: list[str] = []
                for entry in affected.yamls:
                    build_id = self.copy_state_store.find_build_for_copy(
                        affected.repo, copy_tag_from(entry.path, commit_hash)
                    )
                    if build_id:
                        logger.info(
                            "Found build %s for %s for %s %s.",
                            build_id,
                            commit_hash,
                            affected.repo,
                            entry.path,
                        )
                    else:
                        todo_yamls.append(entry.path)

                if todo_yamls:
                    for todo in combine_todos(
                        affected.repo, commit_hash, todo_yamls, self.combine_pulls_threshold
                    ):
                        logger.info("Queued %s %s for %s", todo.commit_hash, todo.yaml_paths, todo.repo)
                        todos.append(todo)

            if repos and len(todos) == found_before:
                logger.info("Created all necessary pull requests for %s.", commit_text)
                break

        logger.info("Done searching through commit history.")
        logger.info("%d items in the todo list.", len(todos))
        return todos

    def replay(
        self, todos: Sequence[Todo], *, on_progress: ProgressCallback | None = None
    ) -> int:
        """Run the copier for each Todo, oldest commit first. Returns the count executed."""
        total = len(todos)
        for done, todo in enumerate(reversed(todos), start=1):
            params = CopyParams(
                source_repo=self.source_dir,
                source_repo_commit_hash=todo.commit_hash,
                dest_repo=todo.repo,
                copy_state_store=self.copy_state_store,
                github_factory=self.github_factory,
                max_yaml_count_per_pull_request=self.max_yaml_count_per_pull_request,
                source_repo_name=self.source_repo_name,
                work_dir=self.work_dir,
                clone_url_template=self.clone_url_template,
            )
            self.copier(
                params,
                list(todo.yaml_paths),
                self.with_nested_commit_delimiters,
                self.draft_pull_requests,
            )
            if on_progress is not None:
                on_progress("replay", done, total)
        return total

    def run(
        self, commit_hashes: Sequence[str], *, on_progress: ProgressCallback | None = None
    ) -> int:
        return self.replay(self.collect_todos(commit_hashes), on_progress=on_progress)


def scan_and_create_pull_requests(
    source_repo: str,
    github_factory: GitHubClientFactory,
    configs_store: ConfigsStore,
    clone_depth: int = 100,
    copy_state_store: CopyStateStore | None = None,
    combine_pulls_threshold: int | None = None,
    with_nested_commit_delimiters: WithNestedCommitDelimiters = WithNestedCommitDelimiters.NO,
    max_yaml_count_per_pull_request: int | None = None,
    draft_pull_requests: bool = False,
    *,
    work_dir: Path | None = None,
    clone_url_template: str = DEFAULT_CLONE_URL_TEMPLATE,
    copier: Copier = copy_code_and_append_or_create_pull_request,
    on_progress: ProgressCallback | None = None,
) -> int:
    """Scan source_repo (normally googleapis/googleapis-gen) and open pull requests
    in downstream repos whose generated code has changed.

    Args:
        combine_pulls_threshold: when more configs than this are affected by
            one commit in one repo, their changes go into a single pull request.
            None never combines.
        max_yaml_count_per_pull_request: ceiling on configs per physical pull
            request. None is unbounded.
        draft_pull_requests: create new pull requests as drafts.

    Returns the number of Todos executed.
    """
    if copy_state_store is None:
        raise ValueError("copy_state_store is required")
    if work_dir is not None:
        work_dir.mkdir(parents=True, exist_ok=True)

    with tempfile.TemporaryDirectory(dir=work_dir) as tmp:
        # clone_depth + 1: the last commit of a shallow clone is grafted and
        # holds the combined state of all earlier commits, so never examine it.
        source_dir = to_local_repo(
            source_repo,
            Path(tmp),
            clone_depth + 1,
            github_factory.get_token(),
            clone_url_template=clone_url_template,
        )
        source = LocalSourceRepo(source_dir)
        commit_hashes = source.commit_hashes(clone_depth)

        scheduler = PullRequestScheduler(
            source=source,
            source_dir=source_dir,
            configs_store=configs_store,
            copy_state_store=copy_state_store,
            github_factory=github_factory,
            copier=copier,
            combine_pulls_threshold=combine_pulls_threshold,
            max_yaml_count_per_pull_request=max_yaml_count_per_pull_request,
            with_nested_commit_delimiters=with_nested_commit_delimiters,
            draft_pull_requests=draft_pull_requests,
            source_repo_name=None if Path(source_repo).expanduser().is_absolute() else source_repo,
            work_dir=work_dir,
            clone_url_template=clone_url_template,
        )
        return scheduler.run(commit_hashes, on_progress=on_progress)
