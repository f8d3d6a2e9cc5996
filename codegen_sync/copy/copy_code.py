from __future__ import annotations

import hashlib
import logging
import os
import re
import shutil
import tempfile
import uuid
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Sequence

from codegen_sync.adapters.git import git_ops
from codegen_sync.adapters.github.client_factory import GitHubClientFactory
from codegen_sync.configs.owlbot_yaml import (
    OwlBotYaml,
    front_match,
    parse_owl_bot_yaml,
    to_python_replacement,
)
from codegen_sync.copy.copy_state_store import CopyStateStore, copy_tag_from
from codegen_sync.domain.entities import GithubRepo

logger = logging.getLogger(__name__)

COPY_BRANCH_PREFIX = "owl-bot-copy"
DEFAULT_COMMIT_AUTHOR = "codegen-sync <codegen-sync@users.noreply.github.com>"


class WithNestedCommitDelimiters(str, Enum):
    YES = "yes"
    NO = "no"


def default_build_id() -> str:
    return os.environ.get("BUILD_ID") or uuid.uuid4().hex


@dataclass(frozen=True)
class CopyParams:
    source_repo: Path  # local checkout of the source repository
    source_repo_commit_hash: str
    dest_repo: GithubRepo
    copy_state_store: CopyStateStore
    github_factory: GitHubClientFactory
    max_yaml_count_per_pull_request: int | None = None
    source_repo_name: str | None = None
    build_id: str = field(default_factory=default_build_id)
    work_dir: Path | None = None
    clone_url_template: str = git_ops.DEFAULT_CLONE_URL_TEMPLATE
    commit_author: str = DEFAULT_COMMIT_AUTHOR


def _list_files(root: Path) -> list[str]:
    out: list[str] = []
    for p in sorted(root.rglob("*")):
        rel = p.relative_to(root)
        if ".git" in rel.parts or not p.is_file():
            continue
        out.append("/" + rel.as_posix())
    return out


def copy_dirs(source_dir: Path, dest_dir: Path, owl_bot_yaml: OwlBotYaml) -> list[str]:
    """Apply a config's remove/preserve/copy rules. Returns the copied dest paths."""
    if owl_bot_yaml.deep_remove_regex:
        for rel in _list_files(dest_dir):
            if not any(front_match(r, rel) for r in owl_bot_yaml.deep_remove_regex):
                continue
            if any(front_match(p, rel) for p in owl_bot_yaml.deep_preserve_regex):
                continue
            (dest_dir / rel.lstrip("/")).unlink()

    dest_root = dest_dir.resolve()
    copied: list[str] = []
    source_files = _list_files(source_dir)
    for rule in owl_bot_yaml.deep_copy_regex:
        pattern = re.compile(rule.source)
        replacement = to_python_replacement(rule.dest)
        for rel in source_files:
            m = pattern.match(rel)
            if m is None:
                continue
            dest_rel = m.expand(replacement) + rel[m.end():]
            target = (dest_root / dest_rel.lstrip("/")).resolve()
            if dest_root not in target.parents:
                raise ValueError(f"Copy of {rel} would escape the destination: {dest_rel}")
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(source_dir / rel.lstrip("/"), target)
            copied.append("/" + target.relative_to(dest_root).as_posix())
    return copied


def build_commit_message(
    source_message: str,
    copy_tags: Sequence[str],
    *,
    source_link: str | None = None,
    with_nested_commit_delimiters: WithNestedCommitDelimiters = WithNestedCommitDelimiters.NO,
) -> str:
    lines = [source_message.strip(), ""]
    if source_link:
        lines.append(f"Source-Link: {source_link}")
    lines.extend(f"Copy-Tag: {tag}" for tag in copy_tags)
    message = "\n".join(lines)
    if with_nested_commit_delimiters == WithNestedCommitDelimiters.YES:
        message = f"BEGIN_NESTED_COMMIT\n{message}\nEND_NESTED_COMMIT"
    return message


def _chunks(items: list[str], size: int | None) -> list[list[str]]:
    if size is None or size >= len(items):
        return [items]
    if size < 1:
        raise ValueError("max_yaml_count_per_pull_request must be at least 1")
    return [items[i : i + size] for i in range(0, len(items), size)]


def copy_branch_for(copy_tags: Sequence[str]) -> str:
    """Branch of the pull request carrying exactly these copies."""
    digest = hashlib.sha256("\n".join(copy_tags).encode("utf-8")).hexdigest()
    return f"{COPY_BRANCH_PREFIX}-{digest[:16]}"


def copy_code_and_append_or_create_pull_request(
    params: CopyParams,
    yaml_paths: Sequence[str],
    with_nested_commit_delimiters: WithNestedCommitDelimiters = WithNestedCommitDelimiters.NO,
    draft_pull_requests: bool = False,
) -> None:
    """Copy code for each config into dest_repo, one pull request per chunk.

    A chunk holds at most params.max_yaml_count_per_pull_request configs and
    has its own branch. If a pull request for that branch is already open
    (a previous run died before recording its copies) the new commit is
    appended to it. Configs already recorded in the copy-state ledger are
    skipped; every config handled here is recorded under params.build_id.
    """
    commit_hash = params.source_repo_commit_hash
    todo: list[str] = []
    for yaml_path in yaml_paths:
        build = params.copy_state_store.find_build_for_copy(
            params.dest_repo, copy_tag_from(yaml_path, commit_hash)
        )
        if build:
            logger.info("Build %s already copied %s %s to %s", build, commit_hash, yaml_path, params.dest_repo)
        else:
            todo.append(yaml_path)
    if not todo:
        return

    source_message = git_ops.commit_message(params.source_repo, commit_hash)
    source_link = (
        f"https://github.com/{params.source_repo_name}/commit/{commit_hash}"
        if params.source_repo_name
        else None
    )
    if params.work_dir is not None:
        params.work_dir.mkdir(parents=True, exist_ok=True)

    with tempfile.TemporaryDirectory(dir=params.work_dir) as tmp, git_ops.worktree_at(
        params.source_repo, commit_hash, Path(tmp) / "source"
    ) as source_dir:
        for chunk in _chunks(todo, params.max_yaml_count_per_pull_request):
            _copy_chunk(
                params,
                chunk,
                source_dir=source_dir,
                source_message=source_message,
                source_link=source_link,
                with_nested_commit_delimiters=with_nested_commit_delimiters,
                draft_pull_requests=draft_pull_requests,
            )
            for yaml_path in chunk:
                params.copy_state_store.record_build_for_copy(
                    params.dest_repo, copy_tag_from(yaml_path, commit_hash), params.build_id
                )


def _copy_chunk(
    params: CopyParams,
    yaml_paths: list[str],
    *,
    source_dir: Path,
    source_message: str,
    source_link: str | None,
    with_nested_commit_delimiters: WithNestedCommitDelimiters,
    draft_pull_requests: bool,
) -> None:
    dest = params.dest_repo
    github = params.github_factory.get_client()
    copy_tags = [copy_tag_from(p, params.source_repo_commit_hash) for p in yaml_paths]
    branch = copy_branch_for(copy_tags)

    with tempfile.TemporaryDirectory(dir=params.work_dir) as tmp:
        dest_dir = git_ops.to_local_repo(
            str(dest),
            Path(tmp),
            depth=100,
            token=params.github_factory.get_token(),
            clone_url_template=params.clone_url_template,
        )
        default_branch = github.get_default_branch(dest.owner, dest.repo)
        open_pr = github.find_open_pull_request(dest.owner, dest.repo, branch)
        if open_pr:
            logger.info("Appending to %s#%s", dest, open_pr["number"])
            git_ops.checkout_remote_branch(dest_dir, branch)
        else:
            git_ops.checkout_new_branch(dest_dir, branch)

        for yaml_path in yaml_paths:
            yaml_file = dest_dir / yaml_path.lstrip("/")
            if not yaml_file.is_file():
                logger.warning("%s no longer exists in %s; nothing to copy", yaml_path, dest)
                continue
            owl_bot_yaml = parse_owl_bot_yaml(yaml_file.read_text(encoding="utf-8"))
            copied = copy_dirs(source_dir, dest_dir, owl_bot_yaml)
            logger.info("Copied %d files for %s", len(copied), yaml_path)

        if not git_ops.has_changes(dest_dir):
            logger.info("No changes to commit for %s in %s", yaml_paths, dest)
            return

        message = build_commit_message(
            source_message,
            copy_tags,
            source_link=source_link,
            with_nested_commit_delimiters=with_nested_commit_delimiters,
        )
        git_ops.commit_all(dest_dir, message, params.commit_author)
        git_ops.push_branch(dest_dir, branch, force=open_pr is None)

        if open_pr:
            body = (open_pr.get("body") or "").rstrip()
            github.update_pull_request(
                dest.owner, dest.repo, int(open_pr["number"]), body=f"{body}\n\n{message}".lstrip()
            )
        else:
            title = source_message.splitlines()[0] if source_message else f"Copy {params.source_repo_commit_hash}"
            pr = github.create_pull_request(
                dest.owner,
                dest.repo,
                title=title,
                body=message,
                head=branch,
                base=default_branch,
                draft=draft_pull_requests,
            )
            logger.info("Created pull request %s", pr.get("html_url") or pr.get("number"))
