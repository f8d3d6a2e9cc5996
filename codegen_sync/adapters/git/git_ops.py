from __future__ import annotations

import logging
import subprocess
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

logger = logging.getLogger(__name__)

DEFAULT_CLONE_URL_TEMPLATE = "https://github.com/{owner}/{repo}.git"


class GitError(RuntimeError):
    pass


def run_git(repo_path: Path, args: list[str]) -> str:
    cmd = ["git", "-C", str(repo_path)] + args
    logger.debug("Running %s", " ".join(cmd))
    try:
        out = subprocess.check_output(cmd, stderr=subprocess.STDOUT)
        return out.decode("utf-8", errors="replace")
    except subprocess.CalledProcessError as exc:
        msg = exc.output.decode("utf-8", errors="replace")
        raise GitError(f"git failed: {' '.join(args)}\n{msg}") from exc


def clone_url(
    repo_full_name: str,
    token: str | None = None,
    template: str = DEFAULT_CLONE_URL_TEMPLATE,
) -> str:
    owner, name = repo_full_name.split("/", 1)
    url = template.format(owner=owner, repo=name)
    if token and url.startswith("https://"):
        url = f"https://x-access-token:{token}@" + url[len("https://"):]
    return url


def to_local_repo(
    repo_full_name: str,
    work_dir: Path,
    depth: int = 100,
    token: str | None = None,
    *,
    clone_url_template: str = DEFAULT_CLONE_URL_TEMPLATE,
) -> Path:
    """Shallow-clone a GitHub repository into work_dir and return its path.

    When repo_full_name is an absolute path to a local directory it is used as-is.
    """
    local = Path(repo_full_name).expanduser()
    if local.is_absolute() and local.is_dir():
        logger.info("Using local repository %s", local)
        return local

    dest = work_dir / repo_full_name.replace("/", "_")
    dest.parent.mkdir(parents=True, exist_ok=True)
    logger.info("Cloning %s (depth %d)", repo_full_name, depth)
    url = clone_url(repo_full_name, token, clone_url_template)
    run_git(work_dir, ["clone", f"--depth={int(depth)}", url, str(dest)])
    return dest


def list_commit_hashes(repo_path: Path, depth: int) -> list[str]:
    """Newest-first commit hashes, at most depth of them."""
    out = run_git(repo_path, ["log", f"-{int(depth)}", "--format=%H"])
    return [s.strip() for s in out.splitlines() if s.strip()]


def get_files_modified_by_sha(repo_path: Path, commit_hash: str) -> list[str]:
    out = run_git(
        repo_path,
        ["show", "--name-only", "--pretty=format:", "--no-renames", commit_hash],
    )
    return [f for f in out.splitlines() if f.strip()]


def commit_summary(repo_path: Path, commit_hash: str) -> str:
    return run_git(repo_path, ["log", "-1", "--pretty=oneline", commit_hash]).strip()


def commit_message(repo_path: Path, commit_hash: str) -> str:
    return run_git(repo_path, ["log", "-1", "--format=%B", commit_hash]).strip()


@contextmanager
def worktree_at(repo_path: Path, commit_hash: str, dest: Path) -> Iterator[Path]:
    """Check out commit_hash into a detached worktree at dest.

    The working tree and HEAD of repo_path are left untouched.
    """
    run_git(repo_path, ["worktree", "add", "--detach", "--force", str(dest), commit_hash])
    try:
        yield dest
    finally:
        run_git(repo_path, ["worktree", "remove", "--force", str(dest)])


def checkout_new_branch(repo_path: Path, branch: str) -> None:
    run_git(repo_path, ["checkout", "-B", branch])


def checkout_remote_branch(repo_path: Path, branch: str) -> None:
    run_git(repo_path, ["fetch", "--depth=100", "origin", f"{branch}:{branch}"])
    run_git(repo_path, ["checkout", branch])


def has_changes(repo_path: Path) -> bool:
    run_git(repo_path, ["add", "-A"])
    return bool(run_git(repo_path, ["status", "--porcelain"]).strip())


def commit_all(repo_path: Path, message: str, author: str) -> None:
    name, _, email = author.partition("<")
    run_git(
        repo_path,
        [
            "-c",
            f"user.name={name.strip()}",
            "-c",
            f"user.email={email.rstrip('>').strip()}",
            "commit",
            "-m",
            message,
        ],
    )


def push_branch(repo_path: Path, branch: str, *, force: bool = False) -> None:
    args = ["push", "origin", branch]
    if force:
        args.insert(1, "--force")
    run_git(repo_path, args)


@dataclass(frozen=True)
class LocalSourceRepo:
    """History access to a cloned source repository."""

    path: Path

    def commit_hashes(self, depth: int) -> list[str]:
        return list_commit_hashes(self.path, depth)

    def files_modified_by(self, commit_hash: str) -> list[str]:
        return get_files_modified_by_sha(self.path, commit_hash)

    def summary(self, commit_hash: str) -> str:
        return commit_summary(self.path, commit_hash)
