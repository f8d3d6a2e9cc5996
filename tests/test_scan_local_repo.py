from __future__ import annotations

import shutil
import subprocess
from pathlib import Path

import pytest
from fakes import FakeGitHubFactory, RecordingCopier, owl_yaml

from codegen_sync.adapters.git.git_ops import LocalSourceRepo, worktree_at
from codegen_sync.configs.configs_store import SqliteConfigsStore
from codegen_sync.copy.copy_state_store import SqliteCopyStateStore, copy_tag_from
from codegen_sync.domain.entities import GithubRepo, OwlBotYamlAndPath
from codegen_sync.scan.scheduler import scan_and_create_pull_requests

pytestmark = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")

REPO = GithubRepo("googleapis", "nodejs-vision")


def _git(repo: Path, *args: str) -> str:
    res = subprocess.run(
        ["git", "-C", str(repo), "-c", "user.name=Test", "-c", "user.email=test@example.com", *args],
        check=True,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
    )
    return res.stdout.strip()


def _commit(repo: Path, rel: str, message: str) -> str:
    p = repo / rel
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(message)
    _git(repo, "add", "-A")
    _git(repo, "commit", "-q", "-m", message)
    return _git(repo, "rev-parse", "HEAD")


@pytest.fixture()
def source_repo(tmp_path: Path) -> tuple[Path, dict[str, str]]:
    repo = tmp_path / "googleapis-gen"
    repo.mkdir()
    _git(repo, "init", "-q")
    hashes = {
        "c1": _commit(repo, "README.md", "docs: readme"),
        "c2": _commit(repo, "google/cloud/vision/v1/a.js", "feat: vision v1"),
        "c3": _commit(repo, "docs/notes.md", "docs: notes"),
    }
    return repo, hashes


def test_local_source_repo_reads_history(source_repo: tuple[Path, dict[str, str]]) -> None:
    repo, hashes = source_repo
    history = LocalSourceRepo(repo)

    assert history.commit_hashes(100) == [hashes["c3"], hashes["c2"], hashes["c1"]]
    assert history.commit_hashes(1) == [hashes["c3"]]
    assert history.files_modified_by(hashes["c2"]) == ["google/cloud/vision/v1/a.js"]
    assert history.summary(hashes["c2"]).endswith("feat: vision v1")


def test_scan_executes_the_one_pending_copy(
    source_repo: tuple[Path, dict[str, str]], tmp_path: Path
) -> None:
    repo, hashes = source_repo
    configs = SqliteConfigsStore(tmp_path / "state.sqlite")
    ledger = SqliteCopyStateStore(tmp_path / "state.sqlite")
    configs.store_configs(REPO, [OwlBotYamlAndPath("/a", owl_yaml(r"/google/cloud/vision/v1/(.*)"))])
    copier = RecordingCopier()

    count = scan_and_create_pull_requests(
        str(repo),
        FakeGitHubFactory(),  # type: ignore[arg-type]
        configs,
        100,
        ledger,
        work_dir=tmp_path / "work",
        copier=copier,
    )

    assert count == 1
    ((params, yaml_paths, _, _),) = copier.calls
    assert params.source_repo_commit_hash == hashes["c2"]
    assert params.dest_repo == REPO
    assert yaml_paths == ["/a"]

    ledger.record_build_for_copy(REPO, copy_tag_from("/a", hashes["c2"]), "build-1")
    rerun = scan_and_create_pull_requests(
        str(repo),
        FakeGitHubFactory(),  # type: ignore[arg-type]
        configs,
        100,
        ledger,
        work_dir=tmp_path / "work",
        copier=RecordingCopier(),
    )
    assert rerun == 0
    configs.close()
    ledger.close()


def test_worktree_leaves_local_head_alone(source_repo: tuple[Path, dict[str, str]], tmp_path: Path) -> None:
    repo, hashes = source_repo

    with worktree_at(repo, hashes["c2"], tmp_path / "tree") as tree:
        assert (tree / "google/cloud/vision/v1/a.js").exists()
        assert not (tree / "docs/notes.md").exists()
        assert _git(repo, "rev-parse", "HEAD") == hashes["c3"]

    assert _git(repo, "rev-parse", "HEAD") == hashes["c3"]
    assert (repo / "docs/notes.md").exists()
    assert not (tmp_path / "tree").exists()
