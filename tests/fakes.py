from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

from codegen_sync.configs.owlbot_yaml import DeepCopyRegex, OwlBotYaml, owl_bot_yaml_matches
from codegen_sync.copy.copy_code import CopyParams, WithNestedCommitDelimiters
from codegen_sync.domain.entities import AffectedRepo, GithubRepo, OwlBotYamlAndPath


def owl_yaml(source: str = r"/google/cloud/vision/(.*)", begin_after: str | None = None) -> OwlBotYaml:
    return OwlBotYaml(
        deep_copy_regex=[DeepCopyRegex(source=source, dest=r"/src/$1")],
        begin_after_commit_hash=begin_after,
    )


@dataclass
class FakeHistory:
    files: dict[str, list[str]]
    inspected: list[str] = field(default_factory=list)

    def files_modified_by(self, commit_hash: str) -> list[str]:
        self.inspected.append(commit_hash)
        return list(self.files.get(commit_hash, []))

    def summary(self, commit_hash: str) -> str:
        return f"{commit_hash} summary"


@dataclass
class FakeConfigsStore:
    configs: dict[GithubRepo, list[OwlBotYamlAndPath]]
    queries: list[list[str]] = field(default_factory=list)

    def find_repos_affected_by_file_changes(self, touched_files: Sequence[str]) -> list[AffectedRepo]:
        self.queries.append(list(touched_files))
        out: list[AffectedRepo] = []
        for repo, yamls in self.configs.items():
            matched = [y for y in yamls if owl_bot_yaml_matches(y.yaml, touched_files)]
            if matched:
                out.append(AffectedRepo(repo=repo, yamls=matched))
        return out

    def get_configs(self, repo: GithubRepo) -> list[OwlBotYamlAndPath]:
        return list(self.configs.get(repo, []))

    def store_configs(self, repo: GithubRepo, yamls: Sequence[OwlBotYamlAndPath], commit_hash: str | None = None) -> None:
        self.configs[repo] = list(yamls)


@dataclass
class FakeCopyStateStore:
    builds: dict[tuple[str, str], str] = field(default_factory=dict)

    def record_build_for_copy(self, repo: GithubRepo, copy_tag: str, build_id: str) -> None:
        self.builds.setdefault((str(repo), copy_tag), build_id)

    def find_build_for_copy(self, repo: GithubRepo, copy_tag: str) -> str | None:
        return self.builds.get((str(repo), copy_tag))


@dataclass
class FakeGitHubFactory:
    client_calls: int = 0
    client: object = field(default_factory=object)

    def get_token(self) -> str:
        return "token"

    def get_client(self) -> object:
        self.client_calls += 1
        return self.client


@dataclass
class RecordingCopier:
    calls: list[tuple[CopyParams, list[str], WithNestedCommitDelimiters, bool]] = field(default_factory=list)

    def __call__(
        self,
        params: CopyParams,
        yaml_paths: list[str],
        with_nested_commit_delimiters: WithNestedCommitDelimiters,
        draft_pull_requests: bool,
    ) -> None:
        self.calls.append((params, yaml_paths, with_nested_commit_delimiters, draft_pull_requests))

    def commit_hashes(self) -> list[str]:
        return [params.source_repo_commit_hash for params, _, _, _ in self.calls]


@dataclass
class FakeGitHubClient:
    default_branch: str = "main"
    open_prs: dict[str, dict] = field(default_factory=dict)
    created: list[dict] = field(default_factory=list)
    updated: list[tuple[int, dict]] = field(default_factory=list)

    def get_default_branch(self, owner: str, repo: str) -> str:
        return self.default_branch

    def find_open_pull_request(self, owner: str, repo: str, branch: str) -> dict | None:
        return self.open_prs.get(branch)

    def create_pull_request(self, owner: str, repo: str, **fields) -> dict:
        pr = dict(fields, number=len(self.created) + 1)
        self.created.append(pr)
        self.open_prs[fields["head"]] = pr
        return pr

    def update_pull_request(self, owner: str, repo: str, number: int, **fields) -> dict:
        self.updated.append((number, fields))
        return fields
