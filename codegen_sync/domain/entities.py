from __future__ import annotations

from dataclasses import dataclass, field

from codegen_sync.configs.owlbot_yaml import OwlBotYaml


@dataclass(frozen=True)
class GithubRepo:
    """A repository on GitHub, identified by owner and name."""

    owner: str
    repo: str

    @classmethod
    def parse(cls, full_name: str) -> "GithubRepo":
        owner, sep, name = full_name.strip().partition("/")
        if not sep or not owner or not name or "/" in name:
            raise ValueError(f"Expected owner/repo, got: {full_name!r}")
        return cls(owner=owner, repo=name)

    def __str__(self) -> str:
        return f"{self.owner}/{self.repo}"


@dataclass(frozen=True)
class OwlBotYamlAndPath:
    path: str  # e.g. /google/cloud/vision/.OwlBot.yaml
    yaml: OwlBotYaml


@dataclass(frozen=True)
class AffectedRepo:
    """A downstream repo and the subset of its configs matched by a commit."""

    repo: GithubRepo
    yamls: list[OwlBotYamlAndPath] = field(default_factory=list)


@dataclass(frozen=True)
class Todo:
    """Configs to copy from one source commit into one pull request."""

    repo: GithubRepo
    commit_hash: str
    yaml_paths: list[str]
