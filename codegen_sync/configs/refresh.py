from __future__ import annotations

import logging
from typing import Sequence

from codegen_sync.adapters.github.github_client import GitHubClient
from codegen_sync.configs.configs_store import ConfigsStore
from codegen_sync.configs.owlbot_yaml import parse_owl_bot_yaml
from codegen_sync.domain.entities import GithubRepo, OwlBotYamlAndPath

logger = logging.getLogger(__name__)


def _normalize_yaml_path(path: str) -> str:
    return path if path.startswith("/") else "/" + path


def refresh_configs_from_github(
    *,
    github: GitHubClient,
    store: ConfigsStore,
    repo: GithubRepo,
    yaml_paths: Sequence[str],
) -> list[OwlBotYamlAndPath]:
    """Fetch a repo's .OwlBot.yaml files from its default branch and store them."""
    branch = github.get_default_branch(repo.owner, repo.repo)
    commit = github.get(f"/repos/{repo.owner}/{repo.repo}/commits/{branch}")
    commit_hash = str((commit or {}).get("sha") or "") or None

    yamls: list[OwlBotYamlAndPath] = []
    for path in yaml_paths:
        text = github.get_file_text(repo.owner, repo.repo, path, ref=branch)
        yamls.append(OwlBotYamlAndPath(path=_normalize_yaml_path(path), yaml=parse_owl_bot_yaml(text)))
        logger.info("Loaded %s from %s@%s", path, repo, branch)

    store.store_configs(repo, yamls, commit_hash)
    return yamls


def register_config_text(
    *, store: ConfigsStore, repo: GithubRepo, yaml_path: str, text: str
) -> list[OwlBotYamlAndPath]:
    """Add or replace one config for repo, keeping its other configs."""
    path = _normalize_yaml_path(yaml_path)
    parsed = parse_owl_bot_yaml(text)
    existing = store.get_configs(repo)
    updated: list[OwlBotYamlAndPath] = []
    replaced = False
    for entry in existing:
        if entry.path == path:
            updated.append(OwlBotYamlAndPath(path=path, yaml=parsed))
            replaced = True
        else:
            updated.append(entry)
    if not replaced:
        updated.append(OwlBotYamlAndPath(path=path, yaml=parsed))
    store.store_configs(repo, updated)
    return updated
