from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

from codegen_sync.adapters.github.github_client import GitHubClient

logger = logging.getLogger(__name__)


@dataclass
class GitHubClientFactory:
    """Hands out one GitHubClient per factory, created on first use."""

    token: str
    api_base_url: str = "https://api.github.com"
    _client: GitHubClient | None = field(default=None, init=False, repr=False)

    @classmethod
    def from_env(
        cls, token_env_var: str = "GITHUB_TOKEN", api_base_url: str = "https://api.github.com"
    ) -> "GitHubClientFactory":
        token = os.environ.get(token_env_var, "")
        if not token:
            logger.warning("%s is not set; GitHub requests will be unauthenticated", token_env_var)
        return cls(token=token, api_base_url=api_base_url)

    def get_token(self) -> str:
        return self.token

    def get_client(self) -> GitHubClient:
        if self._client is None:
            self._client = GitHubClient(token=self.token, api_base_url=self.api_base_url)
        return self._client
