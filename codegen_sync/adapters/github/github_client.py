from __future__ import annotations

import base64
import logging
import time
from dataclasses import dataclass
from typing import Any

import requests

logger = logging.getLogger(__name__)


class GitHubApiError(RuntimeError):
    pass


@dataclass
class GitHubClient:
    token: str
    api_base_url: str = "https://api.github.com"
    user_agent: str = "codegen-sync"

    def _headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": self.user_agent,
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> Any:
        url = self.api_base_url.rstrip("/") + path
        while True:
            resp = requests.request(
                method, url, headers=self._headers(), params=params, json=json, timeout=60
            )
            if resp.status_code == 403 and "rate limit" in resp.text.lower():
                reset = resp.headers.get("X-RateLimit-Reset")
                if reset:
                    wait_s = max(1, int(reset) - int(time.time()) + 1)
                    logger.warning("GitHub rate limit hit. Sleeping %ss", wait_s)
                    time.sleep(wait_s)
                    continue
            if resp.status_code >= 400:
                raise GitHubApiError(f"{method} {path} failed: {resp.status_code} {resp.text}")
            if resp.status_code == 204 or not resp.content:
                return None
            return resp.json()

    def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return self.request("GET", path, params=params)

    def get_default_branch(self, owner: str, repo: str) -> str:
        data = self.get(f"/repos/{owner}/{repo}")
        return str(data["default_branch"])

    def get_file_text(self, owner: str, repo: str, path: str, ref: str | None = None) -> str:
        params = {"ref": ref} if ref else None
        data = self.get(f"/repos/{owner}/{repo}/contents/{path.lstrip('/')}", params=params)
        if not isinstance(data, dict) or data.get("encoding") != "base64":
            raise GitHubApiError(f"Unexpected contents payload for {owner}/{repo}:{path}")
        return base64.b64decode(data["content"]).decode("utf-8")

    def find_open_pull_request(self, owner: str, repo: str, branch: str) -> dict[str, Any] | None:
        pulls = self.get(
            f"/repos/{owner}/{repo}/pulls",
            params={"state": "open", "head": f"{owner}:{branch}", "per_page": 1},
        )
        if isinstance(pulls, list) and pulls:
            return pulls[0]
        return None

    def create_pull_request(
        self,
        owner: str,
        repo: str,
        *,
        title: str,
        body: str,
        head: str,
        base: str,
        draft: bool = False,
    ) -> dict[str, Any]:
        return self.request(
            "POST",
            f"/repos/{owner}/{repo}/pulls",
            json={"title": title, "body": body, "head": head, "base": base, "draft": draft},
        )

    def update_pull_request(
        self, owner: str, repo: str, number: int, **fields: Any
    ) -> dict[str, Any]:
        return self.request("PATCH", f"/repos/{owner}/{repo}/pulls/{number}", json=fields)
