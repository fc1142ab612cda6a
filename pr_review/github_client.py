"""GitHub REST client for pull-request reads and review comments."""

from __future__ import annotations

from typing import Any, Dict, List

import httpx


class GitHubAPIError(RuntimeError):
    """Raised when a GitHub API request fails."""

    def __init__(self, message: str, status_code: int, response_body: Any | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


DEFAULT_ACCEPT_HEADER = "application/vnd.github+json"
DEFAULT_API_VERSION = "2022-11-28"
FILES_PAGE_SIZE = 100


class GitHubClient:
    """Token-authenticated helper for the handful of PR endpoints the pipeline uses."""

    def __init__(
        self,
        *,
        token: str,
        base_url: str = "https://api.github.com",
        timeout: float = 15.0,
        user_agent: str = "pr-review/1.0",
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(
            base_url=self._base_url,
            timeout=timeout,
            headers={
                "User-Agent": user_agent,
                "Accept": DEFAULT_ACCEPT_HEADER,
                "X-GitHub-Api-Version": DEFAULT_API_VERSION,
            },
        )
        self._owns_client = client is None
        self._auth_headers = {"Authorization": f"Bearer {token}"}

    async def _request(
        self,
        method: str,
        url: str,
        *,
        params: Dict[str, Any] | None = None,
        json: Any | None = None,
    ) -> httpx.Response:
        try:
            response = await self._client.request(
                method, url, headers=self._auth_headers, params=params, json=json
            )
        except httpx.HTTPError as exc:
            raise GitHubAPIError(f"GitHub API request to {url} failed: {exc}", 0, None) from exc

        if response.status_code >= 400:
            detail: Any | None
            if response.content:
                try:
                    detail = response.json()
                except ValueError:
                    detail = response.text
            else:
                detail = None
            raise GitHubAPIError(
                f"GitHub API request to {url} failed with status {response.status_code}.",
                response.status_code,
                detail,
            )
        return response

    @staticmethod
    def _json_body(response: httpx.Response) -> Any:
        """Decode a successful response; an empty body decodes to an empty object."""

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            raise GitHubAPIError(
                f"GitHub API returned a non-JSON body for {response.request.url}.",
                response.status_code,
                response.text,
            ) from exc

    @staticmethod
    def _split_full_name(full_name: str) -> tuple[str, str]:
        if "/" not in full_name:
            raise ValueError(f"Repository full name '{full_name}' is invalid.")
        owner, repo = full_name.split("/", 1)
        return owner, repo

    async def list_pull_request_files(self, *, full_name: str, pull_number: int) -> List[Dict[str, Any]]:
        owner, repo = self._split_full_name(full_name)

        files: List[Dict[str, Any]] = []
        page = 1
        while True:
            response = await self._request(
                "GET",
                f"/repos/{owner}/{repo}/pulls/{pull_number}/files",
                params={"per_page": FILES_PAGE_SIZE, "page": page},
            )
            batch = self._json_body(response)
            if not isinstance(batch, list):
                raise GitHubAPIError(
                    "Unexpected response while listing pull request files.",
                    response.status_code,
                    batch,
                )
            files.extend(batch)
            if len(batch) < FILES_PAGE_SIZE:
                break
            page += 1
        return files

    async def get_pull_request(self, *, full_name: str, pull_number: int) -> Dict[str, Any]:
        owner, repo = self._split_full_name(full_name)
        response = await self._request("GET", f"/repos/{owner}/{repo}/pulls/{pull_number}")
        pull_request = self._json_body(response)
        if not isinstance(pull_request, dict):
            raise GitHubAPIError(
                "Unexpected response while fetching the pull request.",
                response.status_code,
                pull_request,
            )
        return pull_request

    async def create_issue_comment(self, *, full_name: str, pull_number: int, body: str) -> Dict[str, Any]:
        """Post a top-level comment on the pull request conversation."""

        owner, repo = self._split_full_name(full_name)
        response = await self._request(
            "POST",
            f"/repos/{owner}/{repo}/issues/{pull_number}/comments",
            json={"body": body},
        )
        return self._json_body(response)

    async def create_review_comment(
        self,
        *,
        full_name: str,
        pull_number: int,
        commit_id: str,
        path: str,
        line: int,
        body: str,
        side: str = "RIGHT",
    ) -> Dict[str, Any]:
        """Post an inline review comment anchored at ``path``:``line``."""

        owner, repo = self._split_full_name(full_name)
        payload: Dict[str, Any] = {
            "body": body,
            "commit_id": commit_id,
            "path": path,
            "line": line,
            "side": side,
        }
        response = await self._request(
            "POST",
            f"/repos/{owner}/{repo}/pulls/{pull_number}/comments",
            json=payload,
        )
        return self._json_body(response)

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None
