"""Issue tracker adapter over the GitHub REST API."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from hive_mind.github.base import (
    GitHubError,
    IssueComment,
    PostedComment,
    TrackedEntity,
    comment_from_payload,
    entity_from_payload,
)

logger = logging.getLogger(__name__)

DEFAULT_API_BASE_URL = "https://api.github.com"
DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_MAX_RETRIES = 2
_PAGE_SIZE = 100
_TRANSIENT_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


class GitHubRestClient:
    """``httpx`` client bound to one repository."""

    def __init__(  # noqa: PLR0913
        self,
        *,
        repo: str,
        token: str | None = None,
        base_url: str = DEFAULT_API_BASE_URL,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        max_retries: int = DEFAULT_MAX_RETRIES,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.repo = repo
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": "hive-mind",
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.Client(
            base_url=base_url,
            timeout=httpx.Timeout(timeout_seconds, connect=10.0),
            headers=headers,
            transport=transport or httpx.HTTPTransport(retries=max_retries),
        )

    def post_comment(self, number: int, body: str) -> PostedComment | None:
        payload = self._request_json(
            "POST",
            f"/repos/{self.repo}/issues/{number}/comments",
            json={"body": body},
        )
        comment_id = payload.get("id")
        return PostedComment(
            id=int(comment_id) if comment_id is not None else None,
            url=str(payload.get("html_url") or ""),
        )

    def edit_comment(self, comment_id: int, body: str) -> None:
        self._request_json(
            "PATCH",
            f"/repos/{self.repo}/issues/comments/{comment_id}",
            json={"body": body},
        )

    def list_comments(self, number: int) -> list[IssueComment]:
        comments: list[IssueComment] = []
        url: str | None = f"/repos/{self.repo}/issues/{number}/comments"
        params: dict[str, Any] | None = {"per_page": _PAGE_SIZE}
        while url:
            response = self._send("GET", url, params=params)
            page = _decode(response)
            if not isinstance(page, list):
                raise GitHubError("GitHub returned a non-list comments payload", transient=False)
            comments.extend(comment_from_payload(item) for item in page if isinstance(item, dict))
            next_link = response.links.get("next")
            url = next_link.get("url") if next_link else None
            params = None
        return comments

    def get_issue(self, number: int) -> TrackedEntity:
        payload = self._request_json("GET", f"/repos/{self.repo}/issues/{number}")
        return entity_from_payload(number, payload)

    def get_pull_request(self, number: int) -> TrackedEntity:
        payload = self._request_json("GET", f"/repos/{self.repo}/pulls/{number}")
        return entity_from_payload(number, payload)

    def current_user(self) -> str | None:
        payload = self._request_json("GET", "/user")
        login = payload.get("login")
        return str(login) if login else None

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> GitHubRestClient:
        return self

    def __exit__(self, *_: object) -> None:
        self.close()

    def _request_json(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        payload = _decode(self._send(method, url, **kwargs))
        if not isinstance(payload, dict):
            raise GitHubError(f"GitHub returned a non-object payload for {url}", transient=False)
        return payload

    def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = self._client.request(method, url, **kwargs)
        except httpx.TimeoutException as error:
            raise GitHubError(f"Timeout calling GitHub {method} {url}", transient=True) from error
        except httpx.HTTPError as error:
            raise GitHubError(
                f"HTTP error calling GitHub {method} {url}: {error}",
                transient=True,
            ) from error
        if not response.is_success:
            raise GitHubError(
                f"GitHub {method} {url} failed: HTTP {response.status_code}",
                transient=response.status_code in _TRANSIENT_STATUS_CODES,
            )
        return response


def _decode(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError as error:
        raise GitHubError(f"GitHub returned invalid JSON: {error}", transient=False) from error
