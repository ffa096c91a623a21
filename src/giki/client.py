"""RemoteProvider: a :class:`~giki.provider.GitProvider` over the HTTP API.

Talks to a running ``giki serve`` instance.
"""

from __future__ import annotations

from urllib.parse import quote

import httpx

from .exceptions import NotFoundError, RemoteError
from .overlay import TreeNode
from .paths import clean_path
from .provider import BranchInfo, GitProvider, RepoStatus, SearchResult

DEFAULT_URL = "http://localhost:4242"


def _error_message(r: httpx.Response) -> str:
    try:
        data = r.json()
    except ValueError:
        return r.text or r.reason_phrase
    if isinstance(data, dict) and data.get("error"):
        return str(data["error"])
    return r.reason_phrase


class RemoteProvider(GitProvider):
    """Repository service reached over HTTP.

    Args:
        base_url: Server root, e.g. ``http://localhost:4242``.
        client: Preconfigured :class:`httpx.Client` (its ``base_url`` is
            used as-is); one is created when omitted.
    """

    def __init__(self, base_url: str = DEFAULT_URL, client: httpx.Client | None = None,
                 timeout: float = 10):
        self._url = base_url.rstrip("/")
        self._client = client or httpx.Client(base_url=self._url, timeout=timeout)

    def __repr__(self) -> str:
        return f"RemoteProvider({self._url!r})"

    def close(self) -> None:
        self._client.close()

    def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            r = self._client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise RemoteError(f"Request to {url} failed: {exc}") from exc
        if r.status_code == 404:
            raise NotFoundError(_error_message(r))
        if r.is_error:
            raise RemoteError(f"{r.status_code}: {_error_message(r)}")
        return r

    def _post(self, url: str, payload: dict) -> dict:
        return self._request("POST", url, json=payload).json()

    @staticmethod
    def _branch_params(branch: str | None) -> dict:
        return {"branch": branch} if branch else {}

    def tree(self, branch: str | None = None) -> TreeNode:
        r = self._request("GET", "/api/tree", params=self._branch_params(branch))
        return TreeNode.from_dict(r.json())

    def file_content(self, path: str, branch: str | None = None) -> bytes:
        url = "/api/file/" + quote(clean_path(path), safe="/")
        return self._request("GET", url, params=self._branch_params(branch)).content

    def branches(self) -> list[BranchInfo]:
        return [BranchInfo.from_dict(d) for d in self._request("GET", "/api/branches").json()]

    def status(self) -> RepoStatus:
        return RepoStatus.from_dict(self._request("GET", "/api/status").json())

    def write_file(self, path: str, content: bytes | str) -> None:
        if isinstance(content, bytes):
            content = content.decode("utf-8")
        self._post("/api/write", {"path": path, "content": content})

    def delete_file(self, path: str) -> None:
        self._post("/api/delete", {"path": path})

    def move_file(self, old_path: str, new_path: str) -> None:
        self._post("/api/move", {"oldPath": old_path, "newPath": new_path})

    def move_folder(self, old_path: str, new_path: str) -> None:
        self._post("/api/move-folder", {"oldPath": old_path, "newPath": new_path})

    def commit(self, message: str) -> str:
        return self._post("/api/commit", {"message": message})["hash"]

    def search_file_names(self, query: str) -> list[str]:
        r = self._request("GET", "/api/search", params={"q": query, "type": "filename"})
        return list(r.json())

    def search_content(self, query: str) -> list[SearchResult]:
        r = self._request("GET", "/api/search", params={"q": query, "type": "content"})
        return [SearchResult.from_dict(d) for d in r.json()]
