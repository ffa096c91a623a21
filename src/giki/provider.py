"""Repository service interface.

:class:`GitProvider` is everything the editing core needs from a
repository: tree and file reads, branch and status queries, primitive
per-file writes, and a separate commit call.  Each call is atomic on its
own; nothing spans calls.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from .exceptions import ValidationError

if TYPE_CHECKING:
    from .overlay import TreeNode


class SearchKind(str, Enum):
    """Search mode: ``FILENAME`` or ``CONTENT``."""
    FILENAME = "filename"
    CONTENT = "content"

    def __str__(self) -> str:          # noqa: D105
        return self.value


@dataclass
class BranchInfo:
    """A local branch; *is_default* marks the branch being browsed."""
    name: str
    is_default: bool = False

    def to_dict(self) -> dict:
        return {"name": self.name, "isDefault": self.is_default}

    @classmethod
    def from_dict(cls, data: dict) -> BranchInfo:
        return cls(data["name"], bool(data.get("isDefault", False)))


@dataclass
class RepoStatus:
    """Repository location, browsed branch, and working-tree dirtiness."""
    source: str
    branch: str
    is_dirty: bool = False

    def to_dict(self) -> dict:
        return {"source": self.source, "branch": self.branch, "isDirty": self.is_dirty}

    @classmethod
    def from_dict(cls, data: dict) -> RepoStatus:
        return cls(data["source"], data["branch"], bool(data.get("isDirty", False)))


@dataclass
class SearchResult:
    """A content-search hit.

    Attributes:
        path: File path.
        line_number: 1-based line of the match.
        context: Previous line (if any), matching line, next line (if any).
        match_text: The matched text in its original case.
    """
    path: str
    line_number: int
    context: list[str] = field(default_factory=list)
    match_text: str = ""

    @property
    def line(self) -> str:
        """The matching line itself."""
        if not self.context:
            return ""
        return self.context[min(1, self.line_number - 1)]

    def to_dict(self) -> dict:
        return {
            "path": self.path,
            "lineNumber": self.line_number,
            "context": list(self.context),
            "matchText": self.match_text,
        }

    @classmethod
    def from_dict(cls, data: dict) -> SearchResult:
        return cls(data["path"], int(data["lineNumber"]),
                   list(data.get("context") or ()), data.get("matchText", ""))


class GitProvider(ABC):
    """Abstract repository service.

    Reads raise :class:`~giki.exceptions.NotFoundError` for missing paths
    or branches; every other failure is a
    :class:`~giki.exceptions.RemoteError`.
    """

    @abstractmethod
    def tree(self, branch: str | None = None) -> TreeNode:
        """Return the full tree of *branch* (the browsed branch if None)."""

    @abstractmethod
    def file_content(self, path: str, branch: str | None = None) -> bytes:
        """Return the raw bytes of the file at *path*."""

    @abstractmethod
    def branches(self) -> list[BranchInfo]:
        """Return every local branch."""

    @abstractmethod
    def status(self) -> RepoStatus:
        """Return source, browsed branch, and dirty state."""

    @abstractmethod
    def write_file(self, path: str, content: bytes | str) -> None:
        """Write *content* to *path*, creating parent directories."""

    @abstractmethod
    def delete_file(self, path: str) -> None:
        """Remove the file at *path*."""

    @abstractmethod
    def move_file(self, old_path: str, new_path: str) -> None:
        """Rename a file."""

    @abstractmethod
    def move_folder(self, old_path: str, new_path: str) -> None:
        """Rename a folder and everything below it."""

    @abstractmethod
    def commit(self, message: str) -> str:
        """Commit all working-tree changes; return the commit hash."""

    @abstractmethod
    def search_file_names(self, query: str) -> list[str]:
        """Return file paths fuzzily matching *query*, best first."""

    @abstractmethod
    def search_content(self, query: str) -> list[SearchResult]:
        """Return case-insensitive full-text matches of *query*."""

    def read_text(self, path: str, branch: str | None = None, encoding: str = "utf-8") -> str:
        """Return the file at *path* decoded as text."""
        return self.file_content(path, branch).decode(encoding, errors="replace")

    def search(self, query: str, kind: SearchKind | str = SearchKind.FILENAME) -> list:
        """Run a filename or content search.

        Raises:
            ValidationError: If *kind* is neither ``filename`` nor ``content``.
        """
        try:
            kind = SearchKind(kind)
        except ValueError:
            raise ValidationError(
                f"Invalid search type {kind!r}: must be 'filename' or 'content'"
            )
        if kind is SearchKind.FILENAME:
            return self.search_file_names(query)
        return self.search_content(query)
