"""LocalProvider: the repository service backed by a local working tree.

The browsed branch is read from the working tree, so uncommitted edits are
visible.  Every other branch is read from the git object store and shows
committed state only.
"""

from __future__ import annotations

import logging
import os
import stat
from collections.abc import Iterator

from dulwich import porcelain
from dulwich.errors import NotGitRepository, NotTreeError
from dulwich.ignore import IgnoreFilterManager
from dulwich.object_store import tree_lookup_path
from dulwich.repo import Repo

from . import search
from .exceptions import NotFoundError, RemoteError, ValidationError
from .overlay import TreeNode, build_tree
from .paths import clean_path, is_within, normalize_path
from .provider import BranchInfo, GitProvider, RepoStatus, SearchResult

logger = logging.getLogger(__name__)

DEFAULT_AUTHOR = "Giki User"
DEFAULT_EMAIL = "user@giki.local"

_HEADS = b"refs/heads/"
_GITLINK_MODE = 0o160000


class LocalProvider(GitProvider):
    """A :class:`~giki.provider.GitProvider` over a non-bare repository.

    Args:
        path: Repository working directory.
        branch: Branch to browse; the checked-out branch when None.
        author: Commit author name.
        email: Commit author email.

    Raises:
        NotFoundError: If *path* is not a git repository or *branch* does
            not exist.
    """

    def __init__(
        self,
        path: str | os.PathLike[str],
        branch: str | None = None,
        *,
        author: str = DEFAULT_AUTHOR,
        email: str = DEFAULT_EMAIL,
    ):
        self.path = os.path.abspath(os.fspath(path))
        try:
            self._repo = Repo(self.path)
        except NotGitRepository:
            raise NotFoundError(f"{self.path} is not a git repository")
        if branch:
            if _HEADS + branch.encode() not in self._repo.refs:
                raise NotFoundError(f"Branch {branch!r} not found")
        else:
            branch = self._head_branch() or "HEAD"
        self.branch = branch
        self._identity = f"{author} <{email}>".encode()

    def __repr__(self) -> str:
        return f"LocalProvider({self.path!r}, branch={self.branch!r})"

    def close(self) -> None:
        self._repo.close()

    # --- Helpers ---

    def _head_branch(self) -> str | None:
        head = self._repo.refs.read_ref(b"HEAD")
        prefix = b"ref: " + _HEADS
        if head and head.startswith(prefix):
            return head[len(prefix):].decode()
        return None

    def _is_current(self, branch: str | None) -> bool:
        return not branch or branch == self.branch

    def _full_path(self, path: str) -> str:
        return os.path.join(self.path, *path.split("/"))

    def _checked(self, path: str, what: str = "Path") -> str:
        """Normalize *path* for a write; reject traversal and ``.git``."""
        path = normalize_path(path, what=what)
        if path.split("/", 1)[0] == ".git":
            raise ValidationError(f"{what} cannot point inside .git")
        return path

    def _branch_tree(self, branch: str) -> bytes:
        try:
            commit_id = self._repo.refs[_HEADS + branch.encode()]
        except KeyError:
            raise NotFoundError(f"Branch {branch!r} not found")
        return self._repo[commit_id].tree

    def _working_files(self) -> Iterator[str]:
        """Yield tracked and untracked non-ignored files of the working tree."""
        ignore = IgnoreFilterManager.from_repo(self._repo)
        for dirpath, dirnames, filenames in os.walk(self.path):
            rel_dir = os.path.relpath(dirpath, self.path)
            rel_dir = "" if rel_dir == "." else rel_dir.replace(os.sep, "/")
            kept = []
            for name in dirnames:
                rel = f"{rel_dir}/{name}" if rel_dir else name
                if name == ".git" or ignore.is_ignored(rel + "/"):
                    continue
                kept.append(name)
            dirnames[:] = kept
            for name in filenames:
                rel = f"{rel_dir}/{name}" if rel_dir else name
                if ignore.is_ignored(rel):
                    continue
                yield rel

    def _committed_files(self, tree_id: bytes, prefix: str = "") -> Iterator[str]:
        for entry in self._repo[tree_id].items():
            name = entry.path.decode("utf-8", errors="replace")
            path = f"{prefix}/{name}" if prefix else name
            if stat.S_ISDIR(entry.mode):
                yield from self._committed_files(entry.sha, path)
            elif entry.mode != _GITLINK_MODE:
                yield path

    def _read_working_file(self, path: str) -> bytes:
        with open(self._full_path(path), "rb") as f:
            return f.read()

    # --- Reads ---

    def tree(self, branch: str | None = None) -> TreeNode:
        if self._is_current(branch):
            return build_tree(self._working_files())
        return build_tree(self._committed_files(self._branch_tree(branch)))

    def file_content(self, path: str, branch: str | None = None) -> bytes:
        path = clean_path(path)
        if not path:
            raise NotFoundError("File not found")
        if ".." in path.split("/"):
            raise ValidationError('Path cannot contain ".."')

        if self._is_current(branch):
            full = self._full_path(path)
            if os.path.isdir(full):
                raise NotFoundError(f"Path is a directory, not a file: {path}")
            try:
                return self._read_working_file(path)
            except FileNotFoundError:
                raise NotFoundError(f"File not found: {path}")
            except OSError as exc:
                raise RemoteError(f"Failed to read file: {exc}") from exc

        tree_id = self._branch_tree(branch)
        try:
            mode, sha = tree_lookup_path(self._repo.__getitem__, tree_id, path.encode())
        except (KeyError, NotTreeError):
            raise NotFoundError(f"File not found: {path}")
        if stat.S_ISDIR(mode):
            raise NotFoundError(f"Path is a directory, not a file: {path}")
        return self._repo[sha].data

    def branches(self) -> list[BranchInfo]:
        names = sorted(name.decode() for name in self._repo.refs.keys(base=_HEADS))
        return [BranchInfo(name, name == self.branch) for name in names]

    def status(self) -> RepoStatus:
        try:
            st = porcelain.status(self._repo, untracked_files="all")
        except (KeyError, OSError) as exc:
            raise RemoteError(f"Failed to get status: {exc}") from exc
        dirty = any(st.staged.values()) or bool(st.unstaged) or bool(st.untracked)
        return RepoStatus(source=self.path, branch=self.branch, is_dirty=dirty)

    # --- Writes ---

    def write_file(self, path: str, content: bytes | str) -> None:
        path = self._checked(path)
        if isinstance(content, str):
            content = content.encode("utf-8")
        full = self._full_path(path)
        try:
            os.makedirs(os.path.dirname(full), exist_ok=True)
            with open(full, "wb") as f:
                f.write(content)
        except OSError as exc:
            raise RemoteError(f"Failed to write file: {exc}") from exc

    def delete_file(self, path: str) -> None:
        path = self._checked(path)
        full = self._full_path(path)
        if os.path.isdir(full):
            raise RemoteError(f"Path is a directory, not a file: {path}")
        try:
            os.remove(full)
        except FileNotFoundError:
            raise NotFoundError(f"File not found: {path}")
        except OSError as exc:
            raise RemoteError(f"Failed to delete file: {exc}") from exc

    def move_file(self, old_path: str, new_path: str) -> None:
        old_path = self._checked(old_path, "Source path")
        new_path = self._checked(new_path, "Destination path")
        old_full = self._full_path(old_path)
        new_full = self._full_path(new_path)
        if not os.path.lexists(old_full):
            raise NotFoundError(f"Source file not found: {old_path}")
        if os.path.isdir(old_full):
            raise RemoteError(f"Source path is a directory, not a file: {old_path}")
        if os.path.lexists(new_full):
            raise RemoteError(f"Destination file already exists: {new_path}")
        try:
            os.makedirs(os.path.dirname(new_full), exist_ok=True)
            os.rename(old_full, new_full)
        except OSError as exc:
            raise RemoteError(f"Failed to move file: {exc}") from exc

    def move_folder(self, old_path: str, new_path: str) -> None:
        old_path = self._checked(old_path, "Source path")
        new_path = self._checked(new_path, "Destination path")
        if is_within(new_path, old_path):
            raise ValidationError("Cannot move a folder into itself")
        old_full = self._full_path(old_path)
        new_full = self._full_path(new_path)
        if not os.path.lexists(old_full):
            raise NotFoundError(f"Source folder not found: {old_path}")
        if not os.path.isdir(old_full):
            raise RemoteError(f"Source path is not a directory: {old_path}")
        if os.path.lexists(new_full):
            raise RemoteError(f"Destination folder already exists: {new_path}")
        try:
            os.makedirs(os.path.dirname(new_full), exist_ok=True)
            os.rename(old_full, new_full)
        except OSError as exc:
            raise RemoteError(f"Failed to move folder: {exc}") from exc

    def commit(self, message: str) -> str:
        """Stage every working-tree change, deletions included, and commit.

        Raises:
            ValidationError: If *message* is empty after trimming.
            RemoteError: If staging or committing fails.
        """
        message = message.strip()
        if not message:
            raise ValidationError("Commit message cannot be empty")

        files = [self._full_path(p) for p in self._working_files()]
        try:
            index = self._repo.open_index()
            removed = [
                name for name in index
                if not os.path.lexists(self._full_path(name.decode("utf-8", errors="surrogateescape")))
            ]
            for name in removed:
                del index[name]
            logger.debug("Staging %d files, dropping %d removed paths", len(files), len(removed))
            index.write()
            if files:
                porcelain.add(self._repo, paths=files)
            sha = porcelain.commit(
                self._repo,
                message=message.encode("utf-8"),
                author=self._identity,
                committer=self._identity,
            )
        except (OSError, KeyError, porcelain.Error) as exc:
            raise RemoteError(f"Failed to create commit: {exc}") from exc
        return sha.decode() if isinstance(sha, bytes) else str(sha)

    # --- Search ---

    def search_file_names(self, query: str) -> list[str]:
        return search.search_file_names(query, sorted(self._working_files()))

    def search_content(self, query: str) -> list[SearchResult]:
        return search.search_content(query, sorted(self._working_files()), self._read_working_file)
