"""EditSession: one user's staged edits against one repository service.

The session owns the single :class:`~giki.changes.PendingChangeStore` of an
editing session and hands the same instance to the overlay and the commit
pipeline.  Its methods perform the checks the editing dialogs need before a
change is staged; nothing reaches the repository service until
:meth:`EditSession.commit`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace

from .changes import ChangeType, PendingChange, PendingChangeStore
from .exceptions import NotFoundError, ValidationError
from .overlay import TreeNode, extract_all_paths, find_node_by_path, merge_tree, walk
from .paths import clean_path, is_within, join, normalize_path
from .pipeline import CommitPipeline, CommitResult
from .provider import GitProvider

logger = logging.getLogger(__name__)

GITKEEP = ".gitkeep"


@dataclass
class ChangeSummary:
    created: int = 0
    modified: int = 0
    deleted: int = 0
    moved: int = 0

    @property
    def total(self) -> int:
        return self.created + self.modified + self.deleted + self.moved

    def to_dict(self) -> dict:
        return {
            "created": self.created,
            "modified": self.modified,
            "deleted": self.deleted,
            "moved": self.moved,
            "total": self.total,
        }


class EditSession:
    """Stage edits against *provider* and commit them in one go.

    Args:
        provider: Repository service.
        branch: Branch to browse; the service's own branch when None.
    """

    def __init__(self, provider: GitProvider, branch: str | None = None):
        self.provider = provider
        self.branch = branch
        self.store = PendingChangeStore()
        self.pipeline = CommitPipeline(provider, self.store)

    def __repr__(self) -> str:
        return f"EditSession({self.provider!r}, branch={self.branch!r}, pending={len(self.store)})"

    # --- Reads ---

    def remote_tree(self) -> TreeNode:
        return self.provider.tree(self.branch)

    def tree(self) -> TreeNode:
        """Return the remote tree with pending changes applied."""
        return merge_tree(self.remote_tree(), self.store.get_changes())

    def existing_paths(self) -> list[str]:
        """Return the file paths of the overlaid tree."""
        return extract_all_paths(self.tree())

    def exists(self, path: str) -> bool:
        """Return True if a file or folder sits at *path* in the overlaid tree."""
        path = clean_path(path)
        return bool(path) and find_node_by_path(self.tree(), path) is not None

    def read_file(self, path: str) -> str:
        """Return staged ``modify`` content for *path*, else the remote text.

        Raises:
            NotFoundError: If the file does not exist remotely.
        """
        staged = self.store.get_modified_content(path)
        if staged is not None:
            return staged
        return self.provider.read_text(path, self.branch)

    # --- Staging ---

    def create_file(self, path: str, content: str = "") -> PendingChange:
        path = normalize_path(path, what="File path")
        if self.exists(path):
            raise ValidationError("File already exists")
        return self.store.add_change(PendingChange.create(path, content))

    def create_folder(self, path: str) -> PendingChange:
        """Stage an empty folder as a ``.gitkeep`` file inside it."""
        path = normalize_path(path, what="Folder path")
        tree = self.tree()
        taken = find_node_by_path(tree, path) is not None or any(
            is_within(node.path, path) for node in walk(tree.children)
        )
        if taken:
            raise ValidationError("A folder with this path already exists")
        return self.store.add_change(PendingChange.create(join(path, GITKEEP), ""))

    def edit_file(self, path: str, content: str) -> PendingChange:
        """Stage new *content* for *path*.

        Editing a file that is itself a pending create keeps it a create.
        Editing the target of a pending move stages a delete of the source
        and a create of the target.
        """
        path = normalize_path(path, what="File path")
        pending = self.store.get_change(path)
        if pending is not None and pending.type is ChangeType.CREATE:
            return self.store.add_change(PendingChange.create(path, content))
        if pending is not None and pending.type is ChangeType.MOVE:
            self.store.add_change(PendingChange.delete(pending.old_path))
            return self.store.add_change(PendingChange.create(path, content))
        return self.store.add_change(PendingChange.modify(path, content))

    def delete_file(self, path: str) -> PendingChange | None:
        """Stage a delete of *path*, or drop it if it is only a pending create.

        Deleting the target of a pending move deletes the move's source.
        Returns the staged change, or None when a pending create was dropped.
        """
        path = normalize_path(path, what="File path")
        pending = self.store.get_change(path)
        if pending is not None and pending.type is ChangeType.CREATE:
            self.store.remove_change(path)
            return None
        if pending is not None and pending.type is ChangeType.MOVE:
            self.store.remove_change(path)
            return self.store.add_change(PendingChange.delete(pending.old_path))
        return self.store.add_change(PendingChange.delete(path))

    def rename(self, current: str, new: str, *, is_folder: bool = False) -> PendingChange | None:
        """Stage a move of the file or folder at *current* to *new*.

        Renaming the target of a pending move restages it as one move from
        the original source.  Returns the staged change, or None when that
        move ends up back at its source and is dropped.

        Raises:
            ValidationError: If *new* is empty or invalid, equals *current*,
                lies inside *current* (folders), or is already taken.
        """
        new = normalize_path(new, what="File path")
        current = normalize_path(current, what="File path")
        if new == current:
            raise ValidationError("New path is the same as current path")
        if is_folder and is_within(new, current):
            raise ValidationError("Cannot move a folder into itself")
        if self.exists(new):
            raise ValidationError("A file already exists at this path")

        pending = self.store.get_change(current)
        if pending is not None and pending.type is (
            ChangeType.MOVE_FOLDER if is_folder else ChangeType.MOVE
        ):
            if is_folder and is_within(new, pending.old_path):
                raise ValidationError("Cannot move a folder into itself")
            self.store.remove_change(current)
            if pending.old_path == new:
                return None
            return self.store.add_change(replace(pending, path=new))

        if is_folder:
            return self.store.add_change(PendingChange.move_folder(current, new))

        if pending is not None and pending.type is ChangeType.CREATE:
            self.store.remove_change(current)
            return self.store.add_change(PendingChange.create(new, pending.content))
        if pending is not None and pending.type is ChangeType.MODIFY:
            # writes run after moves, so an edited file moves as delete + create
            self.store.add_change(PendingChange.delete(current))
            return self.store.add_change(PendingChange.create(new, pending.content))
        return self.store.add_change(PendingChange.move(current, new))

    def stage(self, change: PendingChange) -> PendingChange | None:
        """Stage *change* through the checked method for its type.

        Returns what that method returns.

        Raises:
            ValidationError: If the checked method rejects the change.
            TypeError: On an unknown change type.
        """
        if change.type is ChangeType.CREATE:
            return self.create_file(change.path, change.content)
        if change.type is ChangeType.MODIFY:
            return self.edit_file(change.path, change.content)
        if change.type is ChangeType.DELETE:
            return self.delete_file(change.path)
        if change.type is ChangeType.MOVE:
            return self.rename(change.old_path, change.path)
        if change.type is ChangeType.MOVE_FOLDER:
            return self.rename(change.old_path, change.path, is_folder=True)
        raise TypeError(f"Unknown change type: {change.type!r}")

    def discard(self, path: str) -> None:
        self.store.remove_change(path)

    def discard_all(self) -> None:
        self.store.clear_changes()

    def changes(self) -> list[PendingChange]:
        return self.store.get_changes()

    def summary(self) -> ChangeSummary:
        summary = ChangeSummary()
        for change in self.store:
            if change.type is ChangeType.CREATE:
                summary.created += 1
            elif change.type is ChangeType.MODIFY:
                summary.modified += 1
            elif change.type is ChangeType.DELETE:
                summary.deleted += 1
            elif change.type is ChangeType.MOVE or change.type is ChangeType.MOVE_FOLDER:
                summary.moved += 1
            else:
                raise TypeError(f"Unknown change type: {change.type!r}")
        return summary

    # --- Commit and branches ---

    def commit(self, message: str) -> CommitResult:
        """Commit every pending change; the store is cleared on success."""
        return self.pipeline.commit(self.store.get_changes(), message)

    def switch_branch(self, branch: str, *, discard: bool = False) -> None:
        """Browse *branch* from now on.

        Raises:
            ValidationError: If changes are pending and *discard* is False.
            NotFoundError: If *branch* does not exist.
        """
        if len(self.store) and not discard:
            raise ValidationError(
                f"Cannot switch branch with {len(self.store)} pending change(s); "
                "commit or discard them first"
            )
        if branch not in {b.name for b in self.provider.branches()}:
            raise NotFoundError(f"Branch {branch!r} not found")
        if len(self.store):
            logger.info("Discarding %d pending change(s) to switch to %s", len(self.store), branch)
            self.store.clear_changes()
        self.branch = branch
