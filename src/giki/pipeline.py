"""Flush pending changes to the repository service as one commit."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from .changes import ChangeType, PendingChange, PendingChangeStore
from .exceptions import GikiError, RemoteError, ValidationError
from .provider import GitProvider

logger = logging.getLogger(__name__)


@dataclass
class CommitResult:
    """Outcome of a successful :meth:`CommitPipeline.commit`.

    Attributes:
        commit_id: Hash returned by the repository service.
        message: The (trimmed) commit message.
        changes: The changes that were flushed, in application order.
    """
    commit_id: str
    message: str
    changes: list[PendingChange] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "hash": self.commit_id,
            "message": self.message,
            "changes": [c.to_dict() for c in self.changes],
        }


def order_changes(changes: Iterable[PendingChange]) -> list[PendingChange]:
    """Return *changes* in application order.

    Deletes first, then file and folder moves, then creates and modifies.
    Insertion order is kept within each group.

    Raises:
        TypeError: On an unknown change type.
    """
    deletes, moves, writes = [], [], []
    for change in changes:
        if change.type is ChangeType.DELETE:
            deletes.append(change)
        elif change.type is ChangeType.MOVE or change.type is ChangeType.MOVE_FOLDER:
            moves.append(change)
        elif change.type is ChangeType.CREATE or change.type is ChangeType.MODIFY:
            writes.append(change)
        else:
            raise TypeError(f"Unknown change type: {change.type!r}")
    return deletes + moves + writes


class CommitPipeline:
    """Apply pending changes through a :class:`~giki.provider.GitProvider`.

    Remote calls run strictly one after another.  The first failure aborts
    the run with a :class:`~giki.exceptions.RemoteError`; calls already made
    are not rolled back and the store keeps every change.  Only a fully
    successful run clears the store.

    Args:
        service: Repository service receiving the calls.
        store: Store to clear on success, or None when the caller manages
            its own change list.
    """

    def __init__(self, service: GitProvider, store: PendingChangeStore | None = None):
        self.service = service
        self.store = store

    def plan(self, changes: Iterable[PendingChange]) -> list[PendingChange]:
        return order_changes(changes)

    def _apply(self, change: PendingChange) -> None:
        if change.type is ChangeType.DELETE:
            op, target = "delete", change.path
            call = lambda: self.service.delete_file(change.path)
        elif change.type is ChangeType.MOVE:
            op, target = "move", f"{change.old_path} to {change.path}"
            call = lambda: self.service.move_file(change.old_path, change.path)
        elif change.type is ChangeType.MOVE_FOLDER:
            op, target = "move folder", f"{change.old_path} to {change.path}"
            call = lambda: self.service.move_folder(change.old_path, change.path)
        elif change.type is ChangeType.CREATE or change.type is ChangeType.MODIFY:
            op, target = "write", change.path
            call = lambda: self.service.write_file(change.path, change.content)
        else:
            raise TypeError(f"Unknown change type: {change.type!r}")

        logger.debug("%s %s", op, target)
        try:
            call()
        except (GikiError, OSError) as exc:
            raise RemoteError(f"failed to {op} {target}: {exc}") from exc

    def commit(self, changes: Iterable[PendingChange], message: str) -> CommitResult:
        """Flush *changes* in order, then create one commit with *message*.

        Raises:
            ValidationError: If *message* is blank or *changes* is empty; no
                remote call has been made.
            RemoteError: If any remote call fails.
        """
        message = (message or "").strip()
        if not message:
            raise ValidationError("Commit message cannot be empty")
        ordered = self.plan(changes)
        if not ordered:
            raise ValidationError("No changes to commit")

        for change in ordered:
            self._apply(change)

        logger.debug("commit %r", message)
        try:
            commit_id = self.service.commit(message)
        except (GikiError, OSError) as exc:
            raise RemoteError(f"failed to commit: {exc}") from exc

        logger.info("Created commit %s (%d changes)", commit_id[:12], len(ordered))
        if self.store is not None:
            self.store.clear_changes()
        return CommitResult(commit_id, message, ordered)
