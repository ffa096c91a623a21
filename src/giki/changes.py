"""Pending changes: the in-memory staging log of an editing session."""

from __future__ import annotations

import dataclasses
from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum

from .paths import clean_path


class ChangeType(str, Enum):
    """Kind of pending change.

    Members: ``CREATE``, ``MODIFY``, ``DELETE``, ``MOVE``, ``MOVE_FOLDER``.
    """
    CREATE = "create"
    MODIFY = "modify"
    DELETE = "delete"
    MOVE = "move"
    MOVE_FOLDER = "move-folder"

    def __str__(self) -> str:          # noqa: D105
        return self.value

    @property
    def is_write(self) -> bool:
        """True for changes that carry file content."""
        return self in (ChangeType.CREATE, ChangeType.MODIFY)

    @property
    def is_move(self) -> bool:
        """True for file and folder moves."""
        return self in (ChangeType.MOVE, ChangeType.MOVE_FOLDER)


@dataclass(frozen=True, slots=True)
class PendingChange:
    """A single staged, uncommitted file-level mutation.

    *path* is always the target of the change and the key it is stored
    under.  Writes carry *content*; moves carry *old_path*.  Build instances
    with the :meth:`create`, :meth:`modify`, :meth:`delete`, :meth:`move`
    and :meth:`move_folder` constructors.
    """

    type: ChangeType
    path: str
    content: str | None = None
    old_path: str | None = None

    def __post_init__(self):
        kind = ChangeType(self.type)
        object.__setattr__(self, "type", kind)
        if not isinstance(self.path, str):
            raise ValueError("Change path must be a string")
        if self.content is not None and not isinstance(self.content, str):
            raise ValueError("Change content must be a string")
        if self.old_path is not None and not isinstance(self.old_path, str):
            raise ValueError("Change old path must be a string")
        if kind.is_write:
            if self.content is None:
                raise ValueError(f"{kind} change requires content")
            if self.old_path is not None:
                raise ValueError(f"{kind} change cannot have an old path")
        elif kind.is_move:
            if self.old_path is None:
                raise ValueError(f"{kind} change requires an old path")
            if self.content is not None:
                raise ValueError(f"{kind} change cannot have content")
        elif self.content is not None or self.old_path is not None:
            raise ValueError("delete change takes only a path")

    @classmethod
    def create(cls, path: str, content: str = "") -> PendingChange:
        return cls(ChangeType.CREATE, path, content=content)

    @classmethod
    def modify(cls, path: str, content: str) -> PendingChange:
        return cls(ChangeType.MODIFY, path, content=content)

    @classmethod
    def delete(cls, path: str) -> PendingChange:
        return cls(ChangeType.DELETE, path)

    @classmethod
    def move(cls, old_path: str, path: str) -> PendingChange:
        return cls(ChangeType.MOVE, path, old_path=old_path)

    @classmethod
    def move_folder(cls, old_path: str, path: str) -> PendingChange:
        return cls(ChangeType.MOVE_FOLDER, path, old_path=old_path)

    def normalized(self) -> PendingChange:
        """Return a copy with canonical *path* and *old_path*."""
        old_path = clean_path(self.old_path) if self.old_path is not None else None
        return dataclasses.replace(self, path=clean_path(self.path), old_path=old_path)

    def to_dict(self) -> dict:
        d: dict = {"type": self.type.value, "path": self.path}
        if self.content is not None:
            d["content"] = self.content
        if self.old_path is not None:
            d["oldPath"] = self.old_path
        return d

    @classmethod
    def from_dict(cls, data: dict) -> PendingChange:
        """Build a change from its JSON form (``oldPath`` in camelCase).

        Raises:
            ValueError: On an unknown type, a non-string field, or a field
                combination the type does not allow.
        """
        try:
            kind = ChangeType(data.get("type"))
        except ValueError:
            raise ValueError(f"Unknown change type: {data.get('type')!r}")
        return cls(kind, data.get("path"), content=data.get("content"),
                   old_path=data.get("oldPath"))


class PendingChangeStore:
    """Path-keyed log of pending changes with last-write-wins semantics.

    Holds at most one change per canonical target path.  Adding a change
    for a path that already has one replaces it and moves it to the end.
    Every method is total: empty, unknown and duplicate paths are all
    valid input.
    """

    def __init__(self):
        # dicts keep insertion order; re-adding a key must move it to the end
        self._changes: dict[str, PendingChange] = {}

    def __repr__(self) -> str:
        return f"PendingChangeStore(len={len(self)})"

    def __len__(self) -> int:
        return len(self._changes)

    def __iter__(self) -> Iterator[PendingChange]:
        return iter(list(self._changes.values()))

    def __contains__(self, path: str) -> bool:
        return clean_path(path) in self._changes

    def add_change(self, change: PendingChange) -> PendingChange:
        """Stage *change*, replacing any change already keyed by its path."""
        change = change.normalized()
        self._changes.pop(change.path, None)
        self._changes[change.path] = change
        return change

    def remove_change(self, path: str) -> None:
        """Drop the change keyed by *path*; no-op when there is none."""
        self._changes.pop(clean_path(path), None)

    def get_change(self, path: str) -> PendingChange | None:
        return self._changes.get(clean_path(path))

    def get_changes(self) -> list[PendingChange]:
        """Return the surviving changes in insertion order."""
        return list(self._changes.values())

    def clear_changes(self) -> None:
        self._changes.clear()

    def get_modified_content(self, path: str) -> str | None:
        """Return staged content for a ``modify`` change at exactly *path*.

        A ``create`` is deliberately not returned here: new files show up
        through the tree overlay, not as overrides of remote content.
        """
        change = self._changes.get(clean_path(path))
        if change is None or change.type is not ChangeType.MODIFY:
            return None
        return change.content
