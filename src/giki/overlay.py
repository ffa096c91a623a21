"""Tree snapshots and the pending-change overlay.

A remote snapshot is a :class:`TreeNode` hierarchy fetched from the
repository service.  :func:`merge` derives the tree the UI should render by
applying pending changes on top of it; the snapshot itself is never touched.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field

from .changes import ChangeType, PendingChange
from .paths import ancestors, basename, clean_path, is_within


@dataclass
class TreeNode:
    """A file or directory in a repository tree.

    Attributes:
        name: Last path segment ("" for the root).
        path: Canonical repository path ("" for the root).
        is_dir: True for directories.
        children: Child nodes; always empty for files.
    """
    name: str
    path: str
    is_dir: bool
    children: list[TreeNode] = field(default_factory=list)

    def to_dict(self) -> dict:
        d: dict = {"name": self.name, "path": self.path, "isDir": self.is_dir}
        if self.children:
            d["children"] = [c.to_dict() for c in self.children]
        return d

    @classmethod
    def from_dict(cls, data: dict) -> TreeNode:
        return cls(
            name=data.get("name", ""),
            path=data.get("path", ""),
            is_dir=bool(data.get("isDir", False)),
            children=[cls.from_dict(c) for c in data.get("children") or ()],
        )


def _sort_key(node: TreeNode):
    return (not node.is_dir, node.name.lower())


def sort_nodes(nodes: list[TreeNode]) -> list[TreeNode]:
    """Sort *nodes* in place at every level: directories first, then by name."""
    nodes.sort(key=_sort_key)
    for node in nodes:
        if node.children:
            sort_nodes(node.children)
    return nodes


def build_tree(paths: Iterable[str]) -> TreeNode:
    """Build a sorted tree from file paths; directories are implicit."""
    root = TreeNode("", "", True)
    for path in sorted(paths):
        path = clean_path(path)
        if path:
            _insert(root.children, path, is_dir=False)
    sort_nodes(root.children)
    return root


def walk(nodes: Iterable[TreeNode]) -> Iterator[TreeNode]:
    """Yield every node depth-first, parents before children."""
    for node in nodes:
        yield node
        yield from walk(node.children)


def find_node_by_path(root: TreeNode, path: str) -> TreeNode | None:
    """Return the first node under *root* (inclusive) whose path is *path*.

    Leading and trailing slashes on *path* are ignored.
    """
    target = clean_path(path)
    for node in walk([root]):
        if node.path == target:
            return node
    return None


def extract_all_paths(root: TreeNode) -> list[str]:
    """Return the paths of every file under *root*, depth-first."""
    return [n.path for n in walk(root.children) if not n.is_dir]


# ---------------------------------------------------------------------------
# Overlay
# ---------------------------------------------------------------------------

def _prune(nodes: list[TreeNode], hidden: set[str]) -> list[TreeNode]:
    """Deep-copy *nodes*, dropping any node whose path is in *hidden*."""
    result = []
    for node in nodes:
        if node.path in hidden:
            continue
        result.append(TreeNode(node.name, node.path, node.is_dir, _prune(node.children, hidden)))
    return result


def _relocate(nodes: list[TreeNode], old_prefix: str, new_prefix: str) -> list[TreeNode]:
    """Deep-copy *nodes* with paths moved from *old_prefix* to *new_prefix*."""
    result = []
    for node in nodes:
        path = new_prefix + node.path[len(old_prefix):]
        result.append(TreeNode(node.name, path, node.is_dir,
                               _relocate(node.children, old_prefix, new_prefix)))
    return result


def _find(nodes: list[TreeNode], path: str) -> TreeNode | None:
    for node in nodes:
        if node.path == path:
            return node
    return None


def _merge_children(target: list[TreeNode], incoming: list[TreeNode]) -> None:
    """Add *incoming* nodes to *target*, merging directories with equal paths."""
    for node in incoming:
        existing = _find(target, node.path)
        if existing is None:
            target.append(node)
        elif existing.is_dir and node.is_dir:
            _merge_children(existing.children, node.children)


def _insert(
    nodes: list[TreeNode],
    path: str,
    *,
    is_dir: bool,
    children: list[TreeNode] | None = None,
    base: str = "",
) -> None:
    """Insert a node at *path* into *nodes*, the children of *base*.

    Missing ancestor directories between *base* and *path* are synthesized.
    Does nothing when a node already sits at *path* (a directory there
    absorbs *children*), or when an ancestor slot is taken by a file.
    """
    level = nodes
    for prefix in ancestors(path):
        if base and not is_within(prefix, base):
            continue
        parent = _find(level, prefix)
        if parent is None:
            parent = TreeNode(basename(prefix), prefix, True)
            level.append(parent)
        elif not parent.is_dir:
            return
        level = parent.children

    existing = _find(level, path)
    if existing is None:
        level.append(TreeNode(basename(path), path, is_dir, list(children or ())))
    elif existing.is_dir and is_dir and children:
        _merge_children(existing.children, children)


def merge(
    remote_children: list[TreeNode],
    changes: Iterable[PendingChange],
    parent: str = "",
) -> list[TreeNode]:
    """Return *remote_children* with *changes* applied, ready to render.

    *remote_children* are the children of the directory at *parent* in a
    remote snapshot ("" for the root).  Deleted and moved-away paths are
    hidden, creates and move targets are inserted at any depth below
    *parent* (changes outside it are ignored), and every level is sorted
    directories first, then case-insensitively by name.

    The result never contains two nodes with the same path, and a pending
    delete always hides its path even if the snapshot still has it.
    """
    parent = clean_path(parent)
    changes = list(changes)

    hidden: set[str] = set()
    for change in changes:
        if change.type is ChangeType.DELETE:
            hidden.add(change.path)
        elif change.type is ChangeType.MOVE or change.type is ChangeType.MOVE_FOLDER:
            hidden.add(change.old_path)

    merged = _prune(remote_children, hidden)

    for i, change in enumerate(changes):
        if parent and not is_within(change.path, parent):
            continue
        if _moved_on(change, changes[i + 1:]):
            continue
        if change.type is ChangeType.CREATE or change.type is ChangeType.MOVE:
            _insert(merged, change.path, is_dir=False, base=parent)
        elif change.type is ChangeType.MOVE_FOLDER:
            source = _find_in(remote_children, change.old_path)
            children = []
            if source is not None and source.is_dir:
                # deletes run before moves on commit, so they apply at the old location
                children = _relocate(_prune(source.children, hidden), change.old_path, change.path)
            _insert(merged, change.path, is_dir=True, children=children, base=parent)
        elif change.type is ChangeType.MODIFY or change.type is ChangeType.DELETE:
            pass
        else:
            raise TypeError(f"Unknown change type: {change.type!r}")

    return sort_nodes(merged)


def _moved_on(change: PendingChange, later: list[PendingChange]) -> bool:
    """True if a later move takes *change*'s move target away again."""
    if change.type is not ChangeType.MOVE and change.type is not ChangeType.MOVE_FOLDER:
        return False
    return any(
        (c.type is ChangeType.MOVE or c.type is ChangeType.MOVE_FOLDER)
        and c.old_path == change.path
        for c in later
    )


def _find_in(nodes: list[TreeNode], path: str) -> TreeNode | None:
    for node in walk(nodes):
        if node.path == path:
            return node
    return None


def merge_tree(root: TreeNode, changes: Iterable[PendingChange]) -> TreeNode:
    """Return a new root with :func:`merge` applied to *root*'s children."""
    return TreeNode(root.name, root.path, True, merge(root.children, changes, root.path))
