"""giki — stage edits to a git repository and commit them in one go."""

__version__ = "0.1.0"

from .changes import ChangeType, PendingChange, PendingChangeStore
from .exceptions import ConfigError, GikiError, NotFoundError, RemoteError, ValidationError
from .local import LocalProvider
from .overlay import TreeNode, find_node_by_path, merge, merge_tree
from .pipeline import CommitPipeline, CommitResult
from .provider import BranchInfo, GitProvider, RepoStatus, SearchKind, SearchResult
from .resolver import resolve, resolve_asset, resolve_link
from .session import EditSession

__all__ = [
    "ChangeType", "PendingChange", "PendingChangeStore",
    "GikiError", "ValidationError", "RemoteError", "NotFoundError", "ConfigError",
    "GitProvider", "LocalProvider", "BranchInfo", "RepoStatus", "SearchKind", "SearchResult",
    "TreeNode", "merge", "merge_tree", "find_node_by_path",
    "resolve", "resolve_link", "resolve_asset",
    "CommitPipeline", "CommitResult", "EditSession",
]
