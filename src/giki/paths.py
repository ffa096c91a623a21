"""Path helpers shared by the staging store, overlay and resolver.

Repository paths are canonical when they have no leading or trailing slash,
no empty segments, and no ``.`` or ``..`` segments.
"""

from __future__ import annotations

import os

from .exceptions import ValidationError

# Characters that cannot appear in a staged path.
RESERVED_CHARS = frozenset('\\:*?"<>|')


def clean_path(path: str | os.PathLike[str] | None) -> str:
    """Return *path* with slashes stripped and empty/``.`` segments dropped.

    Never raises.  ``..`` segments are kept as-is; use :func:`normalize_path`
    when they must be rejected.
    """
    if path is None:
        return ""
    path = os.fspath(path)
    segments = [seg for seg in path.split("/") if seg and seg != "."]
    return "/".join(segments)


def normalize_path(path: str | os.PathLike[str], *, what: str = "Path") -> str:
    """Normalize a user-supplied repository path, rejecting bad input.

    Raises:
        ValidationError: If the path is empty, contains a ``..`` segment,
            or contains a reserved or control character.
    """
    raw = os.fspath(path).strip()
    if not raw.strip("/"):
        raise ValidationError(f"{what} is required")
    for ch in raw:
        if ch in RESERVED_CHARS or ord(ch) < 0x20:
            raise ValidationError(f"{what} contains a reserved character: {ch!r}")
    segments = [seg for seg in raw.split("/") if seg and seg != "."]
    if ".." in segments:
        raise ValidationError(f'{what} cannot contain ".."')
    return "/".join(segments)


def basename(path: str) -> str:
    """Return the last segment of *path*."""
    return clean_path(path).rpartition("/")[2]


def dirname(path: str) -> str:
    """Return *path* without its last segment ("" for top-level paths)."""
    return clean_path(path).rpartition("/")[0]


def join(*parts: str) -> str:
    """Join path fragments, ignoring empty ones."""
    return clean_path("/".join(p for p in parts if p))


def is_within(path: str, folder: str) -> bool:
    """Return True if *path* lies strictly inside *folder*."""
    folder = clean_path(folder)
    return bool(folder) and clean_path(path).startswith(folder + "/")


def ancestors(path: str) -> list[str]:
    """Return the directory prefixes of *path*, outermost first.

    >>> ancestors("a/b/c.md")
    ['a', 'a/b']
    """
    segments = clean_path(path).split("/")
    return ["/".join(segments[: i + 1]) for i in range(len(segments) - 1)]


def is_external(reference: str) -> bool:
    """Return True for references with a scheme or protocol-relative host."""
    return "://" in reference or reference.startswith("//")


def is_absolute(reference: str) -> bool:
    """Return True for in-application absolute references."""
    return reference.startswith("/") and not reference.startswith("//")
