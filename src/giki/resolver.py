"""Resolve markdown link and image references against the current document.

Links and images share :func:`resolve` but are post-processed differently:
links become in-app routes as-is (:func:`resolve_link`), while images are
additionally mounted under the file-content endpoint (:func:`resolve_asset`).
Keep the two apart; prefixing a navigation route with the asset endpoint
breaks in-app navigation.
"""

from __future__ import annotations

from .paths import is_external

DEFAULT_ASSET_PREFIX = "/api/file"


def resolve(reference: str, base_path: str | None = None) -> str:
    """Resolve *reference* relative to the directory *base_path*.

    External references (``scheme://...`` or ``//host/...``) and absolute
    references (``/...``) are returned unchanged.  Otherwise a leading
    ``./`` is dropped and the reference is joined onto *base_path*; each
    leading ``../`` drops one trailing segment of *base_path*, clamping at
    the repository root.

    >>> resolve("../README.md", "docs/guide")
    '/docs/README.md'
    >>> resolve("./file.md", "docs")
    '/docs/file.md'
    """
    if is_external(reference):
        return reference
    if reference.startswith("/"):
        return reference

    if reference.startswith("./"):
        reference = reference[2:]

    base_segments = [seg for seg in (base_path or "").split("/") if seg]

    # checked before the empty-base case so "../x" clamps to "/x" at the root
    if reference.startswith("../"):
        ref_segments = reference.split("/")
        up = 0
        for seg in ref_segments:
            if seg != "..":
                break
            up += 1
        remaining = base_segments[: max(len(base_segments) - up, 0)]
        return "/" + "/".join(remaining + ref_segments[up:])

    if not base_segments:
        return "/" + reference

    return "/" + "/".join(base_segments) + "/" + reference


def resolve_link(reference: str, base_path: str | None = None) -> str:
    """Resolve a navigation link into an in-app route."""
    return resolve(reference, base_path)


def resolve_asset(
    reference: str,
    base_path: str | None = None,
    prefix: str = DEFAULT_ASSET_PREFIX,
) -> str:
    """Resolve an image/asset reference into a fetchable URL.

    Non-external references are mounted under *prefix*, the base path of
    the file-content endpoint.  External references pass through untouched.
    """
    if is_external(reference):
        return reference
    resolved = resolve(reference, base_path)
    return prefix.rstrip("/") + resolved
