"""Filename and full-text search helpers."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable

from .provider import SearchResult

logger = logging.getLogger(__name__)

MAX_RESULTS = 50
TEXT_SAMPLE_SIZE = 8192

SCORE_EXACT = 1000
SCORE_SUBSTRING = 100
SCORE_SUBSEQUENCE = 50


def fuzzy_match_score(query: str, path: str) -> int:
    """Score how well *query* matches *path* (both already lower-cased).

    1000 for an exact match, 100 for a substring, 50 when every query
    character appears in order, 0 otherwise.
    """
    if query == path:
        return SCORE_EXACT
    if query in path:
        return SCORE_SUBSTRING
    i = 0
    for ch in path:
        if i < len(query) and ch == query[i]:
            i += 1
    if i == len(query):
        return SCORE_SUBSEQUENCE
    return 0


def search_file_names(query: str, paths: Iterable[str], limit: int = MAX_RESULTS) -> list[str]:
    """Return *paths* matching *query*, best score first, then shortest."""
    if not query:
        return []
    q = query.lower()
    scored = []
    for path in paths:
        score = fuzzy_match_score(q, path.lower())
        if score > 0:
            scored.append((score, path))
    scored.sort(key=lambda item: (-item[0], len(item[1])))
    return [path for _, path in scored[:limit]]


def is_text(data: bytes) -> bool:
    """Heuristic text check: no NUL byte and valid UTF-8 in the first 8 KiB."""
    sample = data[:TEXT_SAMPLE_SIZE]
    if b"\x00" in sample:
        return False
    try:
        sample.decode("utf-8")
    except UnicodeDecodeError as exc:
        # a multi-byte character cut off by the sample boundary is still text
        return len(sample) == TEXT_SAMPLE_SIZE and exc.start >= len(sample) - 3
    return True


def search_lines(path: str, text: str, query: str) -> list[SearchResult]:
    """Return every line of *text* containing *query*, case-insensitively."""
    q = query.lower()
    lines = text.splitlines()
    results = []
    for i, line in enumerate(lines):
        start = line.lower().find(q)
        if start < 0:
            continue
        context = lines[max(i - 1, 0): i + 2]
        results.append(SearchResult(
            path=path,
            line_number=i + 1,
            context=context,
            match_text=line[start:start + len(query)],
        ))
    return results


def search_content(
    query: str,
    paths: Iterable[str],
    read: Callable[[str], bytes],
    limit: int = MAX_RESULTS,
) -> list[SearchResult]:
    """Search the text files among *paths*, reading each through *read*.

    Binary files are skipped.  *read* may raise :class:`OSError` for
    unreadable files; those are skipped too.
    """
    if not query:
        return []
    results: list[SearchResult] = []
    for path in paths:
        try:
            data = read(path)
        except OSError as exc:
            logger.debug("Skipping unreadable file %s: %s", path, exc)
            continue
        if not is_text(data):
            continue
        results.extend(search_lines(path, data.decode("utf-8", errors="replace"), query))
        if len(results) >= limit:
            break
    return results[:limit]
