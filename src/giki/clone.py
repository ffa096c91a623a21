"""Clone and refresh remote repositories under the local clone root."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from urllib.parse import quote, urlparse, urlunparse

from dulwich import porcelain
from dulwich.errors import GitProtocolError, HangupException, NotGitRepository
from dulwich.repo import Repo

from .exceptions import RemoteError, ValidationError

logger = logging.getLogger(__name__)

_ORIGIN = (b"remote", b"origin")


def is_remote_url(source: str) -> bool:
    """Return True if *source* looks like a clonable URL rather than a path."""
    source = source.strip()
    return source.startswith(("https://", "http://", "ssh://", "git@"))


def _owner_repo(path: str, url: str) -> tuple[str, str]:
    path = path.strip()
    if path.endswith(".git"):
        path = path[:-4]
    parts = path.split("/")
    if len(parts) < 2:
        raise ValidationError(f"Invalid repository path in URL: {url}")
    owner, repo = parts[-2], parts[-1]
    if not owner or not repo:
        raise ValidationError(f"Invalid URL, empty owner or repo name: {url}")
    return owner, repo


def parse_git_url(url: str) -> tuple[str, str]:
    """Return ``(owner, repo)`` for a git remote URL.

    Accepts ``https://host/owner/repo``, ``http://...``,
    ``ssh://git@host/owner/repo`` and ``git@host:owner/repo``, each with an
    optional ``.git`` suffix.  Extra leading path segments are ignored.

    >>> parse_git_url("git@github.com:owner/repo.git")
    ('owner', 'repo')

    Raises:
        ValidationError: If the URL is not in one of the supported forms.
    """
    url = url.strip()

    if url.startswith("git@"):
        _, sep, path = url.partition(":")
        if not sep:
            raise ValidationError(f"Invalid SSH URL format: {url}")
        return _owner_repo(path, url)

    for scheme in ("https://", "http://", "ssh://"):
        if url.startswith(scheme):
            rest = url[len(scheme):]
            if scheme == "ssh://":
                rest = rest.partition("@")[2] or rest
            parts = rest.split("/")
            if len(parts) < 3:
                raise ValidationError(f"Invalid URL format: {url}")
            return _owner_repo("/".join(parts[1:]), url)

    raise ValidationError(f"Unsupported URL format: {url!r}")


def remote_host(url: str) -> str:
    """Return the host name of a remote URL ("" when there is none)."""
    url = url.strip()
    if url.startswith("git@"):
        return url[len("git@"):].partition(":")[0]
    return urlparse(url).hostname or ""


def get_clone_path(url: str, root: str | os.PathLike[str]) -> tuple[Path, bool]:
    """Return where *url* clones to under *root*, and whether it exists.

    The path is ``<root>/<owner>/<repo>``; it exists when it already holds
    a ``.git`` directory.
    """
    owner, repo = parse_git_url(url)
    target = Path(root).expanduser() / owner / repo
    return target, (target / ".git").is_dir()


def inject_token(url: str, token: str | None) -> str:
    """Embed *token* into an HTTPS *url* as ``x-access-token:<token>@host``.

    Non-HTTPS URLs and URLs that already carry credentials are returned
    unchanged.
    """
    if not token or not url.startswith("https://"):
        return url
    parsed = urlparse(url)
    if parsed.username:
        return url
    netloc = f"x-access-token:{quote(token, safe='')}@{parsed.hostname}"
    if parsed.port:
        netloc += f":{parsed.port}"
    return urlunparse(parsed._replace(netloc=netloc))


def _set_origin(path: str | os.PathLike[str], url: str) -> None:
    with Repo(os.fspath(path)) as repo:
        config = repo.get_config()
        config.set(_ORIGIN, b"url", url.encode())
        config.write_to_path()


def clone_remote(url: str, target: str | os.PathLike[str], token: str | None = None) -> Path:
    """Clone *url* into *target*, creating parent directories.

    With a *token* the clone authenticates over HTTPS; the stored
    ``origin`` URL is reset to the token-free *url* afterwards.

    Raises:
        RemoteError: If the clone fails.
    """
    url = url.strip()
    target = Path(target)
    target.parent.mkdir(parents=True, exist_ok=True)
    logger.info("Cloning %s into %s", url, target)
    try:
        porcelain.clone(inject_token(url, token), os.fspath(target), checkout=True)
        if token:
            _set_origin(target, url)
    except (OSError, GitProtocolError, HangupException, NotGitRepository,
            porcelain.Error) as exc:
        raise RemoteError(f"Failed to clone repository: {exc}") from exc
    return target


def pull_existing(path: str | os.PathLike[str], token: str | None = None) -> None:
    """Pull the latest changes from ``origin`` into the clone at *path*.

    Raises:
        RemoteError: If *path* is not a repository, has no origin, or the
            pull fails.
    """
    try:
        with Repo(os.fspath(path)) as repo:
            origin = repo.get_config().get(_ORIGIN, b"url").decode()
    except NotGitRepository as exc:
        raise RemoteError(f"Failed to open repository: {exc}") from exc
    except KeyError:
        raise RemoteError("No upstream remote configured")

    logger.info("Pulling %s into %s", origin, path)
    try:
        porcelain.pull(os.fspath(path), inject_token(origin, token))
    except (OSError, GitProtocolError, HangupException, porcelain.Error) as exc:
        raise RemoteError(f"Failed to pull: {exc}") from exc
