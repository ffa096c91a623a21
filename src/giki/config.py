"""User configuration: ``~/.config/giki/config.toml``.

Example::

    github_token = "ghp_..."
    author_name = "Ada Lovelace"
    author_email = "ada@example.com"
    port = 8080
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from .exceptions import ConfigError

DEFAULT_PORT = 4242
DEFAULT_AUTHOR_NAME = "Giki User"
DEFAULT_AUTHOR_EMAIL = "user@giki.local"

CONFIG_ENV = "GIKI_CONFIG"
GITHUB_TOKEN_ENV = "GIKI_GITHUB_TOKEN"
GITLAB_TOKEN_ENV = "GIKI_GITLAB_TOKEN"


def default_config_path() -> Path:
    env = os.environ.get(CONFIG_ENV)
    if env:
        return Path(env).expanduser()
    return Path.home() / ".config" / "giki" / "config.toml"


def default_clone_root() -> Path:
    return Path.home() / ".giki" / "repos"


@dataclass
class GikiConfig:
    github_token: str | None = None
    gitlab_token: str | None = None
    author_name: str = DEFAULT_AUTHOR_NAME
    author_email: str = DEFAULT_AUTHOR_EMAIL
    port: int = DEFAULT_PORT
    clone_root: Path | None = None

    def __post_init__(self):
        if self.clone_root is None:
            self.clone_root = default_clone_root()
        else:
            self.clone_root = Path(self.clone_root).expanduser()


def load_config(path: str | os.PathLike[str] | None = None) -> GikiConfig:
    """Load configuration from *path* (default: :func:`default_config_path`).

    A missing file yields the defaults.

    Raises:
        ConfigError: If the file is not valid TOML or a key has the wrong type.
    """
    config_path = Path(path) if path is not None else default_config_path()
    if not config_path.exists():
        return GikiConfig()

    try:
        with open(config_path, "rb") as f:
            raw = tomllib.load(f)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid config file {config_path}: {exc}") from exc

    port = raw.get("port", DEFAULT_PORT)
    if not isinstance(port, int) or isinstance(port, bool):
        raise ConfigError(f"Invalid config file {config_path}: port must be an integer")

    return GikiConfig(
        github_token=raw.get("github_token") or None,
        gitlab_token=raw.get("gitlab_token") or None,
        author_name=raw.get("author_name") or DEFAULT_AUTHOR_NAME,
        author_email=raw.get("author_email") or DEFAULT_AUTHOR_EMAIL,
        port=port,
        clone_root=raw.get("clone_root"),
    )


class TokenSource(str, Enum):
    """Where a resolved token came from."""
    CLI = "cli"
    CONFIG = "config"
    ENV = "env"
    NONE = "none"

    def __str__(self) -> str:          # noqa: D105
        return self.value


@dataclass(frozen=True)
class ResolvedToken:
    value: str | None
    source: TokenSource = TokenSource.NONE

    def __bool__(self) -> bool:
        return bool(self.value)


def _resolve_token(cli_token: str | None, config_token: str | None, env_var: str) -> ResolvedToken:
    # CLI flag > config file > environment
    if cli_token:
        return ResolvedToken(cli_token, TokenSource.CLI)
    if config_token:
        return ResolvedToken(config_token, TokenSource.CONFIG)
    env_token = os.environ.get(env_var)
    if env_token:
        return ResolvedToken(env_token, TokenSource.ENV)
    return ResolvedToken(None)


def resolve_github_token(cli_token: str | None, config: GikiConfig) -> ResolvedToken:
    return _resolve_token(cli_token, config.github_token, GITHUB_TOKEN_ENV)


def resolve_gitlab_token(cli_token: str | None, config: GikiConfig) -> ResolvedToken:
    return _resolve_token(cli_token, config.gitlab_token, GITLAB_TOKEN_ENV)


def resolve_token_for_host(host: str, cli_token: str | None, config: GikiConfig) -> ResolvedToken:
    """Pick the GitLab token for gitlab hosts and the GitHub token otherwise."""
    if "gitlab" in host.lower():
        return resolve_gitlab_token(cli_token, config)
    return resolve_github_token(cli_token, config)
