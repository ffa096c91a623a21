"""Shared helpers, option decorators, and the main CLI group."""

from __future__ import annotations

import logging
import os

import click

from ..config import GikiConfig, load_config
from ..exceptions import ConfigError, GikiError
from ..local import LocalProvider


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _get_config(ctx) -> GikiConfig:
    """Load the config file once per invocation."""
    config = ctx.obj.get("config")
    if config is None:
        try:
            config = load_config(ctx.obj.get("config_path"))
        except ConfigError as exc:
            raise click.ClickException(str(exc))
        ctx.obj["config"] = config
    return config


def _open_provider(ctx, path: str, branch: str | None = None) -> LocalProvider:
    """Open a local repository, turning failures into ClickExceptions."""
    config = _get_config(ctx)
    try:
        return LocalProvider(
            path, branch,
            author=config.author_name, email=config.author_email,
        )
    except GikiError as exc:
        raise click.ClickException(str(exc))


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# ---------------------------------------------------------------------------
# Option decorators
# ---------------------------------------------------------------------------

def _branch_option(f):
    """Shared --branch/-b option."""
    return click.option(
        "--branch", "-b", default=None,
        help="Branch to browse (default: the checked-out branch).",
    )(f)


def _path_argument(f):
    """Shared optional repository PATH argument (default: current directory)."""
    return click.argument(
        "path", required=False, default=".",
        type=click.Path(file_okay=False),
    )(f)


# ---------------------------------------------------------------------------
# Main group
# ---------------------------------------------------------------------------

@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Verbose output on stderr.")
@click.option("--config", "config_path", type=click.Path(dir_okay=False),
              envvar="GIKI_CONFIG", default=None,
              help="Config file (default: ~/.config/giki/config.toml).")
@click.pass_context
def main(ctx, verbose, config_path):
    """giki — browse and edit a git repository from the browser.

    Edits are staged in memory and written back as a single commit.

    \b
    Quick start:
      giki serve                 # current directory
      giki serve ~/notes -p 8080
      giki serve https://github.com/owner/repo
      giki search README
    """
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = os.path.expanduser(config_path) if config_path else None
    _configure_logging(verbose)
