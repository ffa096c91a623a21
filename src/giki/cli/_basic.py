"""Basic commands: status, branches, search, version."""

from __future__ import annotations

import json

import click

from .. import __version__
from ..exceptions import GikiError
from ._helpers import main, _branch_option, _open_provider, _path_argument


@main.command()
@_path_argument
@_branch_option
@click.option("--json", "as_json", is_flag=True, default=False,
              help="Output as JSON.")
@click.pass_context
def status(ctx, path, branch, as_json):
    """Show the repository location, branch and working-tree state."""
    provider = _open_provider(ctx, path, branch)
    try:
        st = provider.status()
    except GikiError as exc:
        raise click.ClickException(str(exc))
    finally:
        provider.close()

    if as_json:
        click.echo(json.dumps(st.to_dict(), indent=2))
        return
    click.echo(f"Repository: {st.source}")
    click.echo(f"Branch:     {st.branch}")
    click.echo(f"State:      {'dirty' if st.is_dirty else 'clean'}")


@main.command()
@_path_argument
@click.pass_context
def branches(ctx, path):
    """List local branches; the checked-out one is marked with '*'."""
    provider = _open_provider(ctx, path)
    try:
        for b in provider.branches():
            marker = "*" if b.is_default else " "
            click.echo(f"{marker} {b.name}")
    finally:
        provider.close()


@main.command()
@click.argument("query")
@_path_argument
@click.option("--content", "-c", is_flag=True, default=False,
              help="Search file contents instead of file names.")
@click.pass_context
def search(ctx, query, path, content):
    """Search file names (fuzzy) or file contents for QUERY.

    \b
    Examples:
        giki search readme
        giki search --content TODO ~/notes
    """
    provider = _open_provider(ctx, path)
    try:
        if content:
            for hit in provider.search_content(query):
                click.echo(f"{hit.path}:{hit.line_number}: {hit.line}")
        else:
            for name in provider.search_file_names(query):
                click.echo(name)
    except GikiError as exc:
        raise click.ClickException(str(exc))
    finally:
        provider.close()


@main.command()
def version():
    """Print the giki version."""
    click.echo(f"giki {__version__}")
