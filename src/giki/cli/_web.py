"""serve — HTTP API for browsing and editing a repository."""

from __future__ import annotations

import json
import mimetypes
from urllib.parse import parse_qs, unquote

import click

from .. import resolver
from ..changes import PendingChange
from ..clone import (
    clone_remote, get_clone_path, is_remote_url, parse_git_url, pull_existing, remote_host,
)
from ..config import resolve_token_for_host
from ..exceptions import GikiError, NotFoundError, RemoteError, ValidationError
from ..paths import clean_path
from ..provider import SearchResult
from ..search import is_text
from ..session import EditSession
from ._helpers import main, _branch_option, _get_config, _open_provider


mimetypes.add_type("text/markdown", ".md")
mimetypes.add_type("application/geo+json", ".geojson")

_STATUS_TEXT = {
    200: "200 OK",
    400: "400 Bad Request",
    404: "404 Not Found",
    405: "405 Method Not Allowed",
    500: "500 Internal Server Error",
}


def _guess_mime(path, data=b""):
    """Return a MIME type for *path*, falling back to sniffing *data*."""
    mime, _ = mimetypes.guess_type(path)
    if mime is not None:
        return mime
    if data and is_text(data):
        return "text/plain; charset=utf-8"
    return "application/octet-stream"


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------

def _send(start_response, status, body, content_type):
    start_response(_STATUS_TEXT[status], [
        ("Content-Type", content_type),
        ("Content-Length", str(len(body))),
    ])
    return [body]


def _send_json(start_response, payload, status=200):
    body = json.dumps(payload).encode()
    return _send(start_response, status, body, "application/json")


def _send_error(start_response, status, message):
    return _send_json(start_response, {"error": message}, status)


def _error_status(exc: GikiError) -> int:
    if isinstance(exc, ValidationError):
        return 400
    if isinstance(exc, NotFoundError):
        return 404
    return 500


# ---------------------------------------------------------------------------
# Request parsing
# ---------------------------------------------------------------------------

class _Request:
    """The parts of a WSGI environ the handlers use."""

    def __init__(self, environ):
        self.environ = environ
        self.method = environ.get("REQUEST_METHOD", "GET").upper()
        self.path = environ.get("PATH_INFO", "/")
        self.query = parse_qs(environ.get("QUERY_STRING", ""))

    def arg(self, name, default=None):
        values = self.query.get(name)
        return values[0] if values else default

    def json(self) -> dict:
        """Return the JSON object body; anything else is a ValidationError."""
        try:
            length = int(self.environ.get("CONTENT_LENGTH") or 0)
        except ValueError:
            length = 0
        raw = self.environ["wsgi.input"].read(length) if length else b""
        try:
            data = json.loads(raw or b"null")
        except ValueError:
            raise ValidationError("invalid request body")
        if not isinstance(data, dict):
            raise ValidationError("invalid request body")
        return data


def _require(data: dict, *keys: str) -> list[str]:
    values = []
    for key in keys:
        value = data.get(key)
        if not isinstance(value, str) or not value.strip():
            raise ValidationError(f"{' and '.join(keys)} cannot be empty")
        values.append(value)
    return values


# ---------------------------------------------------------------------------
# WSGI app
# ---------------------------------------------------------------------------

def _make_app(provider, session=None, *, asset_prefix=resolver.DEFAULT_ASSET_PREFIX):
    """Return a WSGI application serving *provider* over the JSON API.

    *session* holds staged edits for the ``/api/changes`` endpoints; a new
    :class:`~giki.session.EditSession` is created when omitted.
    """
    if session is None:
        session = EditSession(provider)

    def _branch(req):
        return req.arg("branch") or session.branch

    # --- Repository service ---

    def tree(req):
        return provider.tree(_branch(req)).to_dict()

    def branches(req):
        return [b.to_dict() for b in provider.branches()]

    def status(req):
        return provider.status().to_dict()

    def search(req):
        results = provider.search(req.arg("q", ""), req.arg("type", "filename"))
        return [r.to_dict() if isinstance(r, SearchResult) else r for r in results]

    def write(req):
        data = req.json()
        (path,) = _require(data, "path")
        content = data.get("content", "")
        if not isinstance(content, str):
            raise ValidationError("content must be a string")
        provider.write_file(path, content)
        return {"success": True}

    def delete(req):
        (path,) = _require(req.json(), "path")
        provider.delete_file(path)
        return {"success": True}

    def move(req):
        old_path, new_path = _require(req.json(), "oldPath", "newPath")
        provider.move_file(old_path, new_path)
        return {"success": True}

    def move_folder(req):
        old_path, new_path = _require(req.json(), "oldPath", "newPath")
        provider.move_folder(old_path, new_path)
        return {"success": True}

    def commit(req):
        message = req.json().get("message") or ""
        if not isinstance(message, str) or not message.strip():
            raise ValidationError("commit message cannot be empty")
        return {"hash": provider.commit(message)}

    # --- Editing session ---

    def changes(req):
        if req.method == "POST":
            try:
                change = PendingChange.from_dict(req.json())
            except ValueError as exc:
                raise ValidationError(str(exc))
            staged = session.stage(change)
            return staged.to_dict() if staged is not None else {"success": True}
        return [c.to_dict() for c in session.changes()]

    def discard(req):
        (path,) = _require(req.json(), "path")
        session.discard(path)
        return {"success": True}

    def clear(req):
        session.discard_all()
        return {"success": True}

    def changes_tree(req):
        return session.tree().to_dict()

    def summary(req):
        return session.summary().to_dict()

    def changes_commit(req):
        message = req.json().get("message") or ""
        if not isinstance(message, str):
            raise ValidationError("commit message must be a string")
        return session.commit(message).to_dict()

    def switch_branch(req):
        data = req.json()
        (branch,) = _require(data, "branch")
        session.switch_branch(branch, discard=bool(data.get("discard", False)))
        return {"branch": session.branch}

    def resolve(req):
        ref = req.arg("ref", "")
        if not ref:
            raise ValidationError("ref cannot be empty")
        base = req.arg("base")
        kind = req.arg("kind", "link")
        if kind == "link":
            return {"path": resolver.resolve_link(ref, base)}
        if kind == "asset":
            return {"path": resolver.resolve_asset(ref, base, asset_prefix)}
        raise ValidationError("invalid kind: must be 'link' or 'asset'")

    routes = {
        "/api/tree": {"GET": tree},
        "/api/branches": {"GET": branches},
        "/api/status": {"GET": status},
        "/api/search": {"GET": search},
        "/api/write": {"POST": write},
        "/api/delete": {"POST": delete},
        "/api/move": {"POST": move},
        "/api/move-folder": {"POST": move_folder},
        "/api/commit": {"POST": commit},
        "/api/changes": {"GET": changes, "POST": changes},
        "/api/changes/discard": {"POST": discard},
        "/api/changes/clear": {"POST": clear},
        "/api/changes/tree": {"GET": changes_tree},
        "/api/changes/summary": {"GET": summary},
        "/api/changes/commit": {"POST": changes_commit},
        "/api/branch": {"POST": switch_branch},
        "/api/resolve": {"GET": resolve},
    }

    def serve_file(req, start_response):
        path = clean_path(unquote(req.path[len("/api/file/"):]))
        data = provider.file_content(path, _branch(req))
        return _send(start_response, 200, data, _guess_mime(path, data))

    def app(environ, start_response):
        req = _Request(environ)
        try:
            if req.path.startswith("/api/file/"):
                if req.method != "GET":
                    return _send_error(start_response, 405, "method not allowed")
                return serve_file(req, start_response)

            handlers = routes.get(req.path.rstrip("/") or "/")
            if handlers is None:
                return _send_error(start_response, 404, f"Not found: {req.path}")
            handler = handlers.get(req.method)
            if handler is None:
                return _send_error(start_response, 405, "method not allowed")
            return _send_json(start_response, handler(req))
        except GikiError as exc:
            return _send_error(start_response, _error_status(exc), str(exc))

    return app


# ---------------------------------------------------------------------------
# CLI command
# ---------------------------------------------------------------------------

def _prepare_source(ctx, source, token):
    """Return a local repository path for *source*, cloning URLs first."""
    if not is_remote_url(source):
        return source

    config = _get_config(ctx)
    try:
        target, exists = get_clone_path(source, config.clone_root)
    except ValidationError as exc:
        raise click.ClickException(str(exc))

    resolved = resolve_token_for_host(remote_host(source), token, config)
    if resolved:
        click.echo(f"Using token from {resolved.source}", err=True)

    try:
        if exists:
            if click.confirm(f"{target} already exists. Pull latest changes?", default=True):
                pull_existing(target, resolved.value)
                click.echo("Pulled latest changes.", err=True)
        else:
            owner, repo = parse_git_url(source)
            click.confirm(f"Clone {owner}/{repo} to {target}?", default=True, abort=True)
            clone_remote(source, target, resolved.value)
            click.echo(f"Cloned into {target}", err=True)
    except RemoteError as exc:
        raise click.ClickException(str(exc))
    return str(target)


@main.command()
@click.argument("source", required=False, default=".")
@click.option("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1).")
@click.option("--port", "-p", default=None, type=int,
              help="Port to listen on (default: from config, else 4242).")
@_branch_option
@click.option("--token", default=None,
              help="Access token for cloning private repositories.")
@click.option("--no-open", "no_open", is_flag=True, default=False,
              help="Do not open the browser on start.")
@click.option("--quiet", "-q", is_flag=True, default=False,
              help="Suppress per-request log output.")
@click.pass_context
def serve(ctx, source, host, port, branch, token, no_open, quiet):
    """Serve a repository for browsing and editing.

    SOURCE is a local repository path (default: current directory) or a
    remote URL, which is cloned under ~/.giki/repos/<owner>/<repo> first.

    \b
    Examples:
        giki serve
        giki serve ~/notes -p 8080 -b drafts
        giki serve https://github.com/owner/repo --token ghp_...
        giki serve git@github.com:owner/repo.git --no-open
    """
    from wsgiref.simple_server import make_server, WSGIRequestHandler

    path = _prepare_source(ctx, source, token)
    provider = _open_provider(ctx, path, branch)
    if port is None:
        port = _get_config(ctx).port

    app = _make_app(provider, EditSession(provider))

    if quiet:
        class _Handler(WSGIRequestHandler):
            def log_request(self, code="-", size="-"):
                pass
    else:
        class _Handler(WSGIRequestHandler):
            def log_request(self, code="-", size="-"):
                click.echo(
                    f"{self.client_address[0]} - {self.command} {self.path} {code}",
                    err=True,
                )

    try:
        server = make_server(host, port, app, handler_class=_Handler)
    except OSError as exc:
        raise click.ClickException(f"Port {port} is not available: {exc}")

    url = f"http://{host}:{server.server_port}/"
    click.echo(f"Serving {provider.path} (branch {provider.branch}) at {url}", err=True)
    click.echo("Press Ctrl+C to stop.", err=True)

    if not no_open:
        import webbrowser
        webbrowser.open(url)

    try:
        server.serve_forever()
    except KeyboardInterrupt:
        click.echo("\nStopped.", err=True)
    finally:
        server.server_close()
        provider.close()
