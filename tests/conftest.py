"""Shared fixtures for giki tests."""

import pytest
from click.testing import CliRunner
from dulwich import porcelain

from giki.exceptions import NotFoundError, RemoteError
from giki.local import LocalProvider
from giki.overlay import build_tree
from giki.provider import BranchInfo, GitProvider, RepoStatus
from giki.search import search_file_names

AUTHOR = b"Test User <test@example.com>"

INITIAL_FILES = {
    "README.md": b"# Hello\n\nWelcome to giki.\nSee docs/guide.md\n",
    "docs/guide.md": b"Guide\nRead the README first.\n",
    "docs/api/v1.md": b"# API v1\n",
    "src/main.py": b"print('hello')\n",
    "image.png": b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR",
    ".gitignore": b"build/\n*.log\n",
}


def write_files(root, files):
    """Write ``{relative path: bytes}`` under *root*, creating directories."""
    for rel, data in files.items():
        target = root.joinpath(*rel.split("/"))
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)


def commit_all(repo_path, message):
    """Stage every file under *repo_path* and commit; return the hex sha."""
    paths = [
        str(p) for p in repo_path.rglob("*")
        if p.is_file() and ".git" not in p.relative_to(repo_path).parts
    ]
    porcelain.add(str(repo_path), paths=paths)
    sha = porcelain.commit(
        str(repo_path), message=message.encode(), author=AUTHOR, committer=AUTHOR,
    )
    return sha.decode()


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def git_repo(tmp_path):
    """Working repository on 'main' with one commit and a 'feature' branch.

    Tree:
        .gitignore, README.md, image.png,
        docs/guide.md, docs/api/v1.md, src/main.py

    'feature' points at the first commit; 'main' then gains later.md.
    """
    path = tmp_path / "repo"
    path.mkdir()
    repo = porcelain.init(str(path))
    repo.refs.set_symbolic_ref(b"HEAD", b"refs/heads/main")
    repo.close()

    write_files(path, INITIAL_FILES)
    commit_all(path, "initial")
    porcelain.branch_create(str(path), "feature")

    write_files(path, {"later.md": b"added on main\n"})
    commit_all(path, "add later.md")
    return path


@pytest.fixture
def provider(git_repo):
    p = LocalProvider(git_repo)
    yield p
    p.close()


@pytest.fixture
def isolated_config(tmp_path, monkeypatch):
    """Point config loading at an empty temp location and clear token env."""
    config_path = tmp_path / "config.toml"
    monkeypatch.setenv("GIKI_CONFIG", str(config_path))
    monkeypatch.delenv("GIKI_GITHUB_TOKEN", raising=False)
    monkeypatch.delenv("GIKI_GITLAB_TOKEN", raising=False)
    return config_path


# ---------------------------------------------------------------------------
# In-memory repository service
# ---------------------------------------------------------------------------

class RecordingProvider(GitProvider):
    """In-memory repository service that records every mutating call.

    *fail_on* names an operation ("delete", "move", "move_folder", "write"
    or "commit") that raises RemoteError when called.
    """

    def __init__(self, files=None, fail_on=None, branches=("main", "feature")):
        self.files = dict(files or {})
        self.calls = []
        self.fail_on = fail_on
        self._branches = list(branches)

    def _record(self, op, *args):
        self.calls.append((op, *args))
        if op == self.fail_on:
            raise RemoteError(f"{op} exploded")

    def tree(self, branch=None):
        return build_tree(self.files)

    def file_content(self, path, branch=None):
        try:
            return self.files[path]
        except KeyError:
            raise NotFoundError(f"File not found: {path}")

    def branches(self):
        return [BranchInfo(b, b == self._branches[0]) for b in self._branches]

    def write_file(self, path, content):
        self._record("write", path, content)
        self.files[path] = content.encode() if isinstance(content, str) else content

    def delete_file(self, path):
        self._record("delete", path)
        self.files.pop(path, None)

    def move_file(self, old_path, new_path):
        self._record("move", old_path, new_path)
        self.files[new_path] = self.files.pop(old_path, b"")

    def move_folder(self, old_path, new_path):
        self._record("move_folder", old_path, new_path)
        for path in [p for p in self.files if p.startswith(old_path + "/")]:
            self.files[new_path + path[len(old_path):]] = self.files.pop(path)

    def commit(self, message):
        self._record("commit", message)
        return "c0ffee" * 6 + "abcd"

    def status(self):
        return RepoStatus("memory", self._branches[0])

    def search_file_names(self, query):
        return search_file_names(query, sorted(self.files))

    def search_content(self, query):
        return []


@pytest.fixture
def service():
    return RecordingProvider({
        "README.md": b"# Hello\n",
        "docs/guide.md": b"guide\n",
        "docs/api/v1.md": b"v1\n",
    })


@pytest.fixture
def make_service():
    """Factory for RecordingProvider instances with custom files or failures."""
    return RecordingProvider
