"""Tests for EditSession staging rules."""

import pytest

from giki.changes import ChangeType, PendingChange
from giki.exceptions import NotFoundError, RemoteError, ValidationError
from giki.local import LocalProvider
from giki.overlay import find_node_by_path
from giki.session import EditSession


@pytest.fixture
def session(service):
    return EditSession(service)


class TestCreate:
    def test_create_file(self, session):
        change = session.create_file("/notes/todo.md/", "- [ ] x")
        assert change == PendingChange.create("notes/todo.md", "- [ ] x")
        assert "notes/todo.md" in session.existing_paths()

    def test_create_existing(self, session):
        with pytest.raises(ValidationError, match="already exists"):
            session.create_file("README.md")

    def test_create_pending_path(self, session):
        session.create_file("new.md")
        with pytest.raises(ValidationError, match="already exists"):
            session.create_file("new.md")

    @pytest.mark.parametrize("path", ["", "  ", "../x.md", "a/../b.md", "what?.md"])
    def test_create_invalid(self, session, path):
        with pytest.raises(ValidationError):
            session.create_file(path)
        assert session.changes() == []

    def test_create_folder(self, session):
        change = session.create_folder("assets/")
        assert change == PendingChange.create("assets/.gitkeep", "")
        node = find_node_by_path(session.tree(), "assets")
        assert node.is_dir

    def test_create_existing_folder(self, session):
        with pytest.raises(ValidationError, match="folder with this path already exists"):
            session.create_folder("docs")

    def test_create_folder_over_file(self, session):
        with pytest.raises(ValidationError):
            session.create_folder("README.md")

    def test_create_folder_required(self, session):
        with pytest.raises(ValidationError, match="Folder path is required"):
            session.create_folder("")


class TestEditAndDelete:
    def test_edit_stages_modify(self, session):
        session.edit_file("README.md", "# Changed\n")
        assert session.read_file("README.md") == "# Changed\n"
        assert session.changes()[0].type is ChangeType.MODIFY

    def test_read_remote(self, session):
        assert session.read_file("docs/guide.md") == "guide\n"

    def test_read_missing(self, session):
        with pytest.raises(NotFoundError):
            session.read_file("nope.md")

    def test_edit_pending_create_stays_create(self, session):
        session.create_file("new.md", "a")
        session.edit_file("new.md", "b")
        assert session.changes() == [PendingChange.create("new.md", "b")]

    def test_delete(self, session):
        session.delete_file("README.md")
        assert "README.md" not in session.existing_paths()
        assert session.changes() == [PendingChange.delete("README.md")]

    def test_delete_pending_create_discards(self, session):
        session.create_file("new.md")
        assert session.delete_file("new.md") is None
        assert session.changes() == []

    def test_delete_modified_file(self, session):
        session.edit_file("README.md", "x")
        session.delete_file("README.md")
        assert session.changes() == [PendingChange.delete("README.md")]


class TestRename:
    def test_rename_file(self, session):
        change = session.rename("README.md", "INTRO.md")
        assert change == PendingChange.move("README.md", "INTRO.md")
        paths = session.existing_paths()
        assert "INTRO.md" in paths and "README.md" not in paths

    def test_rename_folder(self, session):
        session.rename("docs", "manual", is_folder=True)
        assert "manual/api/v1.md" in session.existing_paths()

    def test_same_path(self, session):
        with pytest.raises(ValidationError, match="same as current"):
            session.rename("/README.md", "README.md")

    def test_into_itself(self, session):
        with pytest.raises(ValidationError, match="into itself"):
            session.rename("docs", "docs/sub", is_folder=True)

    def test_target_exists(self, session):
        with pytest.raises(ValidationError, match="already exists"):
            session.rename("README.md", "docs/guide.md")

    def test_empty_target(self, session):
        with pytest.raises(ValidationError, match="required"):
            session.rename("README.md", "  ")

    def test_traversal(self, session):
        with pytest.raises(ValidationError, match=r"\.\."):
            session.rename("README.md", "../README.md")

    def test_rename_pending_create(self, session):
        session.create_file("draft.md", "text")
        session.rename("draft.md", "final.md")
        assert session.changes() == [PendingChange.create("final.md", "text")]

    def test_rename_modified_file(self, session, service):
        session.edit_file("README.md", "edited")
        session.rename("README.md", "INTRO.md")
        assert session.changes() == [
            PendingChange.delete("README.md"),
            PendingChange.create("INTRO.md", "edited"),
        ]
        session.commit("rename")
        assert service.files == {
            "INTRO.md": b"edited",
            "docs/guide.md": b"guide\n",
            "docs/api/v1.md": b"v1\n",
        }


class TestAfterRename:
    def test_delete_renamed_file(self, session, service):
        session.rename("README.md", "INTRO.md")
        change = session.delete_file("INTRO.md")
        assert change == PendingChange.delete("README.md")
        assert session.changes() == [PendingChange.delete("README.md")]
        paths = session.existing_paths()
        assert "README.md" not in paths and "INTRO.md" not in paths

        session.commit("drop readme")
        assert service.calls == [("delete", "README.md"), ("commit", "drop readme")]
        assert "README.md" not in service.files

    def test_edit_renamed_file(self, session, service):
        session.rename("README.md", "INTRO.md")
        session.edit_file("INTRO.md", "new")
        assert session.changes() == [
            PendingChange.delete("README.md"),
            PendingChange.create("INTRO.md", "new"),
        ]
        session.commit("rename and edit")
        assert "README.md" not in service.files
        assert service.files["INTRO.md"] == b"new"

    def test_rename_twice(self, session, service):
        session.rename("README.md", "B.md")
        change = session.rename("B.md", "C.md")
        assert change == PendingChange.move("README.md", "C.md")
        assert session.changes() == [change]
        paths = session.existing_paths()
        assert "C.md" in paths
        assert "B.md" not in paths and "README.md" not in paths

        session.commit("rename")
        assert service.calls[0] == ("move", "README.md", "C.md")

    def test_rename_back(self, session):
        session.rename("README.md", "B.md")
        assert session.rename("B.md", "README.md") is None
        assert session.changes() == []
        assert "README.md" in session.existing_paths()

    def test_rename_folder_twice(self, session):
        session.rename("docs", "manual", is_folder=True)
        change = session.rename("manual", "book", is_folder=True)
        assert change == PendingChange.move_folder("docs", "book")
        paths = session.existing_paths()
        assert "book/api/v1.md" in paths
        assert not any(p.startswith(("manual/", "docs/")) for p in paths)

    def test_rename_folder_back_inside_source(self, session):
        session.rename("docs", "manual", is_folder=True)
        with pytest.raises(ValidationError, match="into itself"):
            session.rename("manual", "docs/sub", is_folder=True)


class TestStage:
    def test_dispatches_to_checks(self, session):
        with pytest.raises(ValidationError, match="already exists"):
            session.stage(PendingChange.create("README.md", ""))
        with pytest.raises(ValidationError, match="same as current"):
            session.stage(PendingChange.move("README.md", "README.md"))
        with pytest.raises(ValidationError, match=r"\.\."):
            session.stage(PendingChange.create("../evil.md", "x"))
        with pytest.raises(ValidationError, match="into itself"):
            session.stage(PendingChange.move_folder("docs", "docs/inner"))
        assert session.changes() == []

    def test_stages_each_type(self, session):
        session.stage(PendingChange.create("new.md", "x"))
        session.stage(PendingChange.modify("README.md", "y"))
        session.stage(PendingChange.move_folder("docs", "manual"))
        assert [c.type for c in session.changes()] == [
            ChangeType.CREATE, ChangeType.MODIFY, ChangeType.MOVE_FOLDER,
        ]
        assert session.stage(PendingChange.delete("new.md")) is None
        assert len(session.changes()) == 2


class TestSummaryAndCommit:
    def test_summary(self, session):
        session.create_file("a.md")
        session.create_folder("dir")
        session.edit_file("README.md", "x")
        session.delete_file("docs/guide.md")
        session.rename("docs/api", "docs/v", is_folder=True)
        summary = session.summary()
        assert (summary.created, summary.modified, summary.deleted, summary.moved) == (2, 1, 1, 1)
        assert summary.to_dict()["total"] == 5

    def test_discard(self, session):
        session.edit_file("README.md", "x")
        session.discard("/README.md")
        assert session.changes() == []

    def test_commit_clears(self, session, service):
        session.edit_file("README.md", "new text")
        result = session.commit("update readme")
        assert result.commit_id
        assert session.changes() == []
        assert service.calls == [("write", "README.md", "new text"), ("commit", "update readme")]

    def test_commit_failure_keeps_changes(self, make_service):
        session = EditSession(make_service({"a.md": b""}, fail_on="delete"))
        session.delete_file("a.md")
        with pytest.raises(RemoteError):
            session.commit("remove a")
        assert session.changes() == [PendingChange.delete("a.md")]


class TestSwitchBranch:
    def test_switch(self, session):
        session.switch_branch("feature")
        assert session.branch == "feature"

    def test_refused_with_pending(self, session):
        session.edit_file("README.md", "x")
        with pytest.raises(ValidationError, match="pending"):
            session.switch_branch("feature")
        assert session.branch is None
        assert len(session.changes()) == 1

    def test_discard_and_switch(self, session):
        session.edit_file("README.md", "x")
        session.switch_branch("feature", discard=True)
        assert session.branch == "feature"
        assert session.changes() == []

    def test_unknown_branch(self, session):
        with pytest.raises(NotFoundError):
            session.switch_branch("nope")


class TestAgainstRepository:
    def test_stage_and_commit(self, git_repo):
        provider = LocalProvider(git_repo)
        session = EditSession(provider)
        session.create_file("docs/new.md", "fresh")
        session.edit_file("README.md", "# Rewritten\n")
        session.rename("later.md", "archive/later.md")
        session.delete_file("src/main.py")

        docs = find_node_by_path(session.tree(), "docs")
        assert "new.md" in [n.name for n in docs.children]

        session.commit("reorganize")
        assert session.changes() == []
        assert (git_repo / "docs" / "new.md").read_text() == "fresh"
        assert (git_repo / "archive" / "later.md").exists()
        assert not (git_repo / "src" / "main.py").exists()
        assert provider.status().is_dirty is False
        provider.close()

    def test_rename_then_delete_and_edit(self, git_repo):
        provider = LocalProvider(git_repo)
        session = EditSession(provider)
        session.rename("README.md", "INTRO.md")
        session.delete_file("INTRO.md")
        session.rename("later.md", "notes.md")
        session.edit_file("notes.md", "edited\n")

        session.commit("rename, delete and edit")
        assert not (git_repo / "README.md").exists()
        assert not (git_repo / "INTRO.md").exists()
        assert not (git_repo / "later.md").exists()
        assert (git_repo / "notes.md").read_text() == "edited\n"
        assert provider.status().is_dirty is False
        provider.close()
