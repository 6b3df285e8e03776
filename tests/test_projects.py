"""On-disk project store."""

from __future__ import annotations

import json

import pytest

from ola.core.errors import ProjectError
from ola.core.projects import ProjectStore, export_project, guess_mime_type


@pytest.fixture
def store(ola_home) -> ProjectStore:
    return ProjectStore()


def test_create_and_find(store, ola_home):
    project = store.create_project("Demo")
    assert (ola_home / "data" / "projects" / project.id / "project.json").exists()
    assert store.find_project(project.id).name == "Demo"
    assert store.find_project("demo").id == project.id
    with pytest.raises(ProjectError):
        store.find_project("nope")


def test_list_most_recent_first(store):
    first = store.create_project("first")
    second = store.create_project("second")
    store.add_goal(first.id, "bump")
    assert [p.name for p in store.list_projects()] == ["first", "second"]
    assert second.id in {p.id for p in store.list_projects()}


def test_corrupt_project_is_skipped(store):
    store.create_project("ok")
    broken = store.root / "broken"
    broken.mkdir()
    (broken / "project.json").write_text("{not json", encoding="utf-8")
    assert [p.name for p in store.list_projects()] == ["ok"]


def test_active_project_and_stale_reference(store):
    project = store.create_project("p")
    assert store.get_active_project() is None
    store.set_active_project(project.id)
    assert store.get_active_project() == project.id

    store.delete_project(project.id)
    assert store.get_active_project() is None
    assert not (store.root.parent / "active_project").exists()


def test_set_active_requires_existing(store):
    with pytest.raises(ProjectError):
        store.set_active_project("missing")


def test_goals_and_contexts(store):
    project = store.create_project("p")
    goal = store.add_goal(project.id, "be fast")
    store.add_goal(project.id, "be correct")
    ctx = store.add_context(project.id, "CLI tool")

    assert store.remove_goal(project.id, goal.id) is True
    assert store.remove_goal(project.id, goal.id) is False
    assert store.remove_context(project.id, ctx.id) is True

    reloaded = store.require_project(project.id)
    assert [g.text for g in reloaded.goals] == ["be correct"]
    assert reloaded.contexts == []


def test_files(store):
    project = store.create_project("p")
    text_file = store.upload_file(project.id, "notes.md", "# hi".encode("utf-8"))
    binary = store.upload_file(project.id, "blob.bin", b"\xff\xfe\x00")

    assert text_file.mime_type == "text/markdown"
    assert store.download_file(project.id, text_file.id) == b"# hi"
    assert store.read_file_as_text(project.id, text_file.id) == "# hi"
    assert store.read_file_as_text(project.id, binary.id).startswith("[Binary file - base64 encoded: ")

    assert store.delete_file(project.id, binary.id) is True
    assert [f.filename for f in store.require_project(project.id).files] == ["notes.md"]


def test_project_content(store):
    project = store.create_project("demo")
    store.add_goal(project.id, "g1")
    store.add_context(project.id, "c1")
    store.upload_file(project.id, "a.py", b"print(1)")

    content = store.project_content(project.id)
    assert content.name == "demo"
    assert content.goals == ["g1"]
    assert content.contexts == ["c1"]
    assert [(f.filename, f.text) for f in content.files] == [("a.py", "print(1)")]


def test_edit_and_export(store):
    project = store.create_project("old")
    renamed = store.edit_project(project.id, "new")
    assert renamed.name == "new"
    assert json.loads(export_project(renamed))["name"] == "new"


def test_guess_mime_type():
    assert guess_mime_type("x.PY") == "text/python"
    assert guess_mime_type("archive.tar.gz") == "application/octet-stream"
