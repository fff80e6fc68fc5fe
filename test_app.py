"""
Tests for the HTTP routes in app.py.

Run with: uv run pytest test_app.py
"""
import importlib
import io
import zipfile

import pytest
from fasthtml.common import Client

from document import Notebook, Point
from services.codepencil_config import CodepencilConfig, reset_config_cache


def inked_notebook():
    nb = Notebook.empty()
    first = nb.cells[0]
    nb.append_stroke(first.id, [Point(10, 10), Point(20, 25)])
    nb.set_recognized(first.id, "print('one')")
    second = nb.add_cell()
    nb.append_stroke(second.id, [Point(5, 5)])
    return nb


@pytest.fixture
def web(tmp_path, monkeypatch):
    """The app module wired to a temporary project root and autosave."""
    monkeypatch.chdir(tmp_path)
    reset_config_cache()
    app_module = importlib.import_module("app")

    def configure(**overrides):
        config = CodepencilConfig(
            projects_root=tmp_path / "projects",
            autosave_path=tmp_path / "autosave.json",
            **overrides,
        )
        monkeypatch.setattr(app_module, "CONFIG", config)
        return config

    configure()
    monkeypatch.setattr(app_module, "notebook", inked_notebook())
    monkeypatch.setattr(app_module, "stroke_width", 4)
    yield app_module, Client(app_module.app), configure
    reset_config_cache()


def test_get_notebook(web):
    app_module, client, _ = web
    data = client.get("/api/notebook").json()
    assert data["version"] == 1
    assert data["strokeWidth"] == 4
    assert len(data["cells"]) == 2
    assert data["cells"][0]["recognizedCode"] == "print('one')"


def test_save_without_live_handles_downloads_zip(web):
    _, client, configure = web
    configure(live_handle=False)

    response = client.post("/api/project/save")

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/zip"
    assert 'filename="codepencil-project.zip"' in response.headers["content-disposition"]
    with zipfile.ZipFile(io.BytesIO(response.content)) as zf:
        assert zf.namelist() == ["cell-001.svg", "cell-002.svg", "manifest.json"]


def test_export_downloads_zip(web):
    _, client, _ = web
    response = client.get("/api/project/export")
    assert response.headers["content-type"] == "application/zip"
    with zipfile.ZipFile(io.BytesIO(response.content)) as zf:
        assert "manifest.json" in zf.namelist()


def test_open_without_live_handles_asks_for_archive(web):
    _, client, configure = web
    configure(live_handle=False)

    data = client.post("/api/project/open", data={"directory": "proj"}).json()

    assert data == {"success": False, "error": "Directory access unavailable", "useArchive": True}


def test_open_with_no_directory_is_cancelled(web):
    _, client, _ = web
    data = client.post("/api/project/open").json()
    assert data == {"success": False, "error": "Cancelled", "cancelled": True}


def test_save_and_open_directory(web, tmp_path):
    app_module, client, _ = web

    saved = client.post("/api/project/save", data={"directory": "proj"}).json()
    assert saved == {"success": True}
    assert (tmp_path / "projects" / "proj" / "manifest.json").exists()

    app_module.notebook = Notebook.empty()
    opened = client.post("/api/project/open", data={"directory": "proj"}).json()

    assert opened == {"success": True, "cells": 2, "strokeWidth": 4}
    cells = client.get("/api/notebook").json()["cells"]
    assert cells[0]["recognizedCode"] == "print('one')"
    assert (tmp_path / "autosave.json").exists()


def test_directory_outside_projects_root_is_refused(web, tmp_path):
    _, client, _ = web
    data = client.post("/api/project/save", data={"directory": "../escape"}).json()
    assert data["success"] is False
    assert "cancelled" not in data
    assert not (tmp_path / "escape").exists()


def test_import_archive_replaces_notebook(web):
    app_module, client, _ = web
    exported = client.get("/api/project/export").content
    app_module.notebook = Notebook.empty()

    data = client.post("/api/project/import",
                       files={"file": ("project.zip", exported, "application/zip")}).json()

    assert data == {"success": True, "cells": 2, "strokeWidth": 4}
    assert len(app_module.notebook.cells) == 2


def test_import_rejects_non_zip(web):
    _, client, _ = web
    data = client.post("/api/project/import",
                       files={"file": ("notes.txt", b"hello", "text/plain")}).json()
    assert data["success"] is False
    assert "Not a valid zip archive" in data["error"]


def test_restart_without_kernel(web):
    _, client, _ = web
    assert client.post("/api/kernel/restart").json() == {"status": "ok"}
