"""
Codepencil - handwritten Python notebook backend with FastHTML

Features:
- Notebook of ink cells with transcribed code, autosaved as JSON
- Project save/open as a directory of SVG files plus manifest.json
- Zip export/import when directory access is unavailable
- Recognized code runs in an isolated kernel subprocess
"""

from fasthtml.common import *
import json
import logging
from pathlib import Path
from typing import Optional

from document import Notebook, CellStatus, load_notebook, save_notebook
from document.stroke import stroke_from_list
from services.codepencil_config import load_config, print_config_status
from services.kernel import KernelService
from services.storage import (
    ProjectStore, StorageBackend, AccessCancelled, probe_backend, directory_picker,
)

logger = logging.getLogger(__name__)

# ============================================================================
# Configuration and session state
# ============================================================================

# Load configuration (creates codepencil_config.json with defaults if it doesn't exist)
CONFIG = load_config()

# The working notebook, replaced wholesale on project load
notebook: Notebook = load_notebook(CONFIG.autosave_path)
stroke_width: float = CONFIG.stroke_width

# Owns the kernel subprocess; started on the first run request
kernel_service = KernelService(
    startup_timeout=CONFIG.startup_timeout,
    request_timeout=CONFIG.request_timeout,
)


def autosave():
    try:
        save_notebook(notebook, CONFIG.autosave_path)
    except OSError as e:
        logger.error(f"Autosave failed: {e}")


def project_dir(directory: str) -> Path:
    """Resolve a project directory under projects_root, refusing escapes."""
    root = CONFIG.projects_root.resolve()
    target = (root / directory.strip()).resolve()
    if target != root and root not in target.parents:
        raise PermissionError(f"Project directory outside {CONFIG.projects_root}: {directory}")
    return target


def host_picker(directory: str):
    """
    Directory access for this request, None when live handles are off.

    An empty directory name is the client's way of saying the user
    dismissed the folder prompt.
    """
    if not CONFIG.live_handle:
        return None

    async def pick(mode):
        if not directory.strip():
            raise AccessCancelled()
        return await directory_picker(project_dir(directory))(mode)

    return pick


def archive_response(content: bytes, filename: str):
    return Response(content=content, media_type="application/zip",
                    headers={"Content-Disposition": f'attachment; filename="{filename}"'})


def apply_loaded(result) -> dict:
    """Swap in a loaded notebook and report the outcome."""
    global notebook, stroke_width
    if result.success:
        notebook = result.notebook
        if result.stroke_width:
            stroke_width = result.stroke_width
        autosave()
    return result.to_dict()


app, rt = fast_app(pico=False)

# ============================================================================
# Notebook
# ============================================================================

@rt("/api/notebook")
def get():
    return {**notebook.to_dict(), "strokeWidth": stroke_width}

@rt("/api/cell/add")
def post(after_id: str = ""):
    cell = notebook.add_cell(after_id or None)
    autosave()
    return cell.to_dict()

@rt("/api/cell/{cell_id}")
def delete(cell_id: str):
    deleted = notebook.delete_cell(cell_id)
    if deleted:
        autosave()
    return {"deleted": deleted}

@rt("/api/cell/{cell_id}/strokes")
def post(cell_id: str, strokes: str = "[]"):
    """Replace a cell's ink. `strokes` is a JSON list of [{x, y, p, t}, ...]."""
    try:
        raw = json.loads(strokes)
    except json.JSONDecodeError as e:
        return {"success": False, "error": f"Invalid strokes JSON: {e}"}
    if not isinstance(raw, list):
        return {"success": False, "error": "strokes must be a list"}
    ok = notebook.set_strokes(cell_id, [stroke_from_list(s) for s in raw])
    if ok:
        autosave()
    return {"success": ok}

@rt("/api/cell/{cell_id}/recognized")
def post(cell_id: str, code: str = "", error: str = ""):
    """Store the transcription service's answer (or its failure)."""
    if error:
        ok = notebook.set_status(cell_id, CellStatus.ERROR, error)
    else:
        ok = notebook.set_recognized(cell_id, code) and notebook.set_status(cell_id, CellStatus.IDLE)
    if ok:
        autosave()
    return {"success": ok}

@rt("/api/cell/{cell_id}/height")
def post(cell_id: str, height: float):
    ok = notebook.set_height(cell_id, height)
    if ok:
        autosave()
    return {"success": ok}

# ============================================================================
# Execution
# ============================================================================

@rt("/api/cell/{cell_id}/run")
async def post(cell_id: str):
    cell = notebook.get_cell(cell_id)
    if cell is None:
        return {"success": False, "error": f"Unknown cell {cell_id}"}
    result = await kernel_service.run_cell(cell)
    if result is None:
        return {"success": False, "error": "Cell has no recognized code"}
    autosave()
    return {"success": True, "runStatus": cell.run_status.value, **result.to_dict()}

@rt("/api/run")
async def post(code: str = ""):
    result = await kernel_service.run_code(code)
    return result.to_dict()

@rt("/api/kernel/interrupt")
def post():
    return {"interrupted": kernel_service.interrupt()}

@rt("/api/kernel/restart")
async def post():
    # Shutdown resolves pending futures, so it has to run on the event loop
    kernel_service.restart()
    return {"status": "ok"}

# ============================================================================
# Project storage
# ============================================================================

@rt("/api/project/save")
async def post(directory: str = "", canvas_width: float = 0, width: float = 0):
    """Save to a directory when live handles are available, else return the zip."""
    global stroke_width
    if width:
        stroke_width = width
    picker = host_picker(directory)
    store = ProjectStore(probe_backend(picker, CONFIG.live_handle), picker, CONFIG.archive_filename)
    result = await store.save(notebook.cells, stroke_width, canvas_width or CONFIG.canvas_width)
    if result.success and result.archive is not None:
        return archive_response(result.archive, result.filename)
    return result.to_dict()

@rt("/api/project/open")
async def post(directory: str = ""):
    picker = host_picker(directory)
    backend = probe_backend(picker, CONFIG.live_handle)
    if backend == StorageBackend.ARCHIVE:
        # No directory access on this host: the client uploads a zip instead
        return {"success": False, "error": "Directory access unavailable", "useArchive": True}
    result = await ProjectStore(backend, picker).load()
    return apply_loaded(result)

@rt("/api/project/export")
async def get(canvas_width: float = 0):
    store = ProjectStore(StorageBackend.ARCHIVE, archive_filename=CONFIG.archive_filename)
    result = await store.save(notebook.cells, stroke_width, canvas_width or CONFIG.canvas_width)
    if not result.success:
        return result.to_dict()
    return archive_response(result.archive, result.filename)

@rt("/api/project/import")
async def post(file: UploadFile):
    data = await file.read()
    result = await ProjectStore(StorageBackend.ARCHIVE).load(data)
    return apply_loaded(result)

# ============================================================================
# Run
# ============================================================================

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO,
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    print("✏️  Codepencil starting at http://localhost:8000")
    print(f"   Notebook autosave: {CONFIG.autosave_path}")
    print("   Project format: cell-###.svg + manifest.json (directory or zip)")
    print("")
    print_config_status(CONFIG)
    serve(port=8000)
