"""
Notebook autosave to/from JSON.

This is the working copy of the notebook between explicit project saves.
It keeps everything a cell holds (pressure and timestamps included),
unlike the SVG project format.
"""
from pathlib import Path
from typing import Optional
import json
import logging

from .cell import Cell
from .notebook import Notebook, NOTEBOOK_VERSION

logger = logging.getLogger(__name__)


def notebook_to_json(notebook: Notebook) -> str:
    return json.dumps(notebook.to_dict(), ensure_ascii=False)


def parse_notebook_json(raw: Optional[str]) -> Optional[Notebook]:
    """
    Parse autosave JSON into a Notebook.

    Returns None for empty input, invalid JSON, an unknown version or a
    missing cell list.
    """
    if not raw:
        return None
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict) or data.get('version') != NOTEBOOK_VERSION:
        return None
    if not isinstance(data.get('cells'), list):
        return None
    cells = [Cell.from_dict(c) for c in data['cells'] if isinstance(c, dict)]
    return Notebook(cells=cells)


def load_notebook(path: Path) -> Notebook:
    """
    Load the autosaved notebook.

    A missing or unreadable file yields a fresh notebook with one empty
    cell rather than an error.
    """
    path = Path(path)

    if not path.exists():
        return Notebook.empty()

    try:
        raw = path.read_text(encoding='utf-8')
    except OSError as e:
        logger.error(f"Failed to read autosave {path}: {e}")
        return Notebook.empty()

    notebook = parse_notebook_json(raw)
    if notebook is None:
        logger.warning(f"Ignoring invalid autosave at {path}")
        return Notebook.empty()
    return notebook


def save_notebook(notebook: Notebook, path: Path):
    """Write the notebook autosave, creating parent directories."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        f.write(notebook_to_json(notebook))
