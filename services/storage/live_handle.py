"""
Live-handle storage: a project as a directory of SVG files plus manifest.

Access to the directory goes through a picker, the host's way of asking
the user for a location. The picker raises AccessCancelled when the user
backs out, which is reported as a distinct outcome rather than a failure.
"""
import asyncio
import logging
from pathlib import Path
from typing import Awaitable, Callable, List, Literal, Union

from document.cell import Cell
from document.manifest import MANIFEST_NAME
from .loader import read_project, render_project
from .results import SaveResult, LoadResult

logger = logging.getLogger(__name__)

AccessMode = Literal["read", "readwrite"]


class AccessCancelled(Exception):
    """The user dismissed the access grant."""


class DirectoryHandle:
    """
    Read/write access to the files directly inside one directory.

    Blocking file I/O runs in the default executor so callers stay on
    the event loop.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def __repr__(self):
        return f"DirectoryHandle({str(self.path)!r})"

    def _resolve(self, name: str) -> Path:
        # Documents live directly under the root; anything else is absent
        if not name or name in ('.', '..') or '/' in name or '\\' in name:
            raise FileNotFoundError(name)
        return self.path / name

    async def read_text(self, name: str) -> str:
        target = self._resolve(name)
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, lambda: target.read_text(encoding='utf-8'))

    async def write_text(self, name: str, text: str):
        target = self._resolve(name)
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, lambda: target.write_text(text, encoding='utf-8'))

    async def list_names(self) -> List[str]:
        """Names of regular files directly in the directory."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None, lambda: [p.name for p in self.path.iterdir() if p.is_file()])


DirectoryPicker = Callable[[AccessMode], Awaitable[DirectoryHandle]]


def directory_picker(path: Union[str, Path, None]) -> DirectoryPicker:
    """
    Build a picker that grants access to a known directory.

    An empty path stands for a dismissed prompt. Write access creates
    the directory; read access requires it to exist.
    """
    async def pick(mode: AccessMode) -> DirectoryHandle:
        if not path:
            raise AccessCancelled()
        root = Path(path)
        if mode == "readwrite":
            root.mkdir(parents=True, exist_ok=True)
        elif not root.is_dir():
            raise NotADirectoryError(f"Not a directory: {root}")
        return DirectoryHandle(root)

    return pick


class LiveHandleAdapter:
    """Saves and loads projects through a directory handle."""

    def __init__(self, picker: DirectoryPicker):
        self.picker = picker

    async def save(self, cells: List[Cell], stroke_width: float, canvas_width: float) -> SaveResult:
        """
        Write one SVG per cell, then the manifest.

        All cell documents are written before the manifest so an
        interrupted save never leaves a manifest pointing at files that
        do not exist yet.
        """
        try:
            handle = await self.picker("readwrite")
        except AccessCancelled:
            return SaveResult.cancelled_result()
        except Exception as e:
            logger.error(f"Directory access failed: {e}")
            return SaveResult(success=False, error=str(e) or "Save failed")

        try:
            documents, manifest = render_project(cells, stroke_width, canvas_width)
            await asyncio.gather(*(handle.write_text(name, svg) for name, svg in documents))
            await handle.write_text(MANIFEST_NAME, manifest)
        except Exception as e:
            logger.exception(f"Save to {handle.path} failed: {e}")
            return SaveResult(success=False, error=str(e) or "Save failed")

        logger.info(f"Saved {len(cells)} cells to {handle.path}")
        return SaveResult(success=True)

    async def load(self) -> LoadResult:
        """Read a project from a directory the user picks."""
        try:
            handle = await self.picker("read")
        except AccessCancelled:
            return LoadResult.cancelled_result()
        except Exception as e:
            logger.error(f"Directory access failed: {e}")
            return LoadResult(success=False, error=str(e) or "Load failed")

        try:
            result = await read_project(handle)
        except Exception as e:
            logger.exception(f"Load from {handle.path} failed: {e}")
            return LoadResult(success=False, error=str(e) or "Load failed")

        if result.success:
            logger.info(f"Loaded {len(result.notebook.cells)} cells from {handle.path}")
        return result
