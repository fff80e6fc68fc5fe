"""
Storage backend selection.

The backend is chosen per save/open action from what the host offers
and passed around as a value; nothing caches the decision.
"""
from enum import Enum
from typing import List, Optional

from document.cell import Cell
from .archive import ArchiveAdapter
from .live_handle import LiveHandleAdapter, DirectoryPicker
from .results import SaveResult, LoadResult


class StorageBackend(str, Enum):
    LIVE_HANDLE = "live_handle"
    ARCHIVE = "archive"


def probe_backend(picker: Optional[DirectoryPicker], enabled: bool = True) -> StorageBackend:
    """Live handles when the host can hand out directories, else the archive. No side effects."""
    if enabled and picker is not None:
        return StorageBackend.LIVE_HANDLE
    return StorageBackend.ARCHIVE


class ProjectStore:
    """
    Save/load through whichever backend was probed for this action.

    Args:
        backend: result of probe_backend()
        picker: directory access grant, required for LIVE_HANDLE
        archive_filename: download name for ARCHIVE saves
    """

    def __init__(self, backend: StorageBackend, picker: Optional[DirectoryPicker] = None,
                 archive_filename: Optional[str] = None):
        if backend == StorageBackend.LIVE_HANDLE and picker is None:
            raise ValueError("LIVE_HANDLE storage needs a directory picker")
        self.backend = backend
        self.adapter = (LiveHandleAdapter(picker) if backend == StorageBackend.LIVE_HANDLE
                        else ArchiveAdapter(archive_filename))

    async def save(self, cells: List[Cell], stroke_width: float, canvas_width: float) -> SaveResult:
        return await self.adapter.save(cells, stroke_width, canvas_width)

    async def load(self, archive: Optional[bytes] = None) -> LoadResult:
        """Open a project. `archive` is the uploaded zip for the ARCHIVE backend."""
        if self.backend == StorageBackend.LIVE_HANDLE:
            return await self.adapter.load()
        return await self.adapter.load(archive)
