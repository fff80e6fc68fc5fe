"""Project storage - directory and zip backends over one project layout."""
from .results import SaveResult, LoadResult, CANCELLED
from .loader import read_project, render_project, NO_CELLS_ERROR
from .live_handle import (
    LiveHandleAdapter, DirectoryHandle, AccessCancelled, directory_picker,
)
from .archive import ArchiveAdapter, pack_project
from .capability import StorageBackend, ProjectStore, probe_backend

__all__ = [
    'SaveResult', 'LoadResult', 'CANCELLED',
    'read_project', 'render_project', 'NO_CELLS_ERROR',
    'LiveHandleAdapter', 'DirectoryHandle', 'AccessCancelled', 'directory_picker',
    'ArchiveAdapter', 'pack_project',
    'StorageBackend', 'ProjectStore', 'probe_backend',
]
