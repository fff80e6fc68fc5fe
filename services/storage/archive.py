"""
Archive storage: the same project layout packed into one zip file.

Used where a directory handle is unavailable. The archive is built and
read entirely in memory; the caller decides how to hand it to the user.
"""
import io
import logging
import zipfile
import zlib
from typing import List, Optional

from document.cell import Cell
from document.manifest import MANIFEST_NAME
from .loader import read_project, render_project
from .results import SaveResult, LoadResult

logger = logging.getLogger(__name__)

DEFAULT_ARCHIVE_FILENAME = "codepencil-project.zip"


class ZipSource:
    """Top-level members of an in-memory zip archive."""

    def __init__(self, archive: zipfile.ZipFile):
        self.archive = archive

    async def read_text(self, name: str) -> str:
        try:
            data = self.archive.read(name)
        except KeyError:
            raise FileNotFoundError(name) from None
        except (zipfile.BadZipFile, zlib.error) as e:
            raise OSError(f"Corrupt archive member {name}: {e}") from e
        return data.decode('utf-8')

    async def list_names(self) -> List[str]:
        return [
            info.filename for info in self.archive.infolist()
            if not info.is_dir() and '/' not in info.filename
        ]


def pack_project(cells: List[Cell], stroke_width: float, canvas_width: float) -> bytes:
    """Zip the documents of a project, manifest last."""
    documents, manifest = render_project(cells, stroke_width, canvas_width)
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, 'w', compression=zipfile.ZIP_DEFLATED) as zf:
        for name, svg in documents:
            zf.writestr(name, svg)
        zf.writestr(MANIFEST_NAME, manifest)
    return buffer.getvalue()


class ArchiveAdapter:
    """Saves projects to zip bytes and loads them back."""

    def __init__(self, filename: Optional[str] = None):
        self.filename = filename or DEFAULT_ARCHIVE_FILENAME

    async def save(self, cells: List[Cell], stroke_width: float, canvas_width: float) -> SaveResult:
        """Build the archive; the bytes come back on the result for download."""
        try:
            data = pack_project(cells, stroke_width, canvas_width)
        except Exception as e:
            logger.exception(f"Export failed: {e}")
            return SaveResult(success=False, error=str(e) or "Export failed")

        logger.info(f"Exported {len(cells)} cells to {self.filename} ({len(data)} bytes)")
        return SaveResult(success=True, archive=data, filename=self.filename)

    async def load(self, data: Optional[bytes] = None) -> LoadResult:
        """Read a project from archive bytes produced by `save` or by hand."""
        if not data:
            return LoadResult(success=False, error="No archive provided")

        try:
            with zipfile.ZipFile(io.BytesIO(data)) as zf:
                result = await read_project(ZipSource(zf))
        except zipfile.BadZipFile as e:
            logger.error(f"Import failed: {e}")
            return LoadResult(success=False, error=f"Not a valid zip archive: {e}")
        except Exception as e:
            logger.exception(f"Import failed: {e}")
            return LoadResult(success=False, error=str(e) or "Import failed")

        if result.success:
            logger.info(f"Imported {len(result.notebook.cells)} cells from archive")
        return result

    import_project = load
