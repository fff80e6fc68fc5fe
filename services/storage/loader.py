"""
Project read/write procedure shared by both storage backends.

A backend only has to say how to read, list and write named documents;
ordering, manifest handling and partial-failure tolerance live here so
the directory and archive backends cannot drift apart.
"""
import asyncio
import logging
from typing import List, Optional, Protocol, Sequence, Tuple

from document.cell import Cell, DEFAULT_CELL_HEIGHT
from document.manifest import (
    MANIFEST_NAME, CELL_EXTENSION, ProjectManifest,
    build_manifest, dump_manifest, parse_manifest, cell_filename,
)
from document.notebook import Notebook
from document.svg_codec import encode_svg, decode_svg, SvgDecodeError
from .results import LoadResult

logger = logging.getLogger(__name__)

NO_CELLS_ERROR = "No cells found in project"


class ProjectSource(Protocol):
    """Read side of a storage medium."""

    async def read_text(self, name: str) -> str:
        """Return the document's text; raise FileNotFoundError if absent."""
        ...

    async def list_names(self) -> List[str]:
        """Names of the documents directly under the project root."""
        ...


def render_project(cells: Sequence[Cell], stroke_width: float,
                   canvas_width: float) -> Tuple[List[Tuple[str, str]], str]:
    """
    Render every document of a project.

    Returns ([(name, svg), ...] in cell order, manifest_json). Callers
    must write the manifest only after all documents are written.
    """
    documents = [
        (cell_filename(i), encode_svg(cell.strokes, canvas_width,
                                      cell.height or DEFAULT_CELL_HEIGHT, stroke_width))
        for i, cell in enumerate(cells)
    ]
    manifest = dump_manifest(build_manifest(cells, stroke_width))
    return documents, manifest


async def _read_manifest(source: ProjectSource) -> Optional[ProjectManifest]:
    try:
        text = await source.read_text(MANIFEST_NAME)
    except FileNotFoundError:
        logger.info(f"No {MANIFEST_NAME}, scanning for SVG documents")
        return None
    except (OSError, UnicodeDecodeError) as e:
        logger.warning(f"Unreadable {MANIFEST_NAME} ({e}), scanning for SVG documents")
        return None
    return parse_manifest(text)


async def _fetch(source: ProjectSource, name: str) -> Optional[str]:
    try:
        return await source.read_text(name)
    except FileNotFoundError:
        logger.warning(f"Could not load {name}: missing")
    except (OSError, UnicodeDecodeError) as e:
        logger.warning(f"Could not load {name}: {e}")
    return None


async def read_project(source: ProjectSource) -> LoadResult:
    """
    Load a project from any source.

    Cells follow manifest order when a manifest parses, otherwise the
    lexical order of the *.svg names. Documents that are missing or do
    not decode are skipped. Zero recovered cells is a failure.
    """
    manifest = await _read_manifest(source)

    if manifest is not None:
        entries = manifest.cells
        names = [e.file for e in entries]
    else:
        names = sorted(n for n in await source.list_names() if n.endswith(CELL_EXTENSION))
        entries = [None] * len(names)

    # Fetch concurrently; gather keeps results in request order
    texts = await asyncio.gather(*(_fetch(source, n) for n in names))

    cells: List[Cell] = []
    for name, entry, text in zip(names, entries, texts):
        if text is None:
            continue
        try:
            decoded = decode_svg(text)
        except SvgDecodeError as e:
            logger.warning(f"Could not load {name}: {e}")
            continue

        height = entry.height if entry is not None and entry.height is not None else decoded.height
        cells.append(Cell(
            strokes=decoded.strokes,
            height=height,
            recognized_code=entry.recognized_code if entry is not None else None,
        ))

    if not cells:
        return LoadResult(success=False, error=NO_CELLS_ERROR)

    if manifest is not None and len(cells) < len(names):
        logger.warning(f"Loaded {len(cells)} of {len(names)} cells listed in {MANIFEST_NAME}")

    return LoadResult(
        success=True,
        notebook=Notebook(cells=cells),
        stroke_width=manifest.stroke_width if manifest is not None else None,
    )
