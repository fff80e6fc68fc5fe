"""
Project manifest: the ordered index of a saved project.

Both storage backends render the manifest through `dump_manifest`, so a
project written by one can be read by the other.
"""
from dataclasses import dataclass, field
from typing import Optional, List, Sequence
import json
import logging

from .cell import Cell

logger = logging.getLogger(__name__)

MANIFEST_NAME = "manifest.json"
MANIFEST_VERSION = 1
CELL_EXTENSION = ".svg"


def cell_filename(index: int) -> str:
    """Document name for the cell at 0-based `index` ('cell-001.svg', ...)."""
    return f"cell-{index + 1:03d}{CELL_EXTENSION}"


@dataclass
class ManifestEntry:
    file: str
    height: Optional[float] = None
    recognized_code: Optional[str] = None

    def to_dict(self) -> dict:
        data = {'file': self.file}
        if self.height is not None:
            data['height'] = self.height
        if self.recognized_code is not None:
            data['recognizedCode'] = self.recognized_code
        return data


@dataclass
class ProjectManifest:
    cells: List[ManifestEntry] = field(default_factory=list)
    stroke_width: Optional[float] = None
    version: int = MANIFEST_VERSION

    def to_dict(self) -> dict:
        data = {'version': self.version}
        if self.stroke_width is not None:
            data['strokeWidth'] = self.stroke_width
        data['cells'] = [e.to_dict() for e in self.cells]
        return data


def build_manifest(cells: Sequence[Cell], stroke_width: Optional[float]) -> ProjectManifest:
    """One entry per cell, in cell order. Pure and deterministic."""
    return ProjectManifest(
        stroke_width=stroke_width,
        cells=[
            ManifestEntry(
                file=cell_filename(i),
                height=cell.height,
                recognized_code=cell.recognized_code,
            )
            for i, cell in enumerate(cells)
        ],
    )


def dump_manifest(manifest: ProjectManifest) -> str:
    return json.dumps(manifest.to_dict(), indent=2, ensure_ascii=False)


def _number_or_none(value) -> Optional[float]:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value
    return None


def parse_manifest(text: str) -> Optional[ProjectManifest]:
    """
    Parse manifest JSON.

    Returns None when the text is not JSON or has no `cells` list, which
    callers treat the same as a missing manifest. Entries without a
    string `file` are dropped; ill-typed optional fields are ignored.
    """
    try:
        raw = json.loads(text)
    except (json.JSONDecodeError, TypeError) as e:
        logger.warning(f"Unparseable {MANIFEST_NAME}: {e}")
        return None

    if not isinstance(raw, dict) or not isinstance(raw.get('cells'), list):
        logger.warning(f"{MANIFEST_NAME} has no cell list, ignoring it")
        return None

    if raw.get('version', MANIFEST_VERSION) != MANIFEST_VERSION:
        logger.warning(f"{MANIFEST_NAME} version {raw.get('version')!r} is not {MANIFEST_VERSION}, reading anyway")

    entries = []
    for item in raw['cells']:
        if not isinstance(item, dict) or not isinstance(item.get('file'), str):
            logger.warning(f"Skipping malformed manifest entry: {item!r}")
            continue
        code = item.get('recognizedCode')
        entries.append(ManifestEntry(
            file=item['file'],
            height=_number_or_none(item.get('height')),
            recognized_code=code if isinstance(code, str) else None,
        ))

    return ProjectManifest(
        cells=entries,
        stroke_width=_number_or_none(raw.get('strokeWidth')),
    )
