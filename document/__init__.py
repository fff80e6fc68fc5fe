"""Document layer - Data models for ink, cells, notebooks and the project format."""
from .stroke import Point, Stroke
from .cell import Cell, CellStatus, RunStatus, DEFAULT_CELL_HEIGHT, MIN_CELL_HEIGHT
from .notebook import Notebook
from .svg_codec import encode_svg, decode_svg, DecodedSvg, SvgDecodeError
from .manifest import (
    ProjectManifest, ManifestEntry, MANIFEST_NAME,
    build_manifest, dump_manifest, parse_manifest, cell_filename,
)
from .serialization import load_notebook, save_notebook, parse_notebook_json, notebook_to_json

__all__ = [
    'Point', 'Stroke',
    'Cell', 'CellStatus', 'RunStatus', 'DEFAULT_CELL_HEIGHT', 'MIN_CELL_HEIGHT',
    'Notebook',
    'encode_svg', 'decode_svg', 'DecodedSvg', 'SvgDecodeError',
    'ProjectManifest', 'ManifestEntry', 'MANIFEST_NAME',
    'build_manifest', 'dump_manifest', 'parse_manifest', 'cell_filename',
    'load_notebook', 'save_notebook', 'parse_notebook_json', 'notebook_to_json',
]
