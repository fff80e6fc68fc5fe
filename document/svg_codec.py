"""
Stroke <-> SVG codec.

Each cell is stored as a plain SVG document so any vector viewer can
render it. Only geometry survives the trip: decoded points carry a
placeholder pressure and timestamp.
"""
from dataclasses import dataclass
from typing import List, Optional, Sequence
import re
import xml.etree.ElementTree as ET

from .stroke import Point, Stroke


SVG_NS = "http://www.w3.org/2000/svg"

# Fallback canvas when a document declares no usable size
DEFAULT_WIDTH = 800.0
DEFAULT_HEIGHT = 320.0
DEFAULT_STROKE_WIDTH = 4

# Offset used to give a single-point stroke a visible length
DOT_OFFSET = 0.1

DECODED_PRESSURE = 0.5
DECODED_TIMESTAMP = 0.0

_MOVE_LINE_RE = re.compile(r'([ML])\s*([-+\d.eE]+)[\s,]+([-+\d.eE]+)', re.IGNORECASE)
_LEADING_NUMBER_RE = re.compile(r'\s*([-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?)')


class SvgDecodeError(ValueError):
    """Raised when a document is not well-formed XML."""


@dataclass
class DecodedSvg:
    strokes: List[Stroke]
    width: float
    height: float


def _fmt_coord(value: float) -> str:
    return f"{value:.2f}"


def _fmt_number(value: float) -> str:
    """Format a size attribute without a trailing '.0' on whole numbers."""
    value = float(value)
    if value.is_integer():
        return str(int(value))
    return repr(value)


def stroke_to_path_d(stroke: Stroke) -> str:
    """Path data for one stroke, '' for an empty stroke."""
    if not stroke:
        return ""
    first = stroke[0]
    if len(stroke) == 1:
        return (f"M{_fmt_coord(first.x)} {_fmt_coord(first.y)} "
                f"L{_fmt_coord(first.x + DOT_OFFSET)} {_fmt_coord(first.y + DOT_OFFSET)}")
    parts = [f"M{_fmt_coord(first.x)} {_fmt_coord(first.y)}"]
    parts.extend(f"L{_fmt_coord(p.x)} {_fmt_coord(p.y)}" for p in stroke[1:])
    return " ".join(parts)


def encode_svg(strokes: Sequence[Stroke], width: float, height: float,
               stroke_width: float = DEFAULT_STROKE_WIDTH) -> str:
    """
    Convert strokes to an SVG document.

    The viewBox is `0 0 width height`, so coordinates are written in
    canvas units. One path element per non-empty stroke.
    """
    w, h = _fmt_number(width), _fmt_number(height)
    svg = ET.Element("svg", {
        "xmlns": SVG_NS,
        "viewBox": f"0 0 {w} {h}",
        "width": w,
        "height": h,
    })
    for stroke in strokes:
        d = stroke_to_path_d(stroke)
        if not d:
            continue
        ET.SubElement(svg, "path", {
            "d": d,
            "stroke": "#000",
            "stroke-width": _fmt_number(stroke_width),
            "fill": "none",
            "stroke-linecap": "round",
            "stroke-linejoin": "round",
        })
    ET.indent(svg, space="  ")
    body = ET.tostring(svg, encoding="unicode")
    return f'<?xml version="1.0" encoding="UTF-8"?>\n{body}\n'


def parse_path_d(d: str) -> Stroke:
    """
    Read move/line pairs from path data.

    Anything else (curves, arcs, closepath) is ignored, as are pairs
    whose numbers do not parse.
    """
    stroke: Stroke = []
    for _, xs, ys in _MOVE_LINE_RE.findall(d):
        try:
            x, y = float(xs), float(ys)
        except ValueError:
            continue
        if x != x or y != y:  # NaN
            continue
        stroke.append(Point(x, y, DECODED_PRESSURE, DECODED_TIMESTAMP))
    return stroke


def _parse_length(value: Optional[str]) -> Optional[float]:
    """Leading positive number of an attribute ('320px' -> 320.0)."""
    if not value:
        return None
    m = _LEADING_NUMBER_RE.match(value)
    if not m:
        return None
    number = float(m.group(1))
    return number if number > 0 else None


def _local_name(tag) -> str:
    if not isinstance(tag, str):
        return ""
    return tag.rsplit('}', 1)[-1]


def _dimensions(svg: Optional[ET.Element]) -> tuple:
    if svg is None:
        return DEFAULT_WIDTH, DEFAULT_HEIGHT

    vb_w = vb_h = None
    view_box = svg.get("viewBox")
    if view_box:
        parts = re.split(r'[\s,]+', view_box.strip())
        if len(parts) >= 4:
            vb_w, vb_h = _parse_length(parts[2]), _parse_length(parts[3])

    width = vb_w or _parse_length(svg.get("width")) or DEFAULT_WIDTH
    height = vb_h or _parse_length(svg.get("height")) or DEFAULT_HEIGHT
    return width, height


def decode_svg(document: str) -> DecodedSvg:
    """
    Parse an SVG document back into strokes.

    Size comes from the viewBox, then width/height attributes, then the
    800x320 default. Paths with no move/line points are skipped.

    Raises:
        SvgDecodeError: if the document is not well-formed XML
    """
    try:
        root = ET.fromstring(document)
    except ET.ParseError as e:
        raise SvgDecodeError(f"Malformed SVG: {e}") from e

    svg = root if _local_name(root.tag) == "svg" else next(
        (el for el in root.iter() if _local_name(el.tag) == "svg"), None)
    width, height = _dimensions(svg)

    strokes: List[Stroke] = []
    for el in root.iter():
        if _local_name(el.tag) != "path":
            continue
        d = el.get("d")
        if not d:
            continue
        stroke = parse_path_d(d)
        if stroke:
            strokes.append(stroke)

    return DecodedSvg(strokes=strokes, width=width, height=height)
