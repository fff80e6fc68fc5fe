"""Ink geometry: points and strokes."""
from dataclasses import dataclass
from typing import List, Optional


@dataclass(frozen=True)
class Point:
    """
    One sampled pointer position.

    Immutable once recorded. Pressure is in (0, 1]; timestamp is the
    monotonic capture time in milliseconds.
    """
    x: float
    y: float
    pressure: float = 0.5
    timestamp: float = 0.0

    def to_dict(self) -> dict:
        return {'x': self.x, 'y': self.y, 'p': self.pressure, 't': self.timestamp}

    @classmethod
    def from_dict(cls, data: dict) -> Optional['Point']:
        """Create Point from dictionary, None if x/y are not numbers."""
        x, y = data.get('x'), data.get('y')
        if not _is_number(x) or not _is_number(y):
            return None
        p = data.get('p', 0.5)
        t = data.get('t', 0)
        return cls(
            x=float(x),
            y=float(y),
            pressure=float(p) if _is_number(p) else 0.5,
            timestamp=float(t) if _is_number(t) else 0.0,
        )


# One continuous pen contact. A stroke of length 1 is a dot.
Stroke = List[Point]


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def stroke_to_list(stroke: Stroke) -> list:
    return [p.to_dict() for p in stroke]


def stroke_from_list(data) -> Stroke:
    """Rebuild a stroke, skipping malformed points."""
    if not isinstance(data, list):
        return []
    points = (Point.from_dict(p) for p in data if isinstance(p, dict))
    return [p for p in points if p is not None]
