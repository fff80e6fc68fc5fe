"""Cell data model: one unit of ink plus its transcription and output."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, List
import itertools
import uuid

from .stroke import Stroke, stroke_from_list, stroke_to_list


DEFAULT_CELL_HEIGHT = 320
MIN_CELL_HEIGHT = 120

_cell_counter = itertools.count(1)


def new_cell_id() -> str:
    """
    Allocate a cell id.

    The counter prefix makes ids unique within the process even if the
    random suffix repeats; ids are never reused.
    """
    return f"_{next(_cell_counter):x}{uuid.uuid4().hex[:8]}"


class CellStatus(str, Enum):
    """Transcription state of a cell."""
    IDLE = "idle"
    CONVERTING = "converting"
    ERROR = "error"


class RunStatus(str, Enum):
    """Execution state of a cell's recognized code."""
    IDLE = "idle"
    RUNNING = "running"
    DONE = "done"
    ERROR = "error"


@dataclass
class Cell:
    """
    A single cell in a notebook.

    The cell owns its strokes; nothing else holds references to them.
    Everything except strokes is optional metadata set by the
    transcription service and the execution bridge.
    """
    id: str = field(default_factory=new_cell_id)
    strokes: List[Stroke] = field(default_factory=list)
    recognized_code: Optional[str] = None

    # Transcription state
    status: Optional[CellStatus] = None
    error: Optional[str] = None

    # Execution state and output
    run_status: Optional[RunStatus] = None
    stdout: Optional[str] = None
    stderr: Optional[str] = None

    # Visual height of the drawing area
    height: Optional[float] = None

    @property
    def is_empty(self) -> bool:
        return not any(self.strokes)

    def clear(self):
        """Drop ink, transcription and output; keep id and height."""
        self.strokes = []
        self.status = CellStatus.IDLE
        self.error = None
        self.recognized_code = None
        self.stdout = None
        self.stderr = None

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        data = {
            'id': self.id,
            'strokes': [stroke_to_list(s) for s in self.strokes],
        }
        optional = {
            'recognizedCode': self.recognized_code,
            'status': self.status.value if self.status else None,
            'error': self.error,
            'runStatus': self.run_status.value if self.run_status else None,
            'stdout': self.stdout,
            'stderr': self.stderr,
            'height': self.height,
        }
        data.update({k: v for k, v in optional.items() if v is not None})
        return data

    @classmethod
    def from_dict(cls, data: dict) -> 'Cell':
        """Create Cell from dictionary."""
        strokes = [stroke_from_list(s) for s in data.get('strokes') or []]
        height = data.get('height')
        return cls(
            id=data.get('id') or new_cell_id(),
            strokes=[s for s in strokes if s],
            recognized_code=_str_or_none(data.get('recognizedCode')),
            status=_enum_or_none(CellStatus, data.get('status')),
            error=_str_or_none(data.get('error')),
            run_status=_enum_or_none(RunStatus, data.get('runStatus')),
            stdout=_str_or_none(data.get('stdout')),
            stderr=_str_or_none(data.get('stderr')),
            height=height if isinstance(height, (int, float)) and not isinstance(height, bool) else None,
        )


def _str_or_none(value) -> Optional[str]:
    return value if isinstance(value, str) else None


def _enum_or_none(enum_cls, value):
    try:
        return enum_cls(value) if value is not None else None
    except ValueError:
        return None
