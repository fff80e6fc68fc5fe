"""Notebook data model."""
from dataclasses import dataclass, field
from typing import Optional, List

from .cell import Cell, CellStatus, RunStatus, DEFAULT_CELL_HEIGHT, MIN_CELL_HEIGHT
from .stroke import Stroke


NOTEBOOK_VERSION = 1


@dataclass
class Notebook:
    """
    An ordered sequence of cells.

    Cell order is the presentation order. Operations keyed by an unknown
    cell id do nothing and report it through their return value.
    """
    cells: List[Cell] = field(default_factory=list)
    version: int = NOTEBOOK_VERSION

    @classmethod
    def empty(cls) -> 'Notebook':
        """A fresh notebook with one blank cell."""
        return cls(cells=[Cell(height=DEFAULT_CELL_HEIGHT)])

    def get_cell(self, cell_id: str) -> Optional[Cell]:
        """Get cell by ID."""
        return next((c for c in self.cells if c.id == cell_id), None)

    def get_cell_index(self, cell_id: str) -> int:
        """Get index of cell, -1 if not found."""
        return next((i for i, c in enumerate(self.cells) if c.id == cell_id), -1)

    def add_cell(self, after_id: Optional[str] = None) -> Cell:
        """Add a new empty cell, optionally after a specific cell."""
        cell = Cell(height=DEFAULT_CELL_HEIGHT)
        idx = self.get_cell_index(after_id) if after_id else -1
        if idx >= 0:
            self.cells.insert(idx + 1, cell)
        else:
            self.cells.append(cell)
        return cell

    def delete_cell(self, cell_id: str) -> bool:
        """Delete a cell by ID. Its strokes go with it."""
        idx = self.get_cell_index(cell_id)
        if idx >= 0:
            self.cells.pop(idx)
            return True
        return False

    def set_strokes(self, cell_id: str, strokes: List[Stroke]) -> bool:
        cell = self.get_cell(cell_id)
        if cell is None:
            return False
        cell.strokes = [list(s) for s in strokes if s]
        cell.status = CellStatus.IDLE
        cell.error = None
        return True

    def append_stroke(self, cell_id: str, stroke: Stroke) -> bool:
        """Record a finished pen contact. Empty strokes are ignored."""
        cell = self.get_cell(cell_id)
        if cell is None or not stroke:
            return False
        cell.strokes.append(list(stroke))
        return True

    def remove_stroke(self, cell_id: str, index: int) -> bool:
        """Erase one stroke by position."""
        cell = self.get_cell(cell_id)
        if cell is None or not 0 <= index < len(cell.strokes):
            return False
        cell.strokes.pop(index)
        return True

    def clear_cell(self, cell_id: str) -> bool:
        cell = self.get_cell(cell_id)
        if cell is None:
            return False
        cell.clear()
        return True

    def set_recognized(self, cell_id: str, code: str) -> bool:
        """Attach transcribed source text. The text is stored as-is."""
        cell = self.get_cell(cell_id)
        if cell is None:
            return False
        cell.recognized_code = code
        return True

    def set_status(self, cell_id: str, status: CellStatus, error: Optional[str] = None) -> bool:
        cell = self.get_cell(cell_id)
        if cell is None:
            return False
        cell.status = status
        cell.error = error
        return True

    def set_run_status(self, cell_id: str, run_status: RunStatus) -> bool:
        cell = self.get_cell(cell_id)
        if cell is None:
            return False
        cell.run_status = run_status
        return True

    def set_output(self, cell_id: str, stdout: str, stderr: str) -> bool:
        cell = self.get_cell(cell_id)
        if cell is None:
            return False
        cell.stdout = stdout
        cell.stderr = stderr
        cell.run_status = RunStatus.DONE
        return True

    def set_height(self, cell_id: str, height: float) -> bool:
        cell = self.get_cell(cell_id)
        if cell is None:
            return False
        cell.height = max(MIN_CELL_HEIGHT, height)
        return True

    def to_dict(self) -> dict:
        return {'version': self.version, 'cells': [c.to_dict() for c in self.cells]}
