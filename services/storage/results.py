"""Outcomes returned by the storage adapters.

Adapters never raise past their public methods; every failure ends up
in one of these.
"""
from dataclasses import dataclass
from typing import Optional

from document.notebook import Notebook


CANCELLED = "Cancelled"


@dataclass
class StorageResult:
    success: bool
    error: Optional[str] = None
    cancelled: bool = False

    def to_dict(self) -> dict:
        data = {'success': self.success}
        if self.error is not None:
            data['error'] = self.error
        if self.cancelled:
            data['cancelled'] = True
        return data


@dataclass
class SaveResult(StorageResult):
    # Archive saves hand back the file to download
    archive: Optional[bytes] = None
    filename: Optional[str] = None

    @classmethod
    def cancelled_result(cls) -> 'SaveResult':
        return cls(success=False, error=CANCELLED, cancelled=True)


@dataclass
class LoadResult(StorageResult):
    notebook: Optional[Notebook] = None
    stroke_width: Optional[float] = None

    @classmethod
    def cancelled_result(cls) -> 'LoadResult':
        return cls(success=False, error=CANCELLED, cancelled=True)

    def to_dict(self) -> dict:
        data = super().to_dict()
        if self.notebook is not None:
            data['cells'] = len(self.notebook.cells)
        if self.stroke_width is not None:
            data['strokeWidth'] = self.stroke_width
        return data
