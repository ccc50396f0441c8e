from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

CellValue = Union[int, float, str, bool, None]
Row = Dict[str, CellValue]


@dataclass(slots=True)
class DriveDocument:
    """Raw file content fetched from Google Drive."""

    file_id: str
    name: str
    mime_type: str
    content: bytes
    exported: bool = False  # True when a native Google Sheet was exported to XLSX


@dataclass(slots=True)
class Sheet:
    """Header-keyed rows of a single worksheet."""

    name: str
    columns: List[str]
    rows: List[Row] = field(default_factory=list)

    def head(self, limit: Optional[int]) -> "Sheet":
        if limit is None:
            return Sheet(self.name, list(self.columns), list(self.rows))
        return Sheet(self.name, list(self.columns), self.rows[: max(limit, 0)])


@dataclass(slots=True)
class Workbook:
    sheets: List[Sheet] = field(default_factory=list)

    @property
    def sheet_names(self) -> List[str]:
        return [sheet.name for sheet in self.sheets]

    def first(self, count: Optional[int]) -> List[Sheet]:
        if count is None:
            return list(self.sheets)
        return self.sheets[: max(count, 0)]


@dataclass(slots=True)
class GridCell:
    """Positional cell of the raw grid view (A1 address + decoded value)."""

    cell: str
    value: CellValue

    def to_dict(self) -> Dict[str, Any]:
        return {"cell": self.cell, "value": self.value}


@dataclass(slots=True)
class ColumnDigest:
    column: str
    type: str  # "numeric" or "categorical"
    missing: int
    unique_count: int
    sum: Optional[float]  # None when the column is not numeric
    avg: Optional[float]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "column": self.column,
            "type": self.type,
            "missing": self.missing,
            "uniqueCount": self.unique_count,
            "sum": self.sum,
            "avg": self.avg,
        }


@dataclass(slots=True)
class ColumnSample:
    column: str
    sample_values: List[CellValue]

    def to_dict(self) -> Dict[str, Any]:
        return {"column": self.column, "sampleValues": list(self.sample_values)}


@dataclass(slots=True)
class SheetDigest:
    """Bounded summary of one sheet; the column entries depend on the digest mode."""

    row_count: int
    columns: List[Union[str, ColumnDigest, ColumnSample]]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rowCount": self.row_count,
            "columns": [
                column if isinstance(column, str) else column.to_dict()
                for column in self.columns
            ],
        }
