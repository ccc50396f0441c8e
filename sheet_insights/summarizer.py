from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence, Union

from .config import DigestMode
from .models import CellValue, ColumnDigest, ColumnSample, Row, Sheet, SheetDigest, Workbook

LOGGER = logging.getLogger(__name__)

SAMPLE_SIZE = 5
NUMERIC = "numeric"
CATEGORICAL = "categorical"


def _is_number(value: CellValue) -> bool:
    # bool is an int subclass but a spreadsheet boolean is not a number
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _distinct_key(value: CellValue) -> Any:
    # Keep True distinct from 1 when counting unique values
    if isinstance(value, bool):
        return ("bool", value)
    return value


def _column_names(rows: Sequence[Row], columns: Optional[Sequence[str]]) -> List[str]:
    if columns is not None:
        return list(columns)
    return list(rows[0].keys())


def digest_column(name: str, values: Sequence[CellValue]) -> ColumnDigest:
    """Classify one column and compute its missing/unique/sum/avg figures in a single pass."""

    missing = 0
    non_null = 0
    all_numeric = True
    total: Union[int, float] = 0
    seen = set()

    for value in values:
        if value is None:
            missing += 1
            continue
        non_null += 1
        seen.add(_distinct_key(value))
        if all_numeric and _is_number(value):
            total += value
        else:
            all_numeric = False

    if non_null and all_numeric:
        return ColumnDigest(
            column=name,
            type=NUMERIC,
            missing=missing,
            unique_count=len(seen),
            sum=total,
            avg=total / non_null,
        )
    return ColumnDigest(
        column=name,
        type=CATEGORICAL,
        missing=missing,
        unique_count=len(seen),
        sum=None,
        avg=None,
    )


def summarize_rows(
    rows: Sequence[Row],
    mode: DigestMode = DigestMode.BASIC,
    columns: Optional[Sequence[str]] = None,
) -> SheetDigest:
    """Build a digest of ``rows`` using the requested strategy.

    Column order follows ``columns`` when given, otherwise the keys of the
    first row. Rows are used as passed in; callers truncate beforehand.
    """

    if not rows:
        return SheetDigest(row_count=0, columns=[])

    names = _column_names(rows, columns)
    mode = DigestMode(mode)

    if mode is DigestMode.BASIC:
        return SheetDigest(row_count=len(rows), columns=names)

    if mode is DigestMode.SAMPLED:
        head = rows[:SAMPLE_SIZE]
        return SheetDigest(
            row_count=len(rows),
            columns=[
                ColumnSample(column=name, sample_values=[row.get(name) for row in head])
                for name in names
            ],
        )

    return SheetDigest(
        row_count=len(rows),
        columns=[digest_column(name, [row.get(name) for row in rows]) for name in names],
    )


def summarize_sheet(sheet: Sheet, mode: DigestMode = DigestMode.BASIC) -> SheetDigest:
    return summarize_rows(sheet.rows, mode, columns=sheet.columns)


def summarize_workbook(
    workbook: Workbook,
    mode: DigestMode = DigestMode.BASIC,
    *,
    max_sheets: Optional[int] = None,
    max_rows: Optional[int] = None,
) -> Dict[str, SheetDigest]:
    """Digest each of the first ``max_sheets`` sheets, truncated to ``max_rows`` rows."""

    digests: Dict[str, SheetDigest] = {}
    for sheet in workbook.first(max_sheets):
        digests[sheet.name] = summarize_sheet(sheet.head(max_rows), mode)
    LOGGER.debug(
        "Summarized %s sheet(s) in %s mode (max rows %s)",
        len(digests),
        DigestMode(mode).value,
        max_rows if max_rows is not None else "all",
    )
    return digests
