"""Shared fixtures: in-memory workbooks and fake Drive / completion collaborators."""

import asyncio
import io
import json
from datetime import datetime
from typing import Dict, List, Optional, Sequence

import pytest
import xlwt
from openpyxl import Workbook as OpenpyxlWorkbook

from sheet_insights.config import AppConfig
from sheet_insights.google_drive import XLSX_MIME
from sheet_insights.models import DriveDocument

SHEET_URL = "https://docs.google.com/spreadsheets/d/1AbC-dEf_123/edit#gid=0"
FILE_ID = "1AbC-dEf_123"


def make_xlsx(sheets: Dict[str, Sequence[Sequence[object]]]) -> bytes:
    """Build an XLSX file with one worksheet per entry, rows appended from A1."""

    book = OpenpyxlWorkbook()
    book.remove(book.active)
    for name, rows in sheets.items():
        ws = book.create_sheet(title=name)
        for row in rows:
            ws.append(list(row))
    buffer = io.BytesIO()
    book.save(buffer)
    return buffer.getvalue()


def make_xls(sheets: Dict[str, Sequence[Sequence[object]]]) -> bytes:
    """Build a legacy BIFF8 .xls file; None leaves the cell unwritten."""

    book = xlwt.Workbook()
    date_style = xlwt.easyxf(num_format_str="YYYY-MM-DD")
    for name, rows in sheets.items():
        ws = book.add_sheet(name)
        for r, row in enumerate(rows):
            for c, value in enumerate(row):
                if value is None:
                    continue
                if isinstance(value, datetime):
                    ws.write(r, c, value, date_style)
                else:
                    ws.write(r, c, value)
    buffer = io.BytesIO()
    book.save(buffer)
    return buffer.getvalue()


class FakeDrive:
    """Stands in for GoogleDriveClient; returns a fixed document or raises."""

    def __init__(self, content: bytes = b"", mime_type: str = XLSX_MIME, error: Optional[Exception] = None):
        self.content = content
        self.mime_type = mime_type
        self.error = error
        self.calls: List[tuple] = []

    def fetch_document(self, file_id: str, *, strict: bool = False) -> DriveDocument:
        self.calls.append((file_id, strict))
        if self.error is not None:
            raise self.error
        return DriveDocument(
            file_id=file_id,
            name="Report",
            mime_type=self.mime_type,
            content=self.content,
        )


class FakeLLM:
    """Stands in for LLMClient; returns canned text and records prompts."""

    def __init__(self, reply: str = "{}", delay: float = 0.0):
        self.reply = reply
        self.delay = delay
        self.messages: List[List[Dict[str, str]]] = []

    async def complete(self, messages: List[Dict[str, str]]) -> str:
        self.messages.append(messages)
        if self.delay:
            await asyncio.sleep(self.delay)
        return self.reply

    @property
    def last_prompt(self) -> str:
        return self.messages[-1][0]["content"]


VALID_REPLIES = {
    "final_summary": {
        "limitations": [
            {"id": 1, "text": "Only ten rows were sampled", "fixed": False},
            {"id": 2, "text": "No date column", "fixed": True},
            {"id": 3, "text": "Region names are free text", "fixed": False},
        ],
        "takeaway": "Standardize region names before the next upload.",
    },
    "general_analytics": {
        "kpis": [{"label": "Total sales", "value": "1,240"}],
        "executiveSummary": ["Sales are concentrated in the North region."],
        "dataQualityNotes": ["One missing region value."],
    },
    "recommendations": {
        "recommendations": {
            "immediate": [{"id": 1, "text": "Fill missing regions", "done": False}],
            "medium": [{"id": 1, "text": "Add a date column", "done": False}],
            "strategic": [{"id": 1, "text": "Automate uploads", "done": False}],
        },
        "monitoringPlan": [
            {"id": 1, "label": "Daily", "desc": "Check new rows"},
            {"id": 2, "label": "Weekly", "desc": "Review totals"},
            {"id": 3, "label": "Monthly", "desc": "Audit regions"},
        ],
    },
    "alerts": {
        "alerts": [{"id": 1, "type": "warning", "text": "Sales dropped in South"}],
        "correlations": [
            {"id": 1, "pair": "units/sales", "value": 0.92, "meaning": "Strong link", "trend": "up"}
        ],
    },
}


@pytest.fixture
def sales_rows():
    return [
        ["region", "sales", "units"],
        ["North", 500, 10],
        ["South", 240, 4],
        [None, 500, 7],
    ]


@pytest.fixture
def sales_xlsx(sales_rows):
    return make_xlsx({"Sales": sales_rows, "Notes": [["note"], ["ok"]], "Extra": [["x"], [1]]})


@pytest.fixture
def app_config():
    return AppConfig()


def reply_for(kind: str) -> str:
    return json.dumps(VALID_REPLIES[kind])
