from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Dict, List, Protocol, TypeVar, Union

from .config import AppConfig, RoutePolicy
from .decoder import decode_grid, decode_workbook
from .errors import UpstreamError
from .locator import extract_file_id
from .models import DriveDocument, SheetDigest, Workbook
from .prompt_builder import Digest, InsightKind, build_insight_messages, get_template
from .response_parser import normalize_insight
from .summarizer import summarize_workbook

LOGGER = logging.getLogger("sheet_insights.pipeline")

T = TypeVar("T")


class DocumentFetcher(Protocol):
    def fetch_document(self, file_id: str, *, strict: bool = False) -> DriveDocument:
        ...


class InsightRequester(Protocol):
    async def complete(self, messages: List[Dict[str, str]]) -> str:
        ...


async def _with_deadline(awaitable: Awaitable[T], seconds: float, *, operation: str) -> T:
    try:
        return await asyncio.wait_for(awaitable, timeout=seconds)
    except asyncio.TimeoutError as exc:
        raise UpstreamError(f"{operation} did not finish within {seconds:.0f}s") from exc


def policy_for(config: AppConfig, kind: Union[InsightKind, str]) -> RoutePolicy:
    return getattr(config.routes, InsightKind(kind).value)


def build_digest(workbook: Workbook, policy: RoutePolicy, *, test_mode: bool = False) -> Digest:
    """Apply a route's sheet/row bounds and summarize.

    Single-sheet policies yield one digest; the others a sheet name mapping.
    """

    digests = summarize_workbook(
        workbook,
        policy.digest_mode,
        max_sheets=policy.max_sheets,
        max_rows=policy.row_limit(test_mode),
    )
    if policy.single_sheet:
        return next(iter(digests.values()), SheetDigest(row_count=0, columns=[]))
    return digests


class InsightPipeline:
    """Linear chain of the stages between a Drive URL and a parsed insight."""

    def __init__(
        self,
        config: AppConfig,
        drive_client: DocumentFetcher,
        llm_client: InsightRequester,
    ) -> None:
        self._config = config
        self._drive = drive_client
        self._llm = llm_client

    async def fetch_document(self, url: Any, *, strict: bool = False) -> DriveDocument:
        file_id = extract_file_id(url)
        document = await _with_deadline(
            asyncio.to_thread(self._drive.fetch_document, file_id, strict=strict),
            self._config.drive.fetch_deadline,
            operation="Google Drive fetch",
        )
        LOGGER.info(
            "Fetched '%s' (%s, %d bytes)", document.name, document.mime_type, len(document.content)
        )
        return document

    async def load_workbook(self, url: Any) -> Workbook:
        document = await self.fetch_document(url)
        workbook = await asyncio.to_thread(decode_workbook, document.content, document.mime_type)
        LOGGER.info("Decoded %d sheet(s): %s", len(workbook.sheets), ", ".join(workbook.sheet_names))
        return workbook

    async def generate_insight(
        self,
        kind: Union[InsightKind, str],
        url: Any,
        *,
        test_mode: bool = False,
    ) -> Dict[str, Any]:
        kind = InsightKind(kind)
        workbook = await self.load_workbook(url)
        digest = build_digest(workbook, policy_for(self._config, kind), test_mode=test_mode)
        messages = build_insight_messages(kind, digest)

        raw = await _with_deadline(
            self._llm.complete(messages),
            self._config.llm.request_timeout,
            operation="Completion request",
        )
        template = get_template(kind) if self._config.validate_response_shape else None
        return normalize_insight(raw, template)

    async def fetch_grid(self, url: Any, sheet_index: int = 0) -> Dict[str, Any]:
        document = await self.fetch_document(url, strict=True)
        sheet_name, grid = await asyncio.to_thread(
            decode_grid, document.content, sheet_index, document.mime_type
        )
        return {
            "sheetName": sheet_name,
            "data": [[cell.to_dict() for cell in row] for row in grid],
        }
