from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import AppConfig
from .errors import (
    InvalidLocatorError,
    MalformedInsightError,
    MissingLocatorError,
    SheetIndexError,
    UnsupportedFormatError,
)
from .google_drive import GoogleDriveClient
from .llm_client import LLMClient
from .pipeline import DocumentFetcher, InsightPipeline, InsightRequester
from .prompt_builder import InsightKind
from .schemas import FetchExcelRequestBody, InsightRequestBody

LOGGER = logging.getLogger("sheet_insights.api")

URL_REQUIRED = "Google Drive URL required"
URL_INVALID = "Invalid Google Drive URL"
SHEET_INDEX_INVALID = "Invalid sheet index"
FORMAT_UNSUPPORTED = "Not a Google Sheet or Excel file"
INSIGHT_MALFORMED = "Invalid JSON from GPT"
BODY_INVALID = "Invalid request body"


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


async def _respond(
    route: str,
    failure_message: str,
    handler: Callable[[], Awaitable[Dict[str, Any]]],
) -> Any:
    """Run one request through the pipeline and map failures to HTTP errors."""

    try:
        return await handler()
    except MissingLocatorError:
        LOGGER.warning("%s: request without url", route)
        return _error(400, URL_REQUIRED)
    except InvalidLocatorError as exc:
        LOGGER.warning("%s: %s", route, exc)
        return _error(400, URL_INVALID)
    except SheetIndexError as exc:
        LOGGER.warning("%s: %s", route, exc)
        return _error(400, SHEET_INDEX_INVALID)
    except UnsupportedFormatError as exc:
        LOGGER.warning("%s: %s", route, exc)
        return _error(400, FORMAT_UNSUPPORTED)
    except MalformedInsightError:
        # Raw text is already logged by the response parser
        return _error(500, INSIGHT_MALFORMED)
    except Exception:
        LOGGER.exception("%s failed", route)
        return _error(500, failure_message)


def create_app(
    config: AppConfig,
    drive_client: Optional[DocumentFetcher] = None,
    llm_client: Optional[InsightRequester] = None,
) -> FastAPI:
    """Build the HTTP app; collaborators default to the real Google Drive and OpenAI clients."""

    if drive_client is None:
        drive_client = GoogleDriveClient.from_config(config.drive)
    if llm_client is None:
        llm_client = LLMClient(config.llm)
    pipeline = InsightPipeline(config, drive_client, llm_client)

    app = FastAPI(title="Sheet Insights API")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.pipeline = pipeline

    @app.exception_handler(RequestValidationError)
    async def _invalid_body(request: Request, exc: RequestValidationError) -> JSONResponse:
        LOGGER.warning("%s: invalid request body: %s", request.url.path, exc.errors())
        return _error(400, BODY_INVALID)

    @app.get("/health")
    async def health() -> Dict[str, str]:
        return {"status": "ok"}

    @app.post("/api/final-summary")
    async def final_summary(body: Optional[InsightRequestBody] = None):
        body = body or InsightRequestBody()
        return await _respond(
            "final-summary",
            "Failed to fetch Final Summary",
            lambda: pipeline.generate_insight(InsightKind.FINAL_SUMMARY, body.url),
        )

    @app.post("/api/gpt")
    async def general_analytics(body: Optional[InsightRequestBody] = None):
        body = body or InsightRequestBody()
        return await _respond(
            "gpt",
            "Failed to fetch Excel sheet data",
            lambda: pipeline.generate_insight(
                InsightKind.GENERAL_ANALYTICS, body.url, test_mode=bool(body.test_mode)
            ),
        )

    @app.post("/api/recommendations")
    async def recommendations(body: Optional[InsightRequestBody] = None):
        body = body or InsightRequestBody()
        return await _respond(
            "recommendations",
            "Failed to fetch recommendations",
            lambda: pipeline.generate_insight(
                InsightKind.RECOMMENDATIONS, body.url, test_mode=bool(body.test_mode)
            ),
        )

    @app.post("/api/fetch-excel")
    async def fetch_excel(body: Optional[FetchExcelRequestBody] = None):
        body = body or FetchExcelRequestBody()
        return await _respond(
            "fetch-excel",
            "Failed to fetch Excel sheet data",
            lambda: pipeline.fetch_grid(body.url, body.sheet_index or 0),
        )

    @app.post("/api/gpt-alerts")
    async def alerts(body: Optional[InsightRequestBody] = None):
        body = body or InsightRequestBody()
        return await _respond(
            "gpt-alerts",
            "Failed to fetch alerts and correlations",
            lambda: pipeline.generate_insight(InsightKind.ALERTS, body.url),
        )

    return app
