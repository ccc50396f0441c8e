from __future__ import annotations

import logging
from typing import Callable

import google_auth_httplib2
import httplib2
from google.auth.exceptions import GoogleAuthError
from google.oauth2.service_account import Credentials
from googleapiclient.discovery import Resource
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import HttpRequest
from httplib2 import HttpLib2Error

from .config import DriveConfig
from .errors import UnsupportedFormatError, UpstreamError
from .models import DriveDocument

SCOPES = ["https://www.googleapis.com/auth/drive.readonly"]

GOOGLE_SHEET_MIME = "application/vnd.google-apps.spreadsheet"
GOOGLE_APPS_MIME_PREFIX = "application/vnd.google-apps."
XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
XLS_MIME = "application/vnd.ms-excel"
CSV_MIME = "text/csv"

# Files the raw-fetch route accepts without export
SPREADSHEET_MIMES = frozenset({XLSX_MIME, XLS_MIME, CSV_MIME})

LOGGER = logging.getLogger(__name__)

_TRANSPORT_EXCEPTIONS = (GoogleAuthError, HttpLib2Error, OSError)


class GoogleDriveClient:
    """Thin wrapper around the Google Drive API for this project.

    The service account credential is created once and shared; every fetch
    builds its own HTTP transport because httplib2 connections are not
    thread-safe and fetches run in worker threads.
    """

    def __init__(self, conf: DriveConfig, credentials: Credentials | None = None) -> None:
        self._conf = conf
        self._credentials = credentials

    @classmethod
    def from_config(cls, conf: DriveConfig) -> "GoogleDriveClient":
        creds = Credentials.from_service_account_info(
            conf.service_account_info(), scopes=SCOPES
        )
        return cls(conf, creds)

    def _service_client(self) -> Resource:
        if self._credentials is None:
            self._credentials = Credentials.from_service_account_info(
                self._conf.service_account_info(), scopes=SCOPES
            )
        http = google_auth_httplib2.AuthorizedHttp(
            self._credentials,
            http=httplib2.Http(timeout=self._conf.request_timeout),
        )
        return build("drive", "v3", http=http, cache_discovery=False)

    # Reading -----------------------------------------------------------------
    def fetch_document(self, file_id: str, *, strict: bool = False) -> DriveDocument:
        """Download a file, exporting native Google Sheets to XLSX.

        With ``strict`` only Google Sheets, Excel and CSV files are accepted;
        otherwise any non-Google-Apps file is downloaded as is and left for
        the decoder to reject.
        """

        service = self._service_client()
        metadata = self._execute(
            lambda: service.files().get(
                fileId=file_id,
                fields="id, name, mimeType",
                supportsAllDrives=True,
            ),
            operation="fetch file metadata",
        )
        mime_type = metadata.get("mimeType", "")
        name = metadata.get("name", file_id)

        if mime_type == GOOGLE_SHEET_MIME:
            LOGGER.info("Exporting Google Sheet '%s' (%s) as XLSX", name, file_id)
            content = self._execute(
                lambda: service.files().export(fileId=file_id, mimeType=XLSX_MIME),
                operation="export spreadsheet",
            )
            return DriveDocument(
                file_id=file_id,
                name=name,
                mime_type=XLSX_MIME,
                content=bytes(content),
                exported=True,
            )

        if mime_type.startswith(GOOGLE_APPS_MIME_PREFIX):
            raise UnsupportedFormatError(
                f"Google Drive file '{name}' has type {mime_type} and cannot be exported as a spreadsheet"
            )
        if strict and mime_type not in SPREADSHEET_MIMES:
            raise UnsupportedFormatError(
                f"Google Drive file '{name}' has type {mime_type}; expected a Google Sheet or Excel file"
            )

        LOGGER.info("Downloading '%s' (%s, %s)", name, file_id, mime_type or "unknown type")
        content = self._execute(
            lambda: service.files().get_media(fileId=file_id, supportsAllDrives=True),
            operation="download file",
        )
        return DriveDocument(
            file_id=file_id,
            name=name,
            mime_type=mime_type,
            content=bytes(content),
        )

    # Internal ----------------------------------------------------------------
    def _execute(
        self,
        request_builder: Callable[[], HttpRequest],
        *,
        operation: str,
    ):
        """Execute a Drive API request, translating failures into UpstreamError."""

        try:
            return request_builder().execute()
        except HttpError as exc:
            status = getattr(exc.resp, "status", None)
            LOGGER.warning("Drive API %s failed with status %s: %s", operation, status, exc)
            raise UpstreamError(f"Drive API {operation} failed with status {status}") from exc
        except _TRANSPORT_EXCEPTIONS as exc:
            LOGGER.warning("Drive API %s failed: %s", operation, exc)
            raise UpstreamError(f"Drive API {operation} failed: {exc}") from exc
