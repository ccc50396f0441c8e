from __future__ import annotations


class SheetInsightsError(Exception):
    """Base class for errors raised while turning a Drive file into insights."""


class InvalidLocatorError(SheetInsightsError):
    """The supplied URL does not contain a Google Drive file id."""


class MissingLocatorError(InvalidLocatorError):
    """No URL was supplied at all."""


class UnsupportedFormatError(SheetInsightsError):
    """The file is not a spreadsheet container we can decode or export."""


class SheetIndexError(SheetInsightsError):
    """The requested sheet position does not exist in the workbook."""


class UpstreamError(SheetInsightsError):
    """Google Drive or the completion service failed or timed out."""


class MalformedInsightError(SheetInsightsError):
    """The completion service returned text that is not the expected JSON object."""

    def __init__(self, message: str, raw_text: str) -> None:
        super().__init__(message)
        self.raw_text = raw_text
