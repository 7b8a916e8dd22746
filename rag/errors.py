"""
Exception hierarchy for the document chat client.

Startup errors (InputError, UploadFailed) abort the process; per-turn errors
(QueryFailed, ProtocolViolation) are reported and the chat loop carries on.
"""

from typing import Optional


class DocChatError(Exception):
    """Base class for every error raised by the client."""

    def __init__(self, message: str, details: Optional[str] = None) -> None:
        self.message = message
        self.details = details
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class InputError(DocChatError):
    """The document given on the command line cannot be used."""


class UnsupportedFormat(InputError):
    """The document is not a plain `.txt` file."""


class IOFailure(InputError):
    """The document is missing or cannot be read."""


class UploadFailed(DocChatError):
    """The ingestion request did not complete at the transport level."""

    def __init__(self, message: str, url: Optional[str] = None, details: Optional[str] = None) -> None:
        self.url = url
        if url:
            message = f"{message} (url: {url})"
        super().__init__(message, details)


class QueryFailed(DocChatError):
    """A chat query could not be sent or was rejected by the service."""

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[str] = None,
    ) -> None:
        self.url = url
        self.status_code = status_code
        if status_code is not None:
            message = f"{message} (status: {status_code})"
        if url:
            message = f"{message} (url: {url})"
        super().__init__(message, details)


class ProtocolViolation(DocChatError):
    """The streamed response contained something the decoder cannot accept."""

    def __init__(self, message: str, raw: Optional[str] = None, details: Optional[str] = None) -> None:
        self.raw = raw
        if raw is not None and details is None:
            details = raw if len(raw) <= 200 else raw[:200] + "…"
        super().__init__(message, details)
