from __future__ import annotations

from typing import Any


class UploadError(Exception):
    """Base class for everything an upload call can fail with."""


class InitializationFailed(UploadError):
    """The start phase did not hand back a usable upload session id."""


class TransportError(UploadError):
    def __init__(self, message: str, status_code: int | None = None, body: Any = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class StalledProgress(TransportError):
    """Transfer acknowledgements stopped moving the offsets forward."""


class FileTooLarge(UploadError):
    """The non-resumable path was asked to carry a file above its threshold."""
