"""Resumable and non-resumable video uploads to the Graph API videos edge."""

from graph_video.chunks import BytesChunkSource, FileChunkSource, FixedChunkPolicy, SizeBandChunkPolicy
from graph_video.config import GraphConfig
from graph_video.controller import UploadController
from graph_video.errors import FileTooLarge, InitializationFailed, StalledProgress, TransportError, UploadError
from graph_video.models import ContentCategory, PostResponse, UploadOutcome, VideoParams
from graph_video.transport import HttpxTransport

__all__ = [
    "BytesChunkSource",
    "ContentCategory",
    "FileChunkSource",
    "FileTooLarge",
    "FixedChunkPolicy",
    "GraphConfig",
    "HttpxTransport",
    "InitializationFailed",
    "PostResponse",
    "SizeBandChunkPolicy",
    "StalledProgress",
    "TransportError",
    "UploadController",
    "UploadError",
    "UploadOutcome",
    "VideoParams",
]
