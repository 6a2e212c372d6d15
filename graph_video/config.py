from __future__ import annotations

import os
from dataclasses import dataclass

META_PAGE_ACCESS_TOKEN_ENV = "META_PAGE_ACCESS_TOKEN"
META_PAGE_ID_ENV = "META_PAGE_ID"
META_API_VERSION_ENV = "META_API_VERSION"
GRAPH_VIDEO_BASE_ENV = "GRAPH_VIDEO_BASE"
GRAPH_HTTP_TIMEOUT_ENV = "GRAPH_HTTP_TIMEOUT"
MAX_STALLED_TRANSFERS_ENV = "UPLOAD_MAX_STALLED_TRANSFERS"

DEFAULT_API_VERSION = "v24.0"
DEFAULT_GRAPH_VIDEO_BASE = "https://graph-video.facebook.com"
DEFAULT_TIMEOUT = 20.0
EDGE_PLACEHOLDER = "EDGE"

# Graph API guidance: non-resumable uploads are for files under 1 GB.
NON_RESUMABLE_MAX_BYTES = 10**9


@dataclass(frozen=True)
class GraphConfig:
    access_token: str
    node_id: str
    api_version: str = DEFAULT_API_VERSION
    base_url: str = DEFAULT_GRAPH_VIDEO_BASE
    timeout: float = DEFAULT_TIMEOUT
    max_stalled_transfers: int = 1
    non_resumable_max_bytes: int = NON_RESUMABLE_MAX_BYTES

    @property
    def url_template(self) -> str:
        return f"{self.base_url.rstrip('/')}/{self.api_version}/{self.node_id}/{EDGE_PLACEHOLDER}"

    def edge_url(self, edge: str) -> str:
        return self.url_template.replace(EDGE_PLACEHOLDER, edge.strip("/"))

    @property
    def videos_url(self) -> str:
        return self.edge_url("videos")

    @classmethod
    def from_env(cls, node_id: str | None = None) -> GraphConfig:
        access_token = os.getenv(META_PAGE_ACCESS_TOKEN_ENV, "").strip()
        if not access_token:
            raise RuntimeError(f"{META_PAGE_ACCESS_TOKEN_ENV} is not configured")
        node_id = (node_id or os.getenv(META_PAGE_ID_ENV, "")).strip()
        if not node_id:
            raise RuntimeError(f"{META_PAGE_ID_ENV} is not configured")
        api_version = os.getenv(META_API_VERSION_ENV, DEFAULT_API_VERSION).strip() or DEFAULT_API_VERSION
        base_url = os.getenv(GRAPH_VIDEO_BASE_ENV, DEFAULT_GRAPH_VIDEO_BASE).strip() or DEFAULT_GRAPH_VIDEO_BASE
        return cls(
            access_token=access_token,
            node_id=node_id,
            api_version=api_version,
            base_url=base_url,
            timeout=float(os.getenv(GRAPH_HTTP_TIMEOUT_ENV, str(DEFAULT_TIMEOUT))),
            max_stalled_transfers=int(os.getenv(MAX_STALLED_TRANSFERS_ENV, "1")),
        )
