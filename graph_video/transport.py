from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx

from graph_video.config import GraphConfig
from graph_video.errors import TransportError
from graph_video.models import (
    Cancelled,
    ChunkAck,
    Finished,
    Initialized,
    PhaseResult,
    PostResponse,
    UploadPhase,
    UploadSession,
    VideoParams,
)

logger = logging.getLogger("graph-video")


class Transport(Protocol):
    async def send(
        self,
        phase: UploadPhase,
        session: UploadSession,
        chunk: bytes | None = None,
        params: VideoParams | None = None,
    ) -> PhaseResult: ...

    async def post_video(self, content: bytes, params: VideoParams | None = None) -> PostResponse: ...

    async def post_by_url(self, file_url: str, params: VideoParams | None = None) -> PostResponse: ...


def _offset(body: dict[str, Any], key: str, default: str | None = None) -> int:
    raw = body.get(key, default)
    if raw is None:
        raise TransportError(f"response missing {key}", body=body)
    try:
        value = int(str(raw))
    except ValueError as exc:
        raise TransportError(f"response has non-numeric {key}={raw!r}", body=body) from exc
    if value < 0:
        raise TransportError(f"response has negative {key}={value}", body=body)
    return value


def _success_flag(body: dict[str, Any]) -> bool:
    value = body.get("success")
    if isinstance(value, str):
        return value.lower() == "true"
    return value is True


def build_form(
    phase: UploadPhase,
    session: UploadSession,
    params: VideoParams | None = None,
) -> dict[str, str]:
    form = {"upload_phase": phase.value}
    if phase is UploadPhase.START:
        form["file_size"] = str(session.total_size)
        return form
    form["upload_session_id"] = session.session_id
    if phase in {UploadPhase.TRANSFER, UploadPhase.CANCEL}:
        form["start_offset"] = str(session.start_offset)
    elif phase is UploadPhase.FINISH and params is not None:
        form.update(params.form_fields())
    return form


def parse_phase_result(phase: UploadPhase, body: dict[str, Any]) -> PhaseResult:
    if phase is UploadPhase.START:
        return Initialized(
            video_id=str(body.get("video_id") or ""),
            session_id=str(body.get("upload_session_id") or ""),
            start_offset=_offset(body, "start_offset", "0"),
            end_offset=_offset(body, "end_offset"),
        )
    if phase is UploadPhase.TRANSFER:
        return ChunkAck(
            start_offset=_offset(body, "start_offset"),
            end_offset=_offset(body, "end_offset"),
        )
    if phase is UploadPhase.FINISH:
        return Finished(success=_success_flag(body))
    if phase is UploadPhase.CANCEL:
        return Cancelled(success=_success_flag(body))
    raise ValueError(f"phase {phase.value} is not sent over the wire")


class HttpxTransport:
    """Sends upload phases to the ``/{node-id}/videos`` edge with httpx."""

    def __init__(self, config: GraphConfig, client: httpx.AsyncClient | None = None) -> None:
        self.config = config
        self._client = client

    async def _post(
        self,
        event: str,
        data: dict[str, str],
        files: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        url = self.config.videos_url
        params = {"access_token": self.config.access_token}
        try:
            if self._client is not None:
                response = await self._client.post(
                    url, data=data, files=files, params=params, timeout=self.config.timeout
                )
            else:
                async with httpx.AsyncClient(timeout=self.config.timeout) as client:
                    response = await client.post(url, data=data, files=files, params=params)
        except httpx.HTTPError as exc:
            logger.warning("video_phase_fail event=%s status_code=%s error=%s", event, None, exc)
            raise TransportError(f"{event} request failed: {exc}") from exc

        parsed = True
        try:
            body: Any = response.json()
        except ValueError:
            parsed = False
            body = {"raw": response.text[:500]}
        if not response.is_success:
            logger.warning("video_phase_fail event=%s status_code=%s response=%s", event, response.status_code, body)
            raise TransportError(
                f"{event} request returned {response.status_code}",
                status_code=response.status_code,
                body=body,
            )
        if not parsed or not isinstance(body, dict):
            logger.warning("video_phase_fail event=%s status_code=%s response=%s", event, response.status_code, body)
            raise TransportError(f"{event} response is not a JSON object", status_code=response.status_code, body=body)
        logger.info("video_phase_success event=%s status_code=%s", event, response.status_code)
        return body

    async def send(
        self,
        phase: UploadPhase,
        session: UploadSession,
        chunk: bytes | None = None,
        params: VideoParams | None = None,
    ) -> PhaseResult:
        data = build_form(phase, session, params)
        files = None
        if phase is UploadPhase.TRANSFER:
            if chunk is None:
                raise ValueError("transfer phase needs a chunk")
            files = {"video_file_chunk": ("chunk", chunk, "application/octet-stream")}
        body = await self._post(phase.value, data, files)
        return parse_phase_result(phase, body)

    async def post_video(self, content: bytes, params: VideoParams | None = None) -> PostResponse:
        data = params.form_fields() if params is not None else {}
        files = {"source": ("video", content, "application/octet-stream")}
        body = await self._post("non_resumable", data, files)
        video_id = body.get("id")
        if not video_id:
            raise TransportError("non_resumable response missing id", body=body)
        return PostResponse(id=str(video_id))

    async def post_by_url(self, file_url: str, params: VideoParams | None = None) -> PostResponse:
        data = {"file_url": file_url}
        if params is not None:
            data.update(params.form_fields())
        body = await self._post("by_url", data)
        video_id = body.get("id")
        if not video_id:
            raise TransportError("by_url response missing id", body=body)
        return PostResponse(id=str(video_id))
