from __future__ import annotations

import asyncio
import logging
from typing import TypeVar

from graph_video.chunks import ChunkPolicy, ChunkSource, SizeBandChunkPolicy, plan_chunk, select_upload_method
from graph_video.config import GraphConfig
from graph_video.errors import FileTooLarge, InitializationFailed, StalledProgress, TransportError, UploadError
from graph_video.models import (
    Cancelled,
    ChunkAck,
    Finished,
    Initialized,
    PhaseResult,
    PostResponse,
    UploadMethod,
    UploadOutcome,
    UploadPhase,
    UploadSession,
    VideoParams,
)
from graph_video.transport import Transport

logger = logging.getLogger("graph-video")

ResultT = TypeVar("ResultT", Initialized, ChunkAck, Finished, Cancelled)


def _expect(result: PhaseResult, expected: type[ResultT], phase: UploadPhase) -> ResultT:
    if not isinstance(result, expected):
        raise TransportError(f"{phase.value} phase answered with {type(result).__name__}")
    return result


class UploadController:
    """Drives one video at a time through the resumable upload protocol.

    Every phase waits for the previous one, the remote offsets decide what is
    sent next, and any failure ends the call. Nothing is retried here: a
    caller that wants to try again calls :meth:`upload` again, which opens a
    fresh session.
    """

    def __init__(self, transport: Transport, config: GraphConfig) -> None:
        self.transport = transport
        self.config = config

    async def begin(self, total_size: int, video_params: VideoParams | None = None) -> UploadSession:
        if total_size <= 0:
            raise ValueError("source_size must be positive")
        session = UploadSession(node_id=self.config.node_id, total_size=total_size)
        result = _expect(
            await self.transport.send(UploadPhase.START, session, params=video_params),
            Initialized,
            UploadPhase.START,
        )
        if not result.session_id:
            session.phase = UploadPhase.FAILED
            logger.warning("upload_start_fail node_id=%s file_size=%s", session.node_id, total_size)
            raise InitializationFailed("start phase returned no upload_session_id")
        session.session_id = result.session_id
        session.video_id = result.video_id
        self._accept(session, result.start_offset, result.end_offset)
        session.phase = UploadPhase.TRANSFER
        logger.info(
            "upload_start_success session_id=%s video_id=%s file_size=%s end_offset=%s",
            session.session_id,
            session.video_id,
            total_size,
            session.end_offset,
        )
        return session

    async def transfer(self, session: UploadSession, source: ChunkSource, chunk_size: int) -> ChunkAck:
        chunk = plan_chunk(session, chunk_size)
        data = await asyncio.to_thread(source.read_range, chunk.offset, chunk.length)
        logger.info(
            "upload_transfer session_id=%s offset=%s length=%s",
            session.session_id,
            chunk.offset,
            len(data),
        )
        result = _expect(
            await self.transport.send(UploadPhase.TRANSFER, session, chunk=data),
            ChunkAck,
            UploadPhase.TRANSFER,
        )
        self._accept(session, result.start_offset, result.end_offset)
        return result

    async def finish(self, session: UploadSession, video_params: VideoParams | None = None) -> Finished:
        session.phase = UploadPhase.FINISH
        result = _expect(
            await self.transport.send(UploadPhase.FINISH, session, params=video_params),
            Finished,
            UploadPhase.FINISH,
        )
        session.phase = UploadPhase.DONE
        logger.info("upload_finish session_id=%s success=%s", session.session_id, result.success)
        return result

    async def cancel(self, session: UploadSession) -> Cancelled:
        if session.phase.is_terminal:
            raise ValueError(f"session already {session.phase.value}")
        if not session.session_id:
            raise ValueError("session was never started")
        session.phase = UploadPhase.CANCEL
        result = _expect(
            await self.transport.send(UploadPhase.CANCEL, session),
            Cancelled,
            UploadPhase.CANCEL,
        )
        session.phase = UploadPhase.CANCELLED
        logger.info("upload_cancel session_id=%s start_offset=%s", session.session_id, session.start_offset)
        return result

    async def upload(
        self,
        source: ChunkSource,
        video_params: VideoParams | None = None,
        chunk_policy: ChunkPolicy | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> UploadOutcome:
        total_size = source.size
        if total_size <= 0:
            raise ValueError("source_size must be positive")
        policy = chunk_policy or SizeBandChunkPolicy()
        chunk_size = policy.chunk_size(total_size)

        if cancel_event is not None and cancel_event.is_set():
            return UploadOutcome(video_id="", session_id="", success=False, cancelled=True)

        session = await self.begin(total_size, video_params)
        transfers = 0
        stalls = 0
        # Progress means the accepted offsets pass their previous highs.
        high_start, high_end = session.start_offset, session.end_offset
        try:
            while not session.converged:
                if cancel_event is not None and cancel_event.is_set():
                    return await self._cancelled(session, transfers)
                ack = await self.transfer(session, source, chunk_size)
                transfers += 1
                if session.start_offset > high_start or session.end_offset > high_end:
                    high_start = max(high_start, session.start_offset)
                    high_end = max(high_end, session.end_offset)
                    stalls = 0
                    continue
                stalls += 1
                if stalls > self.config.max_stalled_transfers:
                    logger.warning(
                        "upload_stalled session_id=%s start_offset=%s end_offset=%s repeats=%s",
                        session.session_id,
                        ack.start_offset,
                        ack.end_offset,
                        stalls,
                    )
                    raise StalledProgress(
                        f"offsets did not advance past {high_start}-{high_end} after {stalls} acknowledgements"
                    )

            if cancel_event is not None and cancel_event.is_set():
                return await self._cancelled(session, transfers)
            finished = await self.finish(session, video_params)
        except UploadError:
            session.phase = UploadPhase.FAILED
            logger.warning(
                "upload_fail session_id=%s start_offset=%s transfers=%s",
                session.session_id,
                session.start_offset,
                transfers,
            )
            raise
        return UploadOutcome(
            video_id=session.video_id,
            session_id=session.session_id,
            success=finished.success,
            transfers=transfers,
        )

    async def post_non_resumable(self, source: ChunkSource, video_params: VideoParams | None = None) -> PostResponse:
        total_size = source.size
        if total_size <= 0:
            raise ValueError("source_size must be positive")
        if select_upload_method(total_size, self.config.non_resumable_max_bytes) is UploadMethod.RESUMABLE:
            raise FileTooLarge(
                f"file of {total_size} bytes needs the resumable upload (limit {self.config.non_resumable_max_bytes})"
            )
        content = await asyncio.to_thread(source.read_range, 0, total_size)
        response = await self.transport.post_video(content, video_params)
        logger.info("upload_non_resumable_success video_id=%s file_size=%s", response.id, total_size)
        return response

    async def post_by_url(self, file_url: str, video_params: VideoParams | None = None) -> PostResponse:
        """Let the remote side fetch the video from a public URL."""
        file_url = file_url.strip()
        if not file_url.lower().startswith(("http://", "https://")):
            raise ValueError(f"file_url must be an http(s) URL, got {file_url!r}")
        response = await self.transport.post_by_url(file_url, video_params)
        logger.info("upload_by_url_success video_id=%s file_url=%s", response.id, file_url)
        return response

    async def upload_video(
        self,
        source: ChunkSource,
        video_params: VideoParams | None = None,
        chunk_policy: ChunkPolicy | None = None,
    ) -> UploadOutcome | PostResponse:
        method = select_upload_method(source.size, self.config.non_resumable_max_bytes)
        if method is UploadMethod.NON_RESUMABLE:
            return await self.post_non_resumable(source, video_params)
        return await self.upload(source, video_params, chunk_policy)

    async def _cancelled(self, session: UploadSession, transfers: int) -> UploadOutcome:
        await self.cancel(session)
        return UploadOutcome(
            video_id=session.video_id,
            session_id=session.session_id,
            success=False,
            cancelled=True,
            transfers=transfers,
        )

    @staticmethod
    def _accept(session: UploadSession, start_offset: int, end_offset: int) -> None:
        try:
            session.accept_offsets(start_offset, end_offset)
        except ValueError as exc:
            raise TransportError(str(exc)) from exc
