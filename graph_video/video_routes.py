from __future__ import annotations

import logging
import os
import shutil
import tempfile
from typing import Any

from fastapi import APIRouter, File, Form, HTTPException, Query, UploadFile
from fastapi.concurrency import run_in_threadpool

from graph_video.chunks import FileChunkSource
from graph_video.config import GraphConfig
from graph_video.controller import UploadController
from graph_video.errors import FileTooLarge, InitializationFailed, TransportError
from graph_video.models import ContentCategory, UploadMethod, VideoParams
from graph_video.state import upload_store
from graph_video.transport import HttpxTransport

logger = logging.getLogger("graph-video")

router = APIRouter(tags=["videos"])

AUTO_METHOD = "auto"


def build_controller(node_id: str | None = None) -> UploadController:
    config = GraphConfig.from_env(node_id)
    return UploadController(HttpxTransport(config), config)


def _video_params(
    video_title: str,
    description: str,
    thum: str,
    title: str,
    content_category: str,
) -> VideoParams:
    try:
        category = ContentCategory(content_category.strip().upper() or ContentCategory.OTHER.value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown content_category {content_category}")
    return VideoParams(
        video_title=video_title,
        description=description,
        thum=thum,
        title=title,
        content_category=category,
    )


def _spool(upload: UploadFile) -> str:
    with tempfile.NamedTemporaryFile(prefix="graph-video-", delete=False) as handle:
        shutil.copyfileobj(upload.file, handle)
        return handle.name


@router.post("/videos")
async def upload_video(
    file: UploadFile = File(...),
    video_title: str = Form(""),
    description: str = Form(""),
    thum: str = Form(""),
    title: str = Form(""),
    content_category: str = Form(ContentCategory.OTHER.value),
    method: str = Form(AUTO_METHOD),
    node_id: str | None = Form(None),
) -> dict[str, Any]:
    allowed = {AUTO_METHOD, UploadMethod.RESUMABLE.value, UploadMethod.NON_RESUMABLE.value}
    if method not in allowed:
        raise HTTPException(status_code=400, detail=f"method must be one of {sorted(allowed)}")
    params = _video_params(video_title, description, thum, title, content_category)
    try:
        controller = build_controller(node_id)
    except RuntimeError as exc:
        logger.warning("upload_config_missing error=%s", exc)
        raise HTTPException(status_code=503, detail=str(exc))

    path = await run_in_threadpool(_spool, file)
    filename = file.filename or "video"
    try:
        source = FileChunkSource(path)
        if source.size == 0:
            raise HTTPException(status_code=400, detail="Uploaded file is empty")
        if method == UploadMethod.RESUMABLE.value:
            result = await controller.upload(source, params)
        elif method == UploadMethod.NON_RESUMABLE.value:
            result = await controller.post_non_resumable(source, params)
        else:
            result = await controller.upload_video(source, params)
    except FileTooLarge as exc:
        raise HTTPException(status_code=413, detail=str(exc))
    except (InitializationFailed, TransportError) as exc:
        logger.warning("upload_request_fail filename=%s error=%s", filename, exc)
        raise HTTPException(status_code=502, detail=str(exc))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    finally:
        try:
            os.unlink(path)
        except OSError:
            logger.exception("spool_cleanup_failed path=%s", path)

    return upload_store.add_record(filename, source.size, result.to_dict())


@router.post("/videos/by-url")
async def upload_video_by_url(
    file_url: str = Form(...),
    video_title: str = Form(""),
    description: str = Form(""),
    thum: str = Form(""),
    title: str = Form(""),
    content_category: str = Form(ContentCategory.OTHER.value),
    node_id: str | None = Form(None),
) -> dict[str, Any]:
    params = _video_params(video_title, description, thum, title, content_category)
    try:
        controller = build_controller(node_id)
    except RuntimeError as exc:
        logger.warning("upload_config_missing error=%s", exc)
        raise HTTPException(status_code=503, detail=str(exc))
    try:
        result = await controller.post_by_url(file_url, params)
    except TransportError as exc:
        logger.warning("upload_request_fail file_url=%s error=%s", file_url, exc)
        raise HTTPException(status_code=502, detail=str(exc))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return upload_store.add_record(file_url, 0, {**result.to_dict(), "method": "by_url"})


@router.get("/uploads")
def recent_uploads(limit: int = Query(default=20, ge=1, le=200)) -> list[dict[str, Any]]:
    return upload_store.recent(limit)
