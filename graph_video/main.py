from __future__ import annotations

import logging
import time

from fastapi import FastAPI, Request, Response

from graph_video.video_routes import router as video_router

logger = logging.getLogger("graph-video")
logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")

app = FastAPI(title="Graph Video Uploader")


@app.middleware("http")
async def log_upload_requests(request: Request, call_next) -> Response:
    started = time.perf_counter()
    body_bytes = request.headers.get("content-length", "0")
    response_status = 500
    try:
        response = await call_next(request)
        response_status = response.status_code
        return response
    finally:
        logger.info(
            "request method=%s path=%s status=%s body_bytes=%s duration_ms=%.2f",
            request.method,
            request.url.path,
            response_status,
            body_bytes,
            (time.perf_counter() - started) * 1000,
        )


@app.get("/health")
def health() -> dict[str, bool]:
    return {"ok": True}


@app.head("/health")
def health_head() -> Response:
    return Response(status_code=200)


app.include_router(video_router)
