import asyncio
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

sys.path.append(str(Path(__file__).resolve().parents[1]))

from graph_video.config import GraphConfig  # noqa: E402
from graph_video.controller import UploadController  # noqa: E402
from graph_video.errors import TransportError  # noqa: E402
from graph_video.main import app  # noqa: E402
from graph_video.models import ChunkAck, Finished, Initialized, PostResponse, UploadPhase  # noqa: E402
from graph_video.state import upload_store  # noqa: E402
import graph_video.video_routes as video_routes  # noqa: E402


client = TestClient(app)


class ScriptedTransport:
    def __init__(self, size: int, fail_transfer: bool = False) -> None:
        self.size = size
        self.fail_transfer = fail_transfer
        self.phases: list[str] = []
        self.finish_params = None
        self.by_url_params = None

    async def send(self, phase, session, chunk=None, params=None):
        self.phases.append(phase.value)
        if phase is UploadPhase.START:
            return Initialized(video_id="vid_9", session_id="sess_9", start_offset=0, end_offset=self.size)
        if phase is UploadPhase.TRANSFER:
            if self.fail_transfer:
                raise TransportError("transfer request returned 500", status_code=500)
            return ChunkAck(start_offset=self.size, end_offset=self.size)
        self.finish_params = params
        return Finished(success=True)

    async def post_video(self, content, params=None):
        self.phases.append("non_resumable")
        return PostResponse(id="vid_small")

    async def post_by_url(self, file_url, params=None):
        self.phases.append("by_url")
        self.by_url_params = params
        return PostResponse(id="vid_url")


def setup_function() -> None:
    upload_store.clear()


def _install(monkeypatch, transport: ScriptedTransport, **config) -> None:
    settings = {"access_token": "token", "node_id": "page_1"}
    settings.update(config)
    controller = UploadController(transport, GraphConfig(**settings))
    monkeypatch.setattr(video_routes, "build_controller", lambda node_id=None: controller)


def test_health_returns_ok() -> None:
    assert client.get("/health").json() == {"ok": True}
    assert client.head("/health").status_code == 200


def test_by_url_upload_records_remote_id(monkeypatch) -> None:
    transport = ScriptedTransport(size=0)
    _install(monkeypatch, transport)

    response = client.post(
        "/videos/by-url",
        data={"file_url": "https://cdn.example.com/clip.mp4", "description": "Archive"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["method"] == "by_url"
    assert body["video_id"] == "vid_url"
    assert transport.phases == ["by_url"]
    assert transport.by_url_params.form_fields() == {"description": "Archive"}


def test_by_url_rejects_non_http_url(monkeypatch) -> None:
    transport = ScriptedTransport(size=0)
    _install(monkeypatch, transport)

    response = client.post("/videos/by-url", data={"file_url": "ftp://cdn.example.com/clip.mp4"})

    assert response.status_code == 400
    assert transport.phases == []


def test_upload_is_spooled_outside_the_event_loop(monkeypatch) -> None:
    spooled_with_loop = []
    real_spool = video_routes._spool

    def spool(upload):
        try:
            asyncio.get_running_loop()
            spooled_with_loop.append(True)
        except RuntimeError:
            spooled_with_loop.append(False)
        return real_spool(upload)

    monkeypatch.setattr(video_routes, "_spool", spool)
    _install(monkeypatch, ScriptedTransport(size=11))

    response = client.post("/videos", files={"file": ("clip.mp4", b"hello-video", "video/mp4")})

    assert response.status_code == 200
    assert spooled_with_loop == [False]


def test_small_file_uses_non_resumable_upload(monkeypatch) -> None:
    transport = ScriptedTransport(size=11)
    _install(monkeypatch, transport)

    response = client.post("/videos", files={"file": ("clip.mp4", b"hello-video", "video/mp4")})

    assert response.status_code == 200
    body = response.json()
    assert body["method"] == "non_resumable"
    assert body["video_id"] == "vid_small"
    assert body["filename"] == "clip.mp4"
    assert transport.phases == ["non_resumable"]


def test_resumable_method_runs_every_phase(monkeypatch) -> None:
    transport = ScriptedTransport(size=11)
    _install(monkeypatch, transport)

    response = client.post(
        "/videos",
        files={"file": ("clip.mp4", b"hello-video", "video/mp4")},
        data={"method": "resumable", "description": "Behind the scenes", "content_category": "music"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["method"] == "resumable"
    assert body["success"] is True
    assert body["session_id"] == "sess_9"
    assert transport.phases == ["start", "transfer", "finish"]
    assert transport.finish_params.form_fields() == {
        "description": "Behind the scenes",
        "content_category": "MUSIC",
    }

    recent = client.get("/uploads").json()
    assert [record["session_id"] for record in recent] == ["sess_9"]


def test_forced_non_resumable_above_threshold_is_413(monkeypatch) -> None:
    transport = ScriptedTransport(size=11)
    _install(monkeypatch, transport, non_resumable_max_bytes=5)

    response = client.post(
        "/videos",
        files={"file": ("clip.mp4", b"hello-video", "video/mp4")},
        data={"method": "non_resumable"},
    )

    assert response.status_code == 413
    assert transport.phases == []


def test_transport_failure_is_502(monkeypatch) -> None:
    transport = ScriptedTransport(size=11, fail_transfer=True)
    _install(monkeypatch, transport)

    response = client.post(
        "/videos",
        files={"file": ("clip.mp4", b"hello-video", "video/mp4")},
        data={"method": "resumable"},
    )

    assert response.status_code == 502
    assert "finish" not in transport.phases
    assert client.get("/uploads").json() == []


@pytest.mark.parametrize(
    "data",
    [{"method": "stream"}, {"content_category": "gardening"}],
)
def test_invalid_form_values_are_400(monkeypatch, data) -> None:
    _install(monkeypatch, ScriptedTransport(size=11))

    response = client.post("/videos", files={"file": ("clip.mp4", b"hello-video", "video/mp4")}, data=data)

    assert response.status_code == 400


def test_empty_file_is_400(monkeypatch) -> None:
    _install(monkeypatch, ScriptedTransport(size=0))

    response = client.post("/videos", files={"file": ("clip.mp4", b"", "video/mp4")})

    assert response.status_code == 400


def test_missing_token_is_503(monkeypatch) -> None:
    monkeypatch.delenv("META_PAGE_ACCESS_TOKEN", raising=False)

    response = client.post("/videos", files={"file": ("clip.mp4", b"hello-video", "video/mp4")})

    assert response.status_code == 503


def test_config_from_env(monkeypatch) -> None:
    monkeypatch.setenv("META_PAGE_ACCESS_TOKEN", " secret ")
    monkeypatch.setenv("META_PAGE_ID", "555")
    monkeypatch.setenv("META_API_VERSION", "v21.0")
    monkeypatch.setenv("UPLOAD_MAX_STALLED_TRANSFERS", "4")
    monkeypatch.delenv("GRAPH_VIDEO_BASE", raising=False)

    config = GraphConfig.from_env()

    assert config.access_token == "secret"
    assert config.videos_url == "https://graph-video.facebook.com/v21.0/555/videos"
    assert config.max_stalled_transfers == 4
    assert GraphConfig.from_env("777").node_id == "777"


def test_config_requires_page_id(monkeypatch) -> None:
    monkeypatch.setenv("META_PAGE_ACCESS_TOKEN", "secret")
    monkeypatch.delenv("META_PAGE_ID", raising=False)

    with pytest.raises(RuntimeError, match="META_PAGE_ID"):
        GraphConfig.from_env()
