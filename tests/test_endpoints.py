import asyncio

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from channel_transcriber.errors import ConfigurationError, UpstreamError
from channel_transcriber.processor import store as keys
from channel_transcriber.processor.pipeline import PipelineController
from channel_transcriber.processor.store import MemoryStore
from channel_transcriber.server import endpoints
from channel_transcriber.server.endpoints import router, set_controller

from fakes import FakeLister, FakeResolver, FakeTranscriber, SleepRecorder, make_video

A = make_video("a", author="Chef Nam")
B = make_video("b")
A_AUDIO = "https://cdn.test/a.mp3"
B_AUDIO = "https://cdn.test/b.mp3"


@pytest.fixture
def controller():
    ctrl = PipelineController(
        lister=FakeLister([A, B]),
        resolver=FakeResolver(failing={B_AUDIO}),
        transcriber=FakeTranscriber({A_AUDIO: "xin chào"}),
        store=MemoryStore(),
        request_delay=0,
        sleep=SleepRecorder(),
    )
    set_controller(ctrl)
    yield ctrl
    set_controller(None)


@pytest.fixture
def client(controller):
    app = FastAPI()
    app.include_router(router)
    return TestClient(app)


def test_full_workflow(client, controller):
    response = client.put("/api/credentials", json={"apify_token": "apify", "google_api_key": "google"})
    assert response.json()["data"] == {"has_apify_token": True, "has_google_api_key": True}

    response = client.post("/api/scan", json={"channel_url": "https://www.tiktok.com/@someone", "limit": 2})
    assert response.status_code == 200
    assert response.json()["data"] == {"count": 2, "stage": "match"}

    for source_url, audio in ((A.source_url, A_AUDIO), (B.source_url, B_AUDIO)):
        assert client.put("/api/audio", json={"source_url": source_url, "audio_url": audio}).status_code == 200

    response = client.post("/api/transcribe")
    body = response.json()
    assert body["data"]["success"] == 1
    assert body["data"]["failed"] == 1

    state = client.get("/api/state").json()
    assert state["stage"] == "results"
    assert state["completed_count"] == 1
    assert state["matched_count"] == 2
    statuses = {item["video"]["id"]: item["transcript"]["status"] for item in state["videos"]}
    assert statuses == {"a": "success", "b": "error"}

    export = client.get("/api/export/transcripts.csv")
    assert export.headers["content-type"].startswith("text/csv")
    assert "xin chào" in export.text
    assert B.source_url not in export.text

    controller.resolver.failing.clear()
    controller.transcriber.texts[B_AUDIO] = "tạm biệt"
    response = client.post("/api/retry", json={"source_url": B.source_url})
    assert response.json()["success"] is True
    assert controller.transcript_cache[B.source_url] == "tạm biệt"

    assert client.post("/api/back").json()["data"]["stage"] == "match"
    assert client.post("/api/reset").json()["data"]["stage"] == "scan"
    assert client.get("/api/state").json()["video_count"] == 0


def test_state_hides_credential_values(client, controller):
    controller.store.set(keys.GOOGLE_API_KEY, "super-secret")

    response = client.get("/api/state")

    assert response.json()["has_google_api_key"] is True
    assert "super-secret" not in response.text


@pytest.mark.parametrize("error, status_code", [
    (ConfigurationError("Unsupported URL."), 400),
    (UpstreamError("Apify API Error: bad token"), 502),
])
def test_scan_errors_map_to_http_status(client, controller, error, status_code):
    controller.lister.error = error

    response = client.post("/api/scan", json={"channel_url": "https://x.test", "limit": 5})

    assert response.status_code == status_code
    assert response.json()["detail"] == str(error)


def test_scan_limit_is_validated(client):
    response = client.post("/api/scan", json={"channel_url": "https://www.tiktok.com/@a", "limit": 0})

    assert response.status_code == 422


def test_actions_out_of_order_conflict(client):
    assert client.post("/api/transcribe").status_code == 409
    assert client.post("/api/transcribe/async").status_code == 409
    assert client.post("/api/back").status_code == 409


def test_audio_for_unknown_video_is_404(client):
    response = client.put("/api/audio", json={"source_url": "https://nope", "audio_url": A_AUDIO})

    assert response.status_code == 404


def test_video_urls_export(client):
    client.post("/api/scan", json={"channel_url": "https://www.tiktok.com/@someone"})

    response = client.get("/api/export/video-urls.csv")

    assert A.source_url in response.text
    assert B.source_url in response.text


def test_health(client):
    assert client.get("/health").json()["controller_ready"] is True


def test_stop_right_after_background_start_is_honoured(controller):
    controller.set_credentials(google_api_key="google")
    asyncio.run(controller.scan("https://www.tiktok.com/@someone", 2))
    controller.assign_audio(A.source_url, A_AUDIO)

    async def scenario():
        started = await endpoints.transcribe_async()
        await endpoints.stop()
        summary = await endpoints._background_task
        return started, summary

    started, summary = asyncio.run(scenario())

    assert started.data == {"eligible": 1}
    assert summary.cancelled
    assert summary.processed == 0
    assert controller.transcriber.calls == []
    assert not controller.is_processing
