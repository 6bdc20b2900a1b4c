"""Tests for API endpoints."""

from __future__ import annotations

import json

import numpy as np
from fastapi.testclient import TestClient
from PIL import Image

from polyart.api.render import _build_response
from polyart.engine.context import STATUS_ERROR, RenderSession
from polyart.engine.pipeline import create_pipeline
from polyart.main import app
from tests.conftest import SOLID_COLOR, solid_image, step_image, to_data_uri


client = TestClient(app)


def _sse_events(body: str) -> list[tuple[str, dict]]:
    events = []
    for block in body.strip().split("\n\n"):
        lines = dict(line.split(": ", 1) for line in block.splitlines())
        events.append((lines["event"], json.loads(lines["data"])))
    return events


def test_health():
    response = client.get("/api/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["phases"] == 7


def test_render_solid():
    response = client.post("/api/render", json={"image": to_data_uri(solid_image()), "quality": 50, "seed": 1})
    assert response.status_code == 200
    data = response.json()
    assert data["width"] == 100
    assert data["height"] == 100
    assert data["status"] == "Ready"
    assert data["image"].startswith("data:image/png;base64,")
    assert data["triangles"] > 0
    assert data["palette"] == ["rgb({},{},{})".format(*SOLID_COLOR)]
    assert data["error"] == ""


def test_render_invalid_image():
    response = client.post("/api/render", json={"image": "data:image/png;base64,aGVsbG8="})
    assert response.status_code == 400


def test_render_rejects_bad_quality():
    response = client.post("/api/render", json={"image": to_data_uri(solid_image()), "quality": 150})
    assert response.status_code == 422


def test_failed_session_response():
    session = create_pipeline().run(
        RenderSession(image=Image.new("RGBA", (0, 0)), pixels=np.zeros((0, 0, 4), dtype=np.uint8))
    )
    response = _build_response(session, 1.0)
    assert response.status == STATUS_ERROR
    assert response.error
    assert response.image == ""
    assert response.triangles == 0


def test_render_stream():
    response = client.post("/api/render/stream", json={"image": to_data_uri(step_image()), "seed": 1})
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    events = _sse_events(response.text)
    names = [name for name, _ in events]
    assert names.count("progress") == 8
    assert names[-2:] == ["result", "done"]
    result = events[-2][1]
    assert result["status"] == "Ready"
    assert result["points"] > 4


def test_frame_mid_animation():
    payload = {"image": to_data_uri(step_image()), "seed": 1, "time_ms": 2500}
    response = client.post("/api/frame", json=payload)
    assert response.status_code == 200
    data = response.json()
    assert data["phase"] == "edge_visualization"
    assert data["progress"] == 0.5
    assert data["complete"] is False
    assert data["image"].startswith("data:image/png;base64,")


def test_frame_after_end():
    payload = {"image": to_data_uri(step_image()), "seed": 1, "time_ms": 60000, "speed": 2.0}
    data = client.post("/api/frame", json=payload).json()
    assert data["phase"] == "complete"
    assert data["label"] == "Complete"
    assert data["complete"] is True
