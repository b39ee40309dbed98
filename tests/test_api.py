import json

import pytest
from fastapi.testclient import TestClient

from signrelay.api.app import create_app
from tests.helpers import FakeChannel, FakeSpeaker


def _observation_msg(value=0.5, **parts):
    msg = {
        "type": "observation",
        "pose": [{"x": value, "y": value, "z": value, "visibility": 1.0}] * 33,
        "leftHand": [{"x": value, "y": value, "z": value}] * 21,
        "rightHand": None,
    }
    msg.update(parts)
    return msg


def _receive_display(ws, predicate, limit=200):
    for _ in range(limit):
        msg = ws.receive_json()
        if msg["type"] == "display" and predicate(msg):
            return msg
    raise AssertionError("expected display message never arrived")


@pytest.fixture
def speaker():
    return FakeSpeaker()


@pytest.fixture
def make_client(settings, journal, speaker):
    def make(channel=None):
        app = create_app(settings, channel=channel or FakeChannel(), journal=journal, speaker=speaker)
        return TestClient(app)
    return make


def test_session_start_stop(make_client):
    with make_client() as client:
        r = client.post("/api/v1/session/start")
        assert r.status_code == 200
        body = r.json()
        assert body["capturing"] is True
        assert body["frame_count"] == 0
        assert body["frames_per_sequence"] == 60
        assert body["session_id"] == 1

        r = client.post("/api/v1/session/stop")
        assert r.json()["capturing"] is False

        sessions = client.get("/api/v1/sessions").json()
        assert len(sessions) == 1
        assert sessions[0]["session_end"] is not None


def test_predictions_reach_display_and_speech(make_client, speaker):
    channel = FakeChannel(inbound=[
        '{"prediction": "magandang"}',
        '{"prediction": "magandang"}',
        "garbage",
        '{"prediction": "umaga"}',
    ])
    with make_client(channel) as client:
        body = client.get("/api/v1/display").json()
        assert body["sentence"] == "magandang umaga"
        assert body["prediction"] == "umaga"

        r = client.post("/api/v1/sentence/speak")
        assert r.status_code == 200
        assert r.json() == {"sentence": "magandang umaga", "audio_path": "/tmp/1.mp3"}
        assert speaker.calls == ["magandang umaga"]

        body = client.post("/api/v1/sentence/clear").json()
        assert body["sentence"] == ""
        assert body["prediction"] == "..."


def test_speak_refuses_empty_sentence(make_client, speaker):
    with make_client() as client:
        r = client.post("/api/v1/sentence/speak")
        assert r.status_code == 400
    assert speaker.calls == []


def test_unknown_session_predictions_404(make_client):
    with make_client() as client:
        r = client.get("/api/v1/sessions/99/predictions")
        assert r.status_code == 404


def test_websocket_streams_frames_into_sequences(make_client):
    channel = FakeChannel()
    with make_client(channel) as client:
        with client.websocket_connect("/ws/landmarks") as ws:
            first = ws.receive_json()
            assert first["type"] == "display"
            assert first["capturing"] is False

            ws.send_json({"type": "start"})
            for _ in range(3):
                ws.send_json(_observation_msg())
            _receive_display(ws, lambda m: m["frame_count"] == 3)

            ws.send_text("not json")
            ws.send_json({"type": "observation", "pose": "nope"})
            ws.send_json({"type": "unknown"})

            for _ in range(57):
                ws.send_json(_observation_msg())
            msg = _receive_display(ws, lambda m: m["frame_count"] == 0)
            assert msg["capturing"] is True

    assert len(channel.sent) == 1
    assert channel.sent[0].shape == (60, 258)


def test_websocket_accepts_snake_case_parts(make_client):
    channel = FakeChannel()
    with make_client(channel) as client:
        with client.websocket_connect("/ws/landmarks") as ws:
            ws.receive_json()
            ws.send_json({"type": "start"})
            msg = _observation_msg()
            msg["left_hand"] = msg.pop("leftHand")
            ws.send_text(json.dumps(msg))
            _receive_display(ws, lambda m: m["frame_count"] == 1)

        state = client.get("/api/v1/display").json()
        assert state["frame_count"] == 1


def test_websocket_survives_binary_frames(make_client):
    with make_client() as client:
        with client.websocket_connect("/ws/landmarks") as ws:
            ws.receive_json()
            ws.send_bytes(b"\x00\x01\x02")
            ws.send_json({"type": "start"})
            ws.send_json(_observation_msg())
            msg = _receive_display(ws, lambda m: m["frame_count"] == 1)
            assert msg["capturing"] is True
