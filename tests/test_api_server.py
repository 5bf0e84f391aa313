import base64
import io

import numpy as np
import pytest

import api_server
from services.image_engine import ImageEngine


@pytest.fixture
def client(monkeypatch):
    with ImageEngine(hardware_device="none") as eng:
        monkeypatch.setattr(api_server, "engine", eng)
        api_server.app.config["TESTING"] = True
        with api_server.app.test_client() as c:
            yield c


def test_health(client):
    res = client.get("/api/health")
    assert res.status_code == 200
    assert res.get_json()["status"] == "healthy"


def test_capabilities_without_hardware(client):
    data = client.get("/api/capabilities").get_json()
    assert data["hardware"] is False
    assert data["reason"]
    assert data["hardware_stages"] == ["brightness", "contrast", "saturation"]


def test_enhance_json(client, png_ref):
    ref = png_ref(np.full((4, 4, 3), 100, np.uint8))
    res = client.post("/api/enhance", json={"image": ref,
                                            "config": {"contrast": 1.5, "useHardware": True}})
    data = res.get_json()
    assert res.status_code == 200
    assert data["enhanced"] is True
    assert data["backend"] == "software"
    assert data["image"].startswith("data:image/jpeg;base64,")


def test_enhance_bad_source_returns_original(client):
    ref = "data:image/png;base64,AAAA"
    data = client.post("/api/enhance", json={"image": ref, "brightness": 2}).get_json()
    assert data["enhanced"] is False
    assert data["image"] == ref


def test_enhance_multipart_upload(client, png_ref):
    _, _, payload = png_ref(np.full((4, 4, 3), 70, np.uint8)).partition(",")
    res = client.post(
        "/api/enhance",
        data={"image": (io.BytesIO(base64.b64decode(payload)), "shirt.png", "image/png"),
              "options": '{"saturation": 0.5}'},
        content_type="multipart/form-data",
    )
    assert res.status_code == 200
    assert res.get_json()["enhanced"] is True


def test_missing_image_is_400(client):
    res = client.post("/api/enhance", json={"brightness": 2})
    assert res.status_code == 400


def test_analyze_colors(client, png_ref):
    ref = png_ref(np.full((2, 2, 3), (200, 0, 0), np.uint8))
    data = client.post("/api/analyze-colors", json={"image": ref, "numColors": 1}).get_json()
    assert data["dominant"] == [192, 0, 0]
    assert data["complementary"] == [[63, 255, 255]]
    assert len(data["analogous"]) == 4


def test_analyze_transparent_is_422(client, png_ref):
    ref = png_ref(np.zeros((4, 4, 4), np.uint8))
    res = client.post("/api/analyze-colors", json={"image": ref})
    assert res.status_code == 422


def test_analyze_undecodable_is_422(client):
    res = client.post("/api/analyze-colors", json={"image": "data:image/png;base64,AAAA"})
    assert res.status_code == 422


def test_upscale_and_bad_factor(client, png_ref):
    ref = png_ref(np.zeros((2, 2, 3), np.uint8))
    assert client.post("/api/upscale", json={"image": ref, "factor": 2}).status_code == 200
    assert client.post("/api/upscale", json={"image": ref, "factor": -1}).status_code == 400
    assert client.post("/api/upscale", json={"image": ref, "factor": "x"}).status_code == 400


def test_resize_requires_dimensions(client, png_ref):
    ref = png_ref(np.zeros((2, 2, 3), np.uint8))
    assert client.post("/api/resize", json={"image": ref}).status_code == 400
    assert client.post("/api/resize", json={"image": ref, "width": 3, "height": 3}).status_code == 200


def test_remove_background_returns_png(client, png_ref):
    ref = png_ref(np.zeros((3, 3, 3), np.uint8))
    data = client.post("/api/remove-background", json={"image": ref}).get_json()
    assert data["image"].startswith("data:image/png;base64,")


def test_malformed_color_correction_is_400(client, png_ref):
    ref = png_ref(np.full((2, 2, 3), 60, np.uint8))
    res = client.post("/api/enhance", json={"image": ref, "colorCorrection": "warm"})
    assert res.status_code == 400
    assert res.get_json()["success"] is False


def test_non_object_body_is_400(client):
    assert client.post("/api/enhance", json=["image"]).status_code == 400


def test_inline_images_do_not_accumulate_in_cache(client, png_ref):
    for shade in range(5):
        _, _, payload = png_ref(np.full((4, 4, 3), shade * 40, np.uint8)).partition(",")
        res = client.post(
            "/api/enhance",
            data={"image": (io.BytesIO(base64.b64decode(payload)), "top.png", "image/png"),
                  "options": '{"brightness": 1.1}'},
            content_type="multipart/form-data",
        )
        assert res.get_json()["enhanced"] is True

    ref = png_ref(np.full((2, 2, 3), (10, 200, 10), np.uint8))
    client.post("/api/analyze-colors", json={"image": ref, "numColors": 1})

    assert len(api_server.engine.loader) == 0
