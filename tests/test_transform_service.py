import numpy as np
import pytest

from models.errors import DecodeError, FilterError


def test_upscale_doubles_dimensions(engine, make_image):
    img = make_image(np.full((2, 3, 3), 80, np.uint8))
    out = engine.transforms.upscale_pixels(img, 2)
    assert (out.width, out.height) == (6, 4)
    assert np.all(np.abs(out.rgb.astype(int) - 80) <= 1)


def test_upscale_fractional_factor(engine, make_image):
    img = make_image(np.zeros((4, 10, 3), np.uint8))
    out = engine.transforms.upscale_pixels(img, 1.5)
    assert (out.width, out.height) == (15, 6)


@pytest.mark.parametrize("factor", [0, -1, float("nan")])
def test_upscale_rejects_bad_factor(engine, make_image, factor):
    with pytest.raises(FilterError):
        engine.transforms.upscale_pixels(make_image(np.zeros((2, 2, 3), np.uint8)), factor)


def test_upscale_locator_round_trip(engine, png_ref, decode_ref):
    out = engine.upscale(png_ref(np.full((3, 3, 3), 150, np.uint8)), 3)
    assert out.startswith("data:image/jpeg;base64,")
    assert decode_ref(out).shape == (9, 9, 4)


def test_resize_to_target(engine, png_ref, decode_ref):
    out = engine.resize(png_ref(np.zeros((8, 8, 3), np.uint8)), 5, 7)
    assert decode_ref(out).shape == (7, 5, 4)


def test_resize_rejects_empty_target(engine, make_image):
    with pytest.raises(FilterError):
        engine.transforms.resize_pixels(make_image(np.zeros((2, 2, 3), np.uint8)), 0, 4)


def test_remove_background_keys_corner_colour(engine, make_image):
    px = np.full((6, 6, 3), 255, np.uint8)
    px[2:4, 2:4] = (200, 0, 0)
    px[0, 5] = (230, 230, 230)   # distance 43.3: removed
    px[5, 0] = (220, 220, 220)   # distance 60.6: kept
    out = engine.transforms.remove_background_pixels(make_image(px))

    assert out.alpha[0, 0] == 0
    assert out.alpha[0, 5] == 0
    assert out.alpha[5, 0] == 255
    assert np.all(out.alpha[2:4, 2:4] == 255)
    np.testing.assert_array_equal(out.rgb, px)


def test_remove_background_outputs_png_with_alpha(engine, png_ref, decode_ref):
    px = np.zeros((4, 4, 3), np.uint8)
    px[1:3, 1:3] = 255
    out = engine.remove_background(png_ref(px))
    assert out.startswith("data:image/png;base64,")
    decoded = decode_ref(out)
    assert decoded[0, 0, 3] == 0
    assert decoded[1, 1, 3] == 255


def test_optimize_validates_quality(engine, png_ref):
    ref = png_ref(np.zeros((2, 2, 3), np.uint8))
    with pytest.raises(FilterError):
        engine.optimize(ref, quality=0)
    assert engine.optimize(ref, quality=60, fmt="WEBP").startswith("data:image/webp;base64,")


def test_transforms_propagate_decode_errors(engine):
    with pytest.raises(DecodeError):
        engine.upscale("data:image/png;base64,AAAA", 2)
