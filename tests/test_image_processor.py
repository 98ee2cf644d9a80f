"""Tests for the Pillow-backed transcoder."""
import pytest
from PIL import Image

from imagepress.services.image_processor import ImageProcessor, resize_image


@pytest.fixture
def source():
    return Image.new("RGB", (400, 200), (10, 20, 30))


def test_no_resize_when_no_dimensions(source):
    assert resize_image(source, None, None).size == (400, 200)


def test_single_dimension_keeps_aspect_ratio(source):
    assert resize_image(source, 100, None).size == (100, 50)
    assert resize_image(source, None, 50, fit="fill").size == (100, 50)


def test_never_enlarges(source):
    assert resize_image(source, 800, None).size == (400, 200)
    assert resize_image(source, 1000, 1000, fit="inside").size == (400, 200)


def test_inside(source):
    assert resize_image(source, 100, 100, fit="inside").size == (100, 50)


def test_outside(source):
    assert resize_image(source, 100, 100, fit="outside").size == (200, 100)


def test_cover_crops_to_box(source):
    assert resize_image(source, 100, 100, fit="cover").size == (100, 100)


def test_contain_pads_to_box(source):
    result = resize_image(source, 100, 100, fit="contain")
    assert result.size == (100, 100)
    # padding is white above the letterboxed image
    assert result.getpixel((50, 0)) == (255, 255, 255)


def test_fill_ignores_aspect_ratio(source):
    assert resize_image(source, 100, 100, fit="fill").size == (100, 100)


@pytest.mark.parametrize("fmt", ["webp", "jpeg", "png"])
def test_process_image_formats(tmp_path, make_image, fmt):
    src = tmp_path / "in.png"
    src.write_bytes(make_image("PNG", size=(120, 80)))
    out = tmp_path / f"out.{fmt}"

    result = ImageProcessor().process_image(src, out, {"format": fmt, "quality": 50, "resize": None})

    assert result.success, result.error
    assert result.original_size == src.stat().st_size
    assert result.compressed_size == out.stat().st_size
    with Image.open(out) as img:
        assert img.format == {"webp": "WEBP", "jpeg": "JPEG", "png": "PNG"}[fmt]
        assert img.size == (120, 80)


def test_process_image_with_resize(tmp_path, make_image):
    src = tmp_path / "in.jpg"
    src.write_bytes(make_image("JPEG", size=(300, 150)))
    out = tmp_path / "out.webp"

    result = ImageProcessor().process_image(
        src, out, {"format": "webp", "resize": {"width": 60, "height": None, "fit": "inside"}}
    )

    assert result.success
    with Image.open(out) as img:
        assert img.size == (60, 30)


def test_process_image_reports_codec_failure(tmp_path):
    src = tmp_path / "broken.png"
    src.write_bytes(b"definitely not an image")

    result = ImageProcessor().process_image(src, tmp_path / "broken.webp", {"format": "webp"})

    assert result.success is False
    assert result.error


def test_supported_formats():
    assert set(ImageProcessor().get_supported_formats()) == {"webp", "jpeg", "png"}
