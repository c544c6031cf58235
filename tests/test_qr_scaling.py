import io
import pytest
from PIL import Image

import utils.qr_image as qr_image
from utils.qr_image import generate_code, render_qr_png, LogoCodeGenerator


def test_qr_exact_size_and_clean_modules():
    """
    Verify render_qr_png produces an exact size image with no anti-aliased
    module edges (only black and white pixels).
    """
    size_px = 1024
    data = "https://example.com/r/very-long-url-to-ensure-version-complexity"

    img = Image.open(io.BytesIO(render_qr_png(data, size_px=size_px)))

    assert img.size == (size_px, size_px), f"Image size mismatch: {img.size} != 1024x1024"
    # Quiet zone
    assert img.getpixel((0, 0)) == (255, 255, 255), "Background padding not white"

    distinct_colors = [c[1] for c in img.getcolors(maxcolors=256)]
    assert len(distinct_colors) <= 2, f"Found mixed colors (likely aliasing): {distinct_colors}"


@pytest.mark.parametrize("size", [64, 230, 300])
def test_generate_code_matches_requested_size(size):
    img = Image.open(io.BytesIO(generate_code("https://example.com/k/abc", size)))
    assert img.size == (size, size)


def test_invalid_inputs():
    with pytest.raises(ValueError):
        render_qr_png("", size_px=100)
    with pytest.raises(ValueError):
        render_qr_png("x", size_px=0)


def test_logo_without_decoder_falls_back_to_plain_code(mocker):
    mocker.patch.object(qr_image, "PYZBAR_AVAILABLE", False)
    logo = io.BytesIO()
    Image.new("RGBA", (64, 64), (255, 0, 0, 255)).save(logo, format="PNG")

    img = Image.open(io.BytesIO(LogoCodeGenerator(logo.getvalue())("https://example.com", 300)))

    assert img.size == (300, 300)
    # No red logo pixels made it in
    assert all(color in ((0, 0, 0), (255, 255, 255)) for _, color in img.getcolors(maxcolors=256))


def test_unreadable_logo_falls_back(mocker):
    mocker.patch.object(qr_image, "PYZBAR_AVAILABLE", True)
    img = Image.open(io.BytesIO(render_qr_png("https://example.com", size_px=200, logo_png=b"garbage")))
    assert img.size == (200, 200)


@pytest.mark.skipif(not qr_image.PYZBAR_AVAILABLE, reason="zbar shared library not installed")
def test_plain_code_decodes():
    from pyzbar.pyzbar import decode
    data = "https://example.com/k/decode-me"
    img = Image.open(io.BytesIO(generate_code(data, 400)))
    assert [obj.data.decode("utf-8") for obj in decode(img)] == [data]
