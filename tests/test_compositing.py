import io
import pytest
from PIL import Image

from services.printing.compositing import compose_template_code, composite_code
from services.printing.errors import CompositeError
from services.printing.render import RasterBuffer
from services.printing.templates import get_template, resolve_code_target
from utils.units import Rect

WHITE = (255, 255, 255, 255)
RED = (255, 0, 0, 255)
BLUE = (0, 0, 255, 255)


def white_design(size=(200, 200)):
    return RasterBuffer(image=Image.new("RGBA", size, WHITE), dpi=300)


def solid_png(color, size=(10, 10)):
    out = io.BytesIO()
    Image.new("RGBA", size, color).save(out, format="PNG")
    return out.getvalue()


class TestCompositeCode:

    def test_code_lands_on_target(self):
        design = white_design()
        result = composite_code(design, solid_png(RED), Rect(50, 50, 40, 40))
        assert result.image.getpixel((60, 60)) == RED
        assert result.image.getpixel((89, 89)) == RED
        assert result.image.getpixel((90, 90)) == WHITE
        assert result.image.getpixel((10, 10)) == WHITE
        assert result.dpi == 300

    def test_input_raster_is_not_modified(self):
        design = white_design()
        composite_code(design, solid_png(RED), Rect(0, 0, 20, 20))
        assert design.image.getpixel((5, 5)) == WHITE

    def test_accepts_png_bytes_for_design(self):
        result = composite_code(solid_png(WHITE, (100, 100)), solid_png(RED), Rect(0, 0, 100, 100))
        assert (result.width, result.height) == (100, 100)
        assert result.image.getpixel((99, 99)) == RED

    @pytest.mark.parametrize("rect", [
        Rect(180, 180, 40, 40),    # partially outside
        Rect(300, 300, 10, 10),    # fully outside
        Rect(-1, 0, 10, 10),
        Rect(-0.4, 0, 10, 10),     # rounds onto the design
        Rect(190.3, 0, 10, 10),    # right edge at 200.3
        Rect(0, 195, 10, 5.2),
    ])
    def test_target_outside_design(self, rect):
        with pytest.raises(CompositeError, match="outside"):
            composite_code(white_design(), solid_png(RED), rect)

    def test_empty_target(self):
        with pytest.raises(CompositeError, match="positive size"):
            composite_code(white_design(), solid_png(RED), Rect(10, 10, 0, 10))

    def test_missing_code_image(self):
        with pytest.raises(CompositeError, match="No code image"):
            composite_code(white_design(), None, Rect(0, 0, 10, 10))
        with pytest.raises(CompositeError, match="No code image"):
            composite_code(white_design(), b"", Rect(0, 0, 10, 10))

    def test_undecodable_code_image(self):
        with pytest.raises(CompositeError, match="decode"):
            composite_code(white_design(), b"not a png", Rect(0, 0, 10, 10))


def test_compose_template_code_generates_code_for_target(mocker):
    generator = mocker.Mock(side_effect=lambda payload, size: solid_png(BLUE, (size, size)))
    template = get_template("scan_frame")
    placement = Rect(100, 100, 300, 400)
    design = white_design((600, 600))

    result = compose_template_code(design, template, "https://example.com/k/abc", generator, placement=placement)

    target = resolve_code_target(template, placement)
    generator.assert_called_once_with("https://example.com/k/abc", 72)
    center = (int(target.x + target.width / 2), int(target.y + target.height / 2))
    assert result.image.getpixel(center) == BLUE
    # Untouched outside the template
    assert result.image.getpixel((5, 5)) == WHITE
    assert design.image.getpixel(center) == WHITE


def test_compose_template_code_default_placement(mocker):
    generator = mocker.Mock(side_effect=lambda payload, size: solid_png(BLUE, (size, size)))
    result = compose_template_code(white_design((1000, 600)), get_template("scan_frame"), "x", generator)
    assert generator.called
    assert (result.width, result.height) == (1000, 600)


def test_target_on_the_design_edge_is_accepted():
    result = composite_code(white_design(), solid_png(RED), Rect(190, 190, 10, 10))
    assert result.image.getpixel((199, 199)) == RED


def test_code_generator_failure_is_a_composite_error(mocker):
    generator = mocker.Mock(side_effect=ValueError("Invalid version (was 41, expected 1 to 40)"))
    with pytest.raises(CompositeError, match="Code generation failed"):
        compose_template_code(white_design((600, 600)), get_template("scan_frame"), "x" * 5000, generator)
