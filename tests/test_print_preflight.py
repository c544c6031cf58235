"""
Preflight validation tests.

Side under test: 127x178mm trim, 3mm bleed, 5mm safe. Elements are placed on
the editor canvas (96 DPI, origin at the bleed corner) via mm helpers so the
expectations read in millimeters.
"""
import pytest

from services.printing.document import (
    Document,
    Page,
    PrintSide,
    PrintSpecification,
    ShapeElement,
    TextElement,
    TrimSize,
)
from services.printing.preflight import document_to_preflight_sides, preflight_document
from utils.print_preflight import (
    PreflightElement,
    preflight_element_from_dict,
    side_frame,
    validate_print_spec,
)
from utils.units import mm_to_css_px

BLEED = 3.0
SAFE = 5.0
TRIM = (127.0, 178.0)


def make_spec(corner_radius_mm=0.0):
    side = PrintSide(id="front", name="Front", trim_mm=TrimSize(*TRIM), bleed_mm=BLEED, safe_mm=SAFE,
                     corner_radius_mm=corner_radius_mm)
    return PrintSpecification(sides=(side,))


def at_mm(type_, x_mm, y_mm, w_mm, h_mm, **kwargs):
    """Element positioned in trim-relative mm, converted to editor screen px."""
    return PreflightElement(
        type=type_,
        x=mm_to_css_px(x_mm + BLEED),
        y=mm_to_css_px(y_mm + BLEED),
        width=mm_to_css_px(w_mm),
        height=mm_to_css_px(h_mm),
        **kwargs,
    )


def text_at(x_mm, y_mm, w_mm=40, h_mm=10, text="Happy Birthday", font_size=16):
    return at_mm("text", x_mm, y_mm, w_mm, h_mm, text=text, font_size=font_size)


class TestSideFrame:

    def test_rectangles(self):
        frame = side_frame(make_spec().sides[0])
        assert frame.bleed.width == pytest.approx(mm_to_css_px(133))
        assert frame.trim.x == pytest.approx(mm_to_css_px(3))
        assert frame.safe.x == pytest.approx(mm_to_css_px(8))
        assert frame.safe.right == pytest.approx(mm_to_css_px(3 + 127 - 5))
        assert frame.safe.bottom == pytest.approx(mm_to_css_px(3 + 178 - 5))


class TestTextContainment:

    def test_text_inside_safe_area_passes(self):
        verdict = validate_print_spec(make_spec(), {"front": [text_at(10, 10)]})
        assert verdict.is_valid
        assert verdict.errors == []

    def test_text_exactly_on_safe_edge_passes(self):
        verdict = validate_print_spec(make_spec(), {"front": [text_at(5, 5, w_mm=117, h_mm=168)]})
        assert verdict.is_valid

    @pytest.mark.parametrize("x_mm, y_mm", [(4, 10), (10, 4), (88, 10), (10, 159)])
    def test_text_crossing_safe_edge_fails(self, x_mm, y_mm):
        verdict = validate_print_spec(make_spec(), {"front": [text_at(x_mm, y_mm, w_mm=35, h_mm=15)]})
        assert not verdict.is_valid
        assert len(verdict.errors) == 1
        assert "outside the safe area" in verdict.errors[0]
        assert "Front" in verdict.errors[0]

    def test_label_shape_is_text_bearing(self):
        label = at_mm("label-shape", 0, 0, 30, 10, text="RSVP", font_size=16)
        verdict = validate_print_spec(make_spec(), {"front": [label]})
        assert not verdict.is_valid

    def test_scale_is_applied(self):
        el = at_mm("text", 60, 10, 40, 10, text="Scaled", font_size=16, scale_x=2.0)
        verdict = validate_print_spec(make_spec(), {"front": [el]})
        assert not verdict.is_valid

    def test_missing_width_is_estimated_from_text_length(self):
        el = PreflightElement(type="text", x=mm_to_css_px(10 + BLEED), y=mm_to_css_px(10 + BLEED),
                              text="W" * 60, font_size=16)
        # 60 * 16 * 0.6 = 576px, wider than the whole side
        verdict = validate_print_spec(make_spec(), {"front": [el]})
        assert not verdict.is_valid

    def test_empty_text_is_ignored(self):
        verdict = validate_print_spec(make_spec(), {"front": [text_at(-3, -3, text="")]})
        assert verdict.is_valid

    def test_long_text_is_truncated_in_message(self):
        verdict = validate_print_spec(make_spec(), {"front": [text_at(-1, 10, text="x" * 80)]})
        assert ("x" * 30 + "...") in verdict.errors[0]
        assert ("x" * 31) not in verdict.errors[0]


class TestNonTextElements:

    def test_image_covering_full_bleed_has_no_warnings(self):
        el = at_mm("image", -BLEED, -BLEED, TRIM[0] + 2 * BLEED, TRIM[1] + 2 * BLEED)
        verdict = validate_print_spec(make_spec(), {"front": [el]})
        assert verdict.is_valid
        assert verdict.warnings == []

    def test_image_stopping_at_trim_warns(self):
        el = at_mm("image", 0, 0, TRIM[0], TRIM[1])
        verdict = validate_print_spec(make_spec(), {"front": [el]})
        assert verdict.is_valid
        assert len(verdict.warnings) == 1
        assert "bleed" in verdict.warnings[0]
        for edge in ("left", "top", "right", "bottom"):
            assert edge in verdict.warnings[0]

    def test_image_short_on_one_edge(self):
        el = at_mm("image", -BLEED, -BLEED, TRIM[0] + BLEED, TRIM[1] + 2 * BLEED)
        verdict = validate_print_spec(make_spec(), {"front": [el]})
        assert len(verdict.warnings) == 1
        assert "(right)" in verdict.warnings[0]

    def test_image_inside_trim_warns_on_every_edge(self):
        el = at_mm("image", 20, 20, 80, 80)
        verdict = validate_print_spec(make_spec(), {"front": [el]})
        assert verdict.is_valid
        assert verdict.errors == []
        assert len(verdict.warnings) == 1
        assert "does not extend to the bleed edge (left, top, right, bottom)" in verdict.warnings[0]

    def test_shape_short_of_bleed_on_two_edges(self):
        el = at_mm("shape", -BLEED, 50, TRIM[0] + 2 * BLEED, 20, kind="rect")
        verdict = validate_print_spec(make_spec(), {"front": [el]})
        assert len(verdict.warnings) == 1
        assert "(top, bottom)" in verdict.warnings[0]

    def test_shape_outside_bleed_is_warning_not_error(self):
        el = at_mm("shape", 200, 200, 10, 10, kind="rect")
        verdict = validate_print_spec(make_spec(), {"front": [el]})
        assert verdict.is_valid
        assert "outside the printable area" in verdict.warnings[0]

    def test_small_image_warns_low_resolution(self):
        el = at_mm("image", 20, 20, 20, 20)
        verdict = validate_print_spec(make_spec(), {"front": [el]})
        assert verdict.is_valid
        assert any("low resolution" in w for w in verdict.warnings)


class TestWarnings:

    def test_small_font(self):
        verdict = validate_print_spec(make_spec(), {"front": [text_at(10, 10, font_size=8)]})
        assert verdict.is_valid
        assert any("too small" in w for w in verdict.warnings)

    def test_readable_font_is_fine(self):
        # 10px == 7.5pt
        verdict = validate_print_spec(make_spec(), {"front": [text_at(10, 10, font_size=10)]})
        assert verdict.warnings == []

    def test_rounded_corner_danger(self):
        spec = make_spec(corner_radius_mm=10)
        verdict = validate_print_spec(spec, {"front": [text_at(5, 5, w_mm=20, h_mm=5)]})
        assert verdict.is_valid
        assert any("rounded corner" in w for w in verdict.warnings)

        verdict = validate_print_spec(spec, {"front": [text_at(30, 30)]})
        assert verdict.warnings == []

    def test_unknown_side_is_reported(self):
        verdict = validate_print_spec(make_spec(), {"front": [], "inside": [text_at(-3, -3)]})
        assert verdict.is_valid
        assert any("inside" in w for w in verdict.warnings)


def test_verdict_shape():
    verdict = validate_print_spec(make_spec(), {"front": [text_at(-1, 0)]})
    assert verdict.to_dict() == {"isValid": False, "errors": verdict.errors, "warnings": verdict.warnings}
    assert set(vars(verdict)) == {"is_valid", "errors", "warnings"}


def test_idempotent():
    elements = {"front": [text_at(-1, 0), at_mm("image", 0, 0, 10, 10)]}
    first = validate_print_spec(make_spec(), elements).to_dict()
    assert validate_print_spec(make_spec(), elements).to_dict() == first


def test_element_from_editor_dict():
    el = preflight_element_from_dict({"type": "text", "x": 10, "y": 20, "width": 30, "height": 40,
                                      "fontSize": 12, "scaleX": 2, "text": "Hi"})
    assert (el.x, el.y, el.width, el.height, el.font_size, el.scale_x, el.scale_y) == (10, 20, 30, 40, 12, 2, 1)
    with pytest.raises(ValueError):
        preflight_element_from_dict({"type": "text", "y": 0})
    with pytest.raises(ValueError):
        preflight_element_from_dict({"type": "text", "x": "left", "y": 0})


class TestDocumentMapping:

    def make_document(self, *elements):
        return Document(print_spec=make_spec(), pages=(Page(id="front", elements=tuple(elements)),))

    def test_text_in_bleed_blocks_export(self):
        """Text at y=-2mm sits in the bleed, outside the safe area."""
        doc = self.make_document(TextElement(id="t", x_mm=10, y_mm=-2, w_mm=40, h_mm=8,
                                             text="Too high", font_size_pt=12))
        verdict = preflight_document(doc)
        assert not verdict.is_valid
        assert "outside the safe area" in verdict.errors[0]

    def test_mapping_adds_bleed_offset_and_converts_fonts(self):
        doc = self.make_document(TextElement(id="t", x_mm=10, y_mm=20, text="Hi", font_size_pt=12))
        [el] = document_to_preflight_sides(doc)["front"]
        assert el.x == pytest.approx(mm_to_css_px(13))
        assert el.y == pytest.approx(mm_to_css_px(23))
        assert el.font_size == pytest.approx(16)
        assert el.width is None

    def test_full_bleed_background_passes_clean(self):
        doc = self.make_document(
            ShapeElement(id="bg", x_mm=-BLEED, y_mm=-BLEED, w_mm=TRIM[0] + 6, h_mm=TRIM[1] + 6, fill="#eee"),
            TextElement(id="t", x_mm=10, y_mm=10, w_mm=50, h_mm=10, text="Inside", font_size_pt=12),
        )
        verdict = preflight_document(doc)
        assert verdict.is_valid
        assert verdict.warnings == []
