import math
import pytest

from services.printing.document import (
    ImageElement,
    LabelElement,
    ShapeElement,
    TextElement,
    document_from_dict,
    element_rect_mm,
    print_spec_from_dict,
)
from services.printing.errors import InvalidDocumentError, InvalidGeometryError


class TestPrintSpecParsing:

    def test_flat_form_creates_one_side_per_page(self):
        spec = print_spec_from_dict(
            {"trimW_mm": 127, "trimH_mm": 178, "bleed_mm": 3, "safe_mm": 5},
            page_ids=["front", "back"],
            page_names={"front": "Front"},
        )
        assert spec.side_ids == ["front", "back"]
        assert spec.dpi == 300
        front = spec.side("front")
        assert (front.trim_mm.w, front.trim_mm.h, front.bleed_mm, front.safe_mm) == (127, 178, 3, 5)
        assert front.label == "Front"
        assert spec.side("back").label == "back"

    def test_sides_form(self):
        spec = print_spec_from_dict({
            "dpi": 150,
            "sides": [
                {"id": "front", "name": "Front", "trim_mm": {"w": 100, "h": 150}, "bleed_mm": 3, "safe_mm": 4},
                {"id": "inside", "trim_mm": {"w": 200, "h": 150}},
            ],
        })
        assert spec.dpi == 150
        assert spec.side("inside").trim_mm.w == 200
        assert spec.side("inside").bleed_mm == 0

    def test_side_without_trim_is_rejected(self):
        with pytest.raises(InvalidDocumentError, match="trim_mm"):
            print_spec_from_dict({"sides": [{"id": "front"}]})

    def test_to_dict_round_trips_sides(self):
        spec = print_spec_from_dict({"sides": [{"id": "front", "trim_mm": {"w": 1, "h": 2}, "bleed_mm": 3}]})
        again = print_spec_from_dict({"sides": spec.to_dict()["sides"]})
        assert again.side("front") == spec.side("front")


class TestDocumentParsing:

    def test_missing_print_spec_or_pages(self):
        with pytest.raises(InvalidDocumentError, match="Required: printSpec, pages"):
            document_from_dict({"pages": []})
        with pytest.raises(InvalidDocumentError, match="Required: printSpec, pages"):
            document_from_dict({"printSpec": {"trimW_mm": 1, "trimH_mm": 1}})

    def test_element_variants(self, design_factory):
        doc = document_from_dict(design_factory([
            {"type": "text", "id": "t", "x_mm": 1, "y_mm": 2, "text": "Hi", "fontSize_pt": 10},
            {"type": "label-shape", "id": "l", "x_mm": 1, "y_mm": 2, "w_mm": 30, "h_mm": 10,
             "textProps": {"text": "Label", "fontSize_pt": 9}, "stroke": {"width_mm": 0.3}},
            {"type": "image", "id": "i", "x_mm": 0, "y_mm": 0, "w_mm": 10, "h_mm": 10, "src": "photo.png"},
            {"type": "shape", "id": "s", "x_mm": 0, "y_mm": 0, "w_mm": 10, "h_mm": 10, "kind": "border"},
        ]))
        elements = doc.page("front").elements
        assert [type(e) for e in elements] == [TextElement, LabelElement, ImageElement, ShapeElement]
        assert elements[0].w_mm is None
        assert elements[1].text_props.text == "Label"
        assert elements[1].stroke.width_mm == 0.3
        assert elements[2].asset_ref == "photo.png"
        assert elements[3].kind == "border"

    def test_z_index_orders_elements_when_all_present(self, design_factory):
        doc = document_from_dict(design_factory([
            {"type": "shape", "id": "top", "x_mm": 0, "y_mm": 0, "w_mm": 1, "h_mm": 1, "zIndex": 2},
            {"type": "shape", "id": "bottom", "x_mm": 0, "y_mm": 0, "w_mm": 1, "h_mm": 1, "zIndex": 1},
        ]))
        assert [e.id for e in doc.page("front").elements] == ["bottom", "top"]

    def test_array_order_kept_without_z_index(self, design_factory):
        doc = document_from_dict(design_factory([
            {"type": "shape", "id": "a", "x_mm": 0, "y_mm": 0, "w_mm": 1, "h_mm": 1, "zIndex": 5},
            {"type": "shape", "id": "b", "x_mm": 0, "y_mm": 0, "w_mm": 1, "h_mm": 1},
        ]))
        assert [e.id for e in doc.page("front").elements] == ["a", "b"]

    def test_unknown_element_type(self, design_factory):
        with pytest.raises(InvalidDocumentError, match="unknown element type"):
            document_from_dict(design_factory([{"type": "video", "x_mm": 0, "y_mm": 0}]))

    def test_unknown_shape_kind(self, design_factory):
        with pytest.raises(InvalidDocumentError, match="unknown shape kind"):
            document_from_dict(design_factory([
                {"type": "shape", "x_mm": 0, "y_mm": 0, "w_mm": 1, "h_mm": 1, "kind": "star"},
            ]))

    def test_missing_coordinate_is_geometry_error(self, design_factory):
        with pytest.raises(InvalidGeometryError) as exc:
            document_from_dict(design_factory([{"type": "text", "id": "t", "y_mm": 0, "text": "x"}]))
        assert exc.value.element_id == "t"
        assert exc.value.field == "x_mm"

    def test_non_finite_coordinate_is_geometry_error(self, design_factory):
        with pytest.raises(InvalidGeometryError):
            document_from_dict(design_factory([
                {"type": "image", "id": "i", "x_mm": math.inf, "y_mm": 0, "w_mm": 1, "h_mm": 1, "src": "a"},
            ]))


def test_element_rect_mm_allows_unsized_text():
    rect = element_rect_mm(TextElement(id="t", x_mm=-2, y_mm=1, text="x", font_size_pt=10))
    assert (rect.x, rect.y, rect.width, rect.height) == (-2, 1, 0, 0)


def test_element_rect_mm_rejects_nan():
    with pytest.raises(InvalidGeometryError):
        element_rect_mm(ShapeElement(id="s", x_mm=float("nan"), y_mm=0, w_mm=1, h_mm=1))
