"""
Document -> preflight bridge.

The editor lays pages out in 96-DPI screen pixels on a canvas that starts at
the bleed corner; documents are trim-relative mm. This module converts the
one into the other so a Document can be checked with the same rules as live
editor content.
"""
from typing import Dict, List

from services.printing.document import Document, ImageElement, LabelElement, ShapeElement, TextElement
from utils.print_preflight import PreflightElement, PreflightVerdict, validate_print_spec
from utils.units import ScreenPx, mm_to_css_px, pt_to_px


def _px(mm, offset_mm=0.0) -> ScreenPx:
    return mm_to_css_px(mm + offset_mm)


def _optional_px(mm):
    return None if mm is None else _px(mm)


def to_preflight_element(element, bleed_mm: float) -> PreflightElement:
    x = _px(element.x_mm, bleed_mm)
    y = _px(element.y_mm, bleed_mm)

    if isinstance(element, TextElement):
        return PreflightElement(
            type="text", id=element.id, x=x, y=y,
            width=_optional_px(element.w_mm), height=_optional_px(element.h_mm),
            font_size=pt_to_px(element.font_size_pt), text=element.text,
        )
    if isinstance(element, LabelElement):
        return PreflightElement(
            type="label-shape", id=element.id, x=x, y=y,
            width=_px(element.w_mm), height=_px(element.h_mm),
            font_size=pt_to_px(element.text_props.font_size_pt), text=element.text_props.text,
        )
    if isinstance(element, ImageElement):
        return PreflightElement(type="image", id=element.id, x=x, y=y,
                                width=_px(element.w_mm), height=_px(element.h_mm))
    if isinstance(element, ShapeElement):
        return PreflightElement(type="shape", id=element.id, kind=element.kind, x=x, y=y,
                                width=_px(element.w_mm), height=_px(element.h_mm))
    raise TypeError(f"Unhandled element type: {type(element).__name__}")


def document_to_preflight_sides(document: Document) -> Dict[str, List[PreflightElement]]:
    """Side id -> that page's elements in editor-canvas screen pixels."""
    sides = {}
    for page in document.pages:
        side = document.print_spec.side(page.id)
        bleed = side.bleed_mm if side is not None else 0.0
        sides[page.id] = [to_preflight_element(el, bleed) for el in page.elements]
    return sides


def preflight_document(document: Document) -> PreflightVerdict:
    return validate_print_spec(document.print_spec, document_to_preflight_sides(document))
