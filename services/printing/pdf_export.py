"""
Print PDF export.

Every page is rasterized at the document DPI (bleed included) and placed on
its own PDF page sized trim + 2*bleed in points. TrimBox / BleedBox are set
so print shops can find the cut line.
"""
import io
import logging

from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from services.printing.render import render
from utils.units import mm_to_pt

logger = logging.getLogger(__name__)


def export_pdf(document, dpi=None, assets=None, max_pixels=None):
    """
    Build a multi-page print PDF.

    Returns:
        (pdf_bytes, warnings): warnings are the renderer's skipped-element
        messages across all pages, in page order
    """
    buffer = io.BytesIO()
    c = canvas.Canvas(buffer)
    c.setTitle("Print export")
    warnings = []

    for page in document.pages:
        side = document.print_spec.side(page.id)
        raster = render(document, page.id, dpi=dpi, include_bleed=True, assets=assets, max_pixels=max_pixels)
        warnings.extend(raster.warnings)

        bleed = mm_to_pt(side.bleed_mm)
        trim_w = mm_to_pt(side.trim_mm.w)
        trim_h = mm_to_pt(side.trim_mm.h)
        page_w = trim_w + 2 * bleed
        page_h = trim_h + 2 * bleed

        c.setPageSize((page_w, page_h))
        c.setBleedBox((0, 0, page_w, page_h))
        c.setTrimBox((bleed, bleed, bleed + trim_w, bleed + trim_h))
        c.drawImage(ImageReader(raster.image.convert("RGB")), 0, 0, width=page_w, height=page_h)
        c.showPage()

    c.save()
    logger.info(f"[PDF] pages={len(document.pages)} warnings={len(warnings)}")
    return buffer.getvalue(), warnings
