"""
Export pipeline.

Preflight gates everything that produces a print file: export_page() and
export_document_pdf() raise PreflightError before rendering when the
document fails, so no partial print file is ever written.

Batch proofs run each item (preflight -> render -> optional code composite)
on a thread pool; results come back in input order.
"""
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import List, Optional

from slugify import slugify

from config import (
    COMPOSED_KEY_PREFIX,
    EXPORT_KEY_PREFIX,
    MAX_CANVAS_PIXELS,
    MAX_RENDER_DPI,
    PERSIST_EXPORTS,
    RENDER_WORKERS,
)
from services.printing.compositing import compose_template_code
from services.printing.document import Document
from services.printing.errors import InvalidDocumentError, PrintEngineError, UnknownPageError
from services.printing.pdf_export import export_pdf
from services.printing.preflight import preflight_document
from services.printing.render import render
from services.printing.templates import get_template
from utils.print_preflight import PreflightError, PreflightVerdict
from utils.qr_image import generate_code
from utils.storage import get_storage
from utils.timestamps import file_timestamp
from utils.units import Rect

logger = logging.getLogger(__name__)


@dataclass
class ExportResult:
    data: bytes
    filename: str
    key: Optional[str]
    path: Optional[str]
    verdict: PreflightVerdict
    warnings: List[str] = field(default_factory=list)


def _check_dpi(dpi):
    if dpi is not None and not isinstance(dpi, bool) and isinstance(dpi, (int, float)) and dpi > MAX_RENDER_DPI:
        raise InvalidDocumentError(f"must be <= {MAX_RENDER_DPI}, got {dpi}", field="options.dpi")


def _gate(document: Document) -> PreflightVerdict:
    verdict = preflight_document(document)
    if not verdict.is_valid:
        logger.warning(f"[Export] Preflight failed: errors={len(verdict.errors)} warnings={len(verdict.warnings)}")
        raise PreflightError(verdict)
    return verdict


def _persist(data: bytes, key: str, content_type: str, storage):
    storage = storage or get_storage()
    storage.put_file(data, key, content_type=content_type)
    path = storage.describe(key)
    logger.info(f"[Export] saved to {path}")
    return path


def _should_persist(persist):
    return PERSIST_EXPORTS if persist is None else persist


def export_filename(page_id: str, ext: str = "png") -> str:
    return f"export-{slugify(page_id) or 'page'}-{file_timestamp()}.{ext}"


def export_page(document: Document, page_id: str, dpi=None, include_bleed=True, assets=None,
                storage=None, persist=None) -> ExportResult:
    """
    Preflight, render and store one page as PNG.

    Raises:
        UnknownPageError: page_id not in the document
        PreflightError: the document fails preflight (nothing is rendered)
        InvalidDocumentError / InvalidGeometryError: bad input
    """
    if document.page(page_id) is None:
        raise UnknownPageError(page_id, document.page_ids)
    _check_dpi(dpi)
    verdict = _gate(document)

    raster = render(document, page_id, dpi=dpi, include_bleed=include_bleed,
                    assets=assets, max_pixels=MAX_CANVAS_PIXELS)
    data = raster.to_png()
    filename = export_filename(page_id)

    key = path = None
    if _should_persist(persist):
        key = f"{EXPORT_KEY_PREFIX}/{filename}"
        path = _persist(data, key, "image/png", storage)

    return ExportResult(
        data=data,
        filename=filename,
        key=key,
        path=path,
        verdict=verdict,
        warnings=list(verdict.warnings) + list(raster.warnings),
    )


def export_document_pdf(document: Document, dpi=None, assets=None, storage=None, persist=None) -> ExportResult:
    """Preflight, then every page into one print PDF."""
    _check_dpi(dpi)
    verdict = _gate(document)
    data, render_warnings = export_pdf(document, dpi=dpi, assets=assets, max_pixels=MAX_CANVAS_PIXELS)
    filename = f"export-{file_timestamp()}.pdf"

    key = path = None
    if _should_persist(persist):
        key = f"{EXPORT_KEY_PREFIX}/{filename}"
        path = _persist(data, key, "application/pdf", storage)

    return ExportResult(data=data, filename=filename, key=key, path=path, verdict=verdict,
                        warnings=list(verdict.warnings) + render_warnings)


def store_composed(data: bytes, storage=None) -> str:
    key = f"{COMPOSED_KEY_PREFIX}/composed-{file_timestamp()}.png"
    _persist(data, key, "image/png", storage)
    return key


# -----------------------------------------------------------------------------
# Batch proofs
# -----------------------------------------------------------------------------
@dataclass
class ProofRequest:
    document: Document
    page_id: str
    dpi: Optional[int] = None
    template_id: Optional[str] = None
    payload: Optional[str] = None
    placement: Optional[Rect] = None


@dataclass
class ProofResult:
    index: int
    page_id: str
    png: Optional[bytes] = None
    verdict: Optional[PreflightVerdict] = None
    warnings: List[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.png is not None


def _proof(index: int, req: ProofRequest, assets, code_generator) -> ProofResult:
    result = ProofResult(index=index, page_id=req.page_id)
    try:
        if req.document.page(req.page_id) is None:
            raise UnknownPageError(req.page_id, req.document.page_ids)
        _check_dpi(req.dpi)
        result.verdict = preflight_document(req.document)
        if not result.verdict.is_valid:
            result.error = "Preflight check failed"
            return result

        raster = render(req.document, req.page_id, dpi=req.dpi, assets=assets, max_pixels=MAX_CANVAS_PIXELS)
        result.warnings = list(result.verdict.warnings) + list(raster.warnings)
        if req.template_id:
            if not req.payload:
                raise InvalidDocumentError("is required when a template is given", field="payload")
            raster = compose_template_code(raster, get_template(req.template_id), req.payload,
                                           code_generator, placement=req.placement)
        result.png = raster.to_png()
    except PrintEngineError as e:
        result.error = str(e)
    return result


def generate_proofs(requests, assets=None, code_generator=generate_code, max_workers=None) -> List[ProofResult]:
    """
    Proof every request independently. One failing item never affects the
    others; its ProofResult carries the error instead.
    """
    requests = list(requests)
    if not requests:
        return []
    workers = min(max_workers or RENDER_WORKERS, len(requests))
    results = []
    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = [pool.submit(_proof, i, req, assets, code_generator) for i, req in enumerate(requests)]
        for future in as_completed(futures):
            results.append(future.result())
    results.sort(key=lambda r: r.index)
    logger.info(f"[Proofs] items={len(results)} failed={sum(1 for r in results if not r.ok)}")
    return results
