import logging
import io
from typing import Protocol

import qrcode
from PIL import Image, ImageDraw

from constants import DEFAULT_CODE_MARGIN_MODULES, DEFAULT_CODE_SIZE_PX

logger = logging.getLogger(__name__)

# Try to import pyzbar (requires zbar shared library)
try:
    from pyzbar.pyzbar import decode, ZBarSymbol
    PYZBAR_AVAILABLE = True
except (ImportError, OSError):
    PYZBAR_AVAILABLE = False
    decode = None
    ZBarSymbol = None


class CodeGenerator(Protocol):
    """Turns a payload into a square PNG of `size` pixels."""
    def __call__(self, payload: str, size: int) -> bytes:
        ...


def _png(img: Image.Image) -> bytes:
    out = io.BytesIO()
    img.save(out, format='PNG')
    return out.getvalue()


def _base_qr(data: str, ecc, border: int, size_px: int) -> Image.Image:
    qr = qrcode.QRCode(
        version=None,  # Auto
        error_correction=ecc,
        box_size=10,  # arbitrary base, resized below
        border=border,
    )
    qr.add_data(data)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white").convert('RGB')
    return img.resize((size_px, size_px), resample=Image.Resampling.NEAREST)


def _decodes_to(img: Image.Image, data: str) -> bool:
    for obj in decode(img, symbols=[ZBarSymbol.QRCODE]):
        if obj.data.decode('utf-8') == data:
            return True
    return False


def render_qr_png(data: str, *, size_px: int = DEFAULT_CODE_SIZE_PX, logo_png: bytes | None = None,
                  border: int = DEFAULT_CODE_MARGIN_MODULES) -> bytes:
    """
    Render a raster QR code, optionally with a logo overlay.

    ECC M without a logo, ECC H with one. A logo is only kept if the result
    still decodes to `data`; otherwise the plain code is returned.
    """
    if not data:
        raise ValueError("QR payload must not be empty")
    if size_px <= 0:
        raise ValueError(f"QR size must be positive, got {size_px}")

    ecc = qrcode.constants.ERROR_CORRECT_H if logo_png else qrcode.constants.ERROR_CORRECT_M
    qr_img = _base_qr(data, ecc, border, size_px)

    if not logo_png:
        return _png(qr_img)

    # Scan reliability > aesthetics: without a decoder the logo can't be verified
    if not PYZBAR_AVAILABLE:
        logger.warning("pyzbar not available (missing zbar?). Falling back to standard QR.")
        return _png(qr_img)

    try:
        logo = Image.open(io.BytesIO(logo_png)).convert("RGBA")
    except (OSError, ValueError) as e:
        logger.error(f"Logo overlay failed: {e}. Falling back to standard QR.")
        return _png(qr_img)

    # Start at 14% of the code width, shrink until it decodes
    for ratio in (0.14, 0.12, 0.10, 0.08):
        canvas = qr_img.copy()
        width, height = canvas.size

        logo_w = max(1, int(width * ratio))
        logo_h = max(1, int(logo_w / (logo.width / logo.height)))
        logo_resized = logo.resize((logo_w, logo_h), resample=Image.Resampling.LANCZOS)

        # White backing 15% larger than the logo
        back_w = int(logo_w * 1.15)
        back_h = int(logo_h * 1.15)
        center_x = width // 2
        center_y = height // 2
        back_x = center_x - (back_w // 2)
        back_y = center_y - (back_h // 2)

        draw = ImageDraw.Draw(canvas)
        draw.rounded_rectangle(
            [(back_x, back_y), (back_x + back_w, back_y + back_h)],
            radius=back_w // 10,
            fill="white"
        )
        canvas.paste(logo_resized, (center_x - (logo_w // 2), center_y - (logo_h // 2)), mask=logo_resized)

        if _decodes_to(canvas, data):
            return _png(canvas)
        logger.warning(f"QR Decode verification failed at ratio {ratio}. Retrying smaller...")

    logger.warning("QR Decode failed at all logo sizes. Falling back to no-logo.")
    return _png(_base_qr(data, qrcode.constants.ERROR_CORRECT_M, border, size_px))


def generate_code(payload: str, size: int) -> bytes:
    """Default CodeGenerator: plain ECC M QR code, 2-module quiet zone."""
    return render_qr_png(payload, size_px=size)


class LogoCodeGenerator:
    """CodeGenerator that tries to place a logo in the middle of the code."""

    def __init__(self, logo_png: bytes):
        self.logo_png = logo_png

    def __call__(self, payload: str, size: int) -> bytes:
        return render_qr_png(payload, size_px=size, logo_png=self.logo_png)
