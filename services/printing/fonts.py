"""
Font lookup for the raster renderer.

Fonts are discovered once under FONTS_DIR (recursively) and matched by
family + weight. Anything not found falls back to DejaVu (ships with most
Linux images) and finally Pillow's built-in scalable default.
"""
import os
import logging
import threading

from PIL import ImageFont

logger = logging.getLogger(__name__)

# "family name" as the editor sends it -> {weight: filename}
FONT_FILES = {
    "inter": {400: "Inter-Regular.ttf", 500: "Inter-Medium.ttf", 700: "Inter-Bold.ttf"},
    "bodoni moda": {400: "BodoniModa-VariableFont_opsz,wght.ttf"},
    "allura": {400: "Allura-Regular.ttf"},
}

FALLBACK_FILES = {400: "DejaVuSans.ttf", 700: "DejaVuSans-Bold.ttf"}

_found_fonts = None
_fonts_lock = threading.Lock()


def _discover(fonts_dir):
    found = {}
    for root, _dirs, files in os.walk(fonts_dir):
        for f in files:
            if f.lower().endswith((".ttf", ".otf")):
                found.setdefault(f, os.path.join(root, f))
    return found


def register_fonts(fonts_dir=None):
    """
    Scan the fonts directory. Safe to call repeatedly and from worker threads.

    The configured FONTS_DIR is scanned once per process; an explicit
    `fonts_dir` is scanned on every call and never replaces that cache.
    """
    global _found_fonts
    if fonts_dir is not None:
        return _scan(fonts_dir)
    with _fonts_lock:
        if _found_fonts is None:
            from config import FONTS_DIR
            _found_fonts = _scan(FONTS_DIR)
        return _found_fonts


def _scan(fonts_dir):
    found = _discover(fonts_dir) if os.path.isdir(fonts_dir) else {}
    if not found:
        logger.warning(f"[Fonts] No fonts found under {fonts_dir}; using fallbacks.")
    return found


def _nearest_weight(weights, weight):
    return min(weights, key=lambda w: abs(w - weight))


def get_font(family, weight, size_px):
    """
    Return a FreeType font at `size_px` pixels.

    Size is device pixels, already converted from points by the caller.
    """
    size = max(1, int(round(size_px)))
    found = register_fonts()

    files = FONT_FILES.get((family or "").strip().lower())
    if files:
        filename = files[_nearest_weight(files, weight)]
        path = found.get(filename)
        if path:
            try:
                return ImageFont.truetype(path, size)
            except OSError as e:
                logger.warning(f"[Fonts] Failed to load {path}: {e}")

    fallback = FALLBACK_FILES[_nearest_weight(FALLBACK_FILES, weight)]
    try:
        return ImageFont.truetype(found.get(fallback, fallback), size)
    except OSError:
        return ImageFont.load_default(size=size)
