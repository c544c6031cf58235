# Unit Constants
MM_PER_INCH = 25.4
POINTS_PER_INCH = 72.0
SCREEN_DPI = 96           # editor canvas convention (CSS px)

DEFAULT_DPI = 300

# Standard product margins (inches); converted to mm by services/specs.py
STANDARD_BLEED_IN = 0.125
STANDARD_SAFE_IN = 0.25

# Element kinds as the editor names them in preflight input
PREFLIGHT_TEXT_TYPES = frozenset({"text", "label-shape"})

# Preflight thresholds
MIN_FONT_SIZE_PT = 7            # below this, text is hard to read in print
MIN_IMAGE_SCREEN_PX = 200       # smaller on the 96dpi canvas -> likely low-res
DEFAULT_SCREEN_FONT_PX = 16
TEXT_CHAR_WIDTH_FACTOR = 0.6    # average glyph advance as a fraction of font size
GEOMETRY_EPSILON_PX = 1e-6

# Render defaults
DEFAULT_FONT_FAMILY = "Helvetica"
DEFAULT_FILL = "#000000"
DEFAULT_LABEL_FILL = "#ffffff"
CANVAS_BACKGROUND = (255, 255, 255, 255)

# Code compositing
DEFAULT_CODE_SIZE_PX = 300
DEFAULT_CODE_MARGIN_MODULES = 2
