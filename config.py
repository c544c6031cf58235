import os
import logging

from utils.env import get_env_str, get_env_bool, get_env_int

logger = logging.getLogger(__name__)

BASE_DIR = os.path.abspath(os.path.dirname(__file__))

# -----------------------------------------------------------------------------
# Dotenv loading (LOCAL ONLY)
# -----------------------------------------------------------------------------
# Tests must be deterministic and must NOT implicitly ingest a developer's .env.
_FLASK_ENV_EARLY = (os.getenv("FLASK_ENV") or "").strip().lower()

if _FLASK_ENV_EARLY not in {"test", "testing"}:
    try:
        from dotenv import load_dotenv
        load_dotenv(dotenv_path=os.path.join(BASE_DIR, ".env"), override=False)
    except ImportError:
        pass

# -----------------------------------------------------------------------------
# Environment / Stage
# -----------------------------------------------------------------------------
def _normalize_stage(raw: str) -> str:
    raw = (raw or "").strip().lower()
    if raw in {"prod", "production"}:
        return "production"
    if raw in {"stage", "staging"}:
        return "staging"
    if raw in {"test", "testing"}:
        return "test"
    return "dev"


FLASK_ENV = (os.getenv("FLASK_ENV", "development") or "development").strip().lower()
APP_STAGE = _normalize_stage(os.getenv("APP_STAGE", "dev"))

IS_TEST = APP_STAGE == "test" or FLASK_ENV in {"test", "testing"}
IS_STAGING = APP_STAGE == "staging"
IS_PRODUCTION = APP_STAGE == "production"

DEBUG = FLASK_ENV != "production" and not IS_PRODUCTION
TESTING = IS_TEST

# -----------------------------------------------------------------------------
# Instance / Storage Paths
# -----------------------------------------------------------------------------
INSTANCE_DIR = get_env_str("INSTANCE_DIR", default=os.path.join(BASE_DIR, "instance"))

try:
    os.makedirs(INSTANCE_DIR, exist_ok=True)
except OSError as e:
    logger.warning(
        f"[Config] WARNING: Could not create INSTANCE_DIR at {INSTANCE_DIR} ({e}). Falling back to /tmp/instance."
    )
    INSTANCE_DIR = os.path.join("/tmp", "instance")
    os.makedirs(INSTANCE_DIR, exist_ok=True)

# Storage keys (relative to the storage root)
EXPORT_KEY_PREFIX = "exports"
COMPOSED_KEY_PREFIX = "exports/composed"
ASSET_KEY_PREFIX = get_env_str("ASSET_KEY_PREFIX", default="assets")

STATIC_DIR = os.path.join(BASE_DIR, "static")
FONTS_DIR = get_env_str("FONTS_DIR", default=os.path.join(STATIC_DIR, "fonts"))

# -----------------------------------------------------------------------------
# Storage Backend
# -----------------------------------------------------------------------------
STORAGE_BACKEND = get_env_str("STORAGE_BACKEND", default="local").strip().lower()

if IS_PRODUCTION and STORAGE_BACKEND != "s3":
    raise RuntimeError("CRITICAL: STORAGE_BACKEND must be 's3' in production.")

if IS_STAGING and STORAGE_BACKEND != "s3":
    logger.warning("[Config] WARNING: STORAGE_BACKEND is not 's3' in staging. Expect drift vs production.")

S3_BUCKET = get_env_str("S3_BUCKET", default="")
S3_PREFIX = get_env_str("S3_PREFIX", default="")

_region = get_env_str("AWS_REGION", default="us-east-1")
if " " in _region or not _region.replace("-", "").isalnum():
    logger.warning(f"[Config] WARNING: Invalid AWS_REGION detected: '{_region}'. Defaulting to 'us-east-1'.")
    _region = "us-east-1"
AWS_REGION = _region

if STORAGE_BACKEND == "s3" and not S3_BUCKET:
    raise RuntimeError("CRITICAL: S3_BUCKET must be set when STORAGE_BACKEND=s3.")

# -----------------------------------------------------------------------------
# URLs (payloads encoded into generated codes)
# -----------------------------------------------------------------------------
def _strip_trailing_slash(url: str) -> str:
    return url[:-1] if url.endswith("/") else url


CODE_BASE_URL = _strip_trailing_slash(get_env_str("CODE_BASE_URL", default="http://localhost:5000"))

if IS_STAGING or IS_PRODUCTION:
    if not CODE_BASE_URL.lower().startswith("https://"):
        raise RuntimeError(f"CRITICAL: CODE_BASE_URL must be HTTPS in {APP_STAGE} stage. Got: {CODE_BASE_URL}")
    for _bad in ("localhost", "127.0.0.1"):
        if _bad in CODE_BASE_URL.lower():
            raise RuntimeError(
                f"CRITICAL: CODE_BASE_URL contains forbidden string '{_bad}' in {APP_STAGE} stage. Link safety violated."
            )

# -----------------------------------------------------------------------------
# Secrets
# -----------------------------------------------------------------------------
SECRET_KEY = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    if IS_STAGING or IS_PRODUCTION:
        raise ValueError(f"SECRET_KEY must be set in {APP_STAGE} environment.")
    SECRET_KEY = "dev-secret-key-change-this"
    logger.warning("[Config] WARNING: Using default SECRET_KEY for development. DO NOT use in real environments!")

# -----------------------------------------------------------------------------
# Rendering
# -----------------------------------------------------------------------------
DEFAULT_DPI = get_env_int("DEFAULT_DPI", default=300, minimum=1)
MAX_RENDER_DPI = get_env_int("MAX_RENDER_DPI", default=1200, minimum=1)
# 36x24in at 600dpi with bleed is ~312M px; anything larger is a caller mistake
MAX_CANVAS_PIXELS = get_env_int("MAX_CANVAS_PIXELS", default=400_000_000, minimum=1)
RENDER_WORKERS = get_env_int("RENDER_WORKERS", default=4, minimum=1)

if DEFAULT_DPI > MAX_RENDER_DPI:
    raise ValueError(f"DEFAULT_DPI ({DEFAULT_DPI}) exceeds MAX_RENDER_DPI ({MAX_RENDER_DPI}).")

# Keep the raw export file on disk/S3 for the audit trail
PERSIST_EXPORTS = get_env_bool("PERSIST_EXPORTS", default=True)

# -----------------------------------------------------------------------------
# Upload limits
# -----------------------------------------------------------------------------
MAX_CONTENT_LENGTH = 32 * 1024 * 1024

# -----------------------------------------------------------------------------
# Feature Flags
# -----------------------------------------------------------------------------
ENABLE_QR_LOGO = get_env_bool("ENABLE_QR_LOGO", default=False)
RATELIMIT_ENABLED = get_env_bool("RATELIMIT_ENABLED", default=not IS_TEST)
