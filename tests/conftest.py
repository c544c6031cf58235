"""
Pytest fixtures for the print engine tests.

No database: every test gets its own LocalStorage root under tmp_path, and
the app is created with rate limiting off.
"""
import io
import os
import tempfile
import pytest
from PIL import Image

# Set test environment before importing app
os.environ['FLASK_ENV'] = 'testing'
os.environ['APP_STAGE'] = 'test'
os.environ['SECRET_KEY'] = 'test-secret-key'
os.environ['STORAGE_BACKEND'] = 'local'
os.environ.setdefault('INSTANCE_DIR', tempfile.mkdtemp(prefix="print-engine-test-"))


@pytest.fixture
def storage(tmp_path, mocker):
    """LocalStorage rooted in tmp_path, wired into the pipeline and routes."""
    from utils.storage import LocalStorage
    local = LocalStorage(str(tmp_path / "storage"))
    mocker.patch("services.printing.pipeline.get_storage", return_value=local)
    mocker.patch("routes.printing.get_storage", return_value=local)
    return local


@pytest.fixture
def app(storage):
    from app import create_app
    app = create_app({"TESTING": True, "RATELIMIT_ENABLED": False})
    yield app


@pytest.fixture
def client(app):
    return app.test_client()


def png_bytes(size=(10, 10), color=(255, 0, 0, 255)):
    img = Image.new("RGBA", size, color)
    out = io.BytesIO()
    img.save(out, format="PNG")
    return out.getvalue()


@pytest.fixture
def red_png():
    return png_bytes()


def make_design(elements=None, trim=(127, 178), bleed=3, safe=5, dpi=300, page_ids=("front",)):
    """Editor-style design JSON (flat printSpec form)."""
    return {
        "printSpec": {"trimW_mm": trim[0], "trimH_mm": trim[1], "bleed_mm": bleed, "safe_mm": safe, "dpi": dpi},
        "pages": [
            {"id": pid, "name": pid.title(), "elements": list(elements or []) if i == 0 else []}
            for i, pid in enumerate(page_ids)
        ],
    }


@pytest.fixture
def design_factory():
    return make_design
