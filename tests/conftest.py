import sys
from io import BytesIO
from pathlib import Path

import pytest
from PIL import Image

# Add src directory to Python path
src_dir = str(Path(__file__).parent.parent / "src")
if src_dir not in sys.path:
    sys.path.insert(0, src_dir)

from config import Config  # noqa: E402


@pytest.fixture(autouse=True)
def fresh_config(monkeypatch, tmp_path):
    """Every test gets its own Config built from a clean environment."""
    for name in (
        "STENCIL_DEBUG",
        "STENCIL_ALIGNMENT_MARKS",
        "STENCIL_MAX_FILE_SIZE_MB",
        "STENCIL_FETCH_TIMEOUT",
        "STENCIL_USER_ID",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("STENCIL_STORAGE_DIR", str(tmp_path / "storage"))
    Config.reset()
    yield
    Config.reset()


@pytest.fixture
def make_image_bytes():
    def _make(width, height, color=(255, 0, 0), fmt="PNG", mode="RGB"):
        img = Image.new(mode, (width, height), color)
        buffer = BytesIO()
        img.save(buffer, format=fmt)
        return buffer.getvalue()

    return _make
