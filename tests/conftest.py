import io
import os
import sys
import tempfile
from pathlib import Path

import pytest
from PIL import Image

# Ensure repo root is on sys.path so `import imagepress...` works in tests
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Settings are cached on first use, so the environment is fixed before any import
os.environ.setdefault("STORAGE_DIR", tempfile.mkdtemp(prefix="imagepress-tests-"))
os.environ.setdefault("LOG_TO_FILE", "false")
os.environ.setdefault("MAX_FILES", "5")


def make_image_bytes(fmt: str = "PNG", size=(64, 48), color=(200, 30, 30)) -> bytes:
    buf = io.BytesIO()
    mode = "RGBA" if fmt == "PNG" else "RGB"
    Image.new(mode, size, color).save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def png_bytes() -> bytes:
    return make_image_bytes("PNG")


@pytest.fixture
def jpeg_bytes() -> bytes:
    return make_image_bytes("JPEG")


@pytest.fixture
def make_image():
    return make_image_bytes
