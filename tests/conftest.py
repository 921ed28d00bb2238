"""
Pytest Configuration and Fixtures

Shared fixtures for all tests: an isolated config/download root under
``tmp_path``, sample images built with Pillow, and a stub HTTP session
that records every outbound call instead of touching the network.
"""

import base64
import io
import json

import pytest
from PIL import Image

from doccanvas.assets import AssetStore
from doccanvas.config import ConfigService

PROVIDER_ENV_VARS = [
    "OPENROUTER_API_KEY",
    "OPENAI_API_KEY",
    "GEMINI_API_KEY",
    "GOOGLE_API_KEY",
    "XAI_API_KEY",
    "DOCCANVAS_CONFIG",
]


class StubResponse:
    """Minimal stand-in for :class:`requests.Response`."""

    def __init__(self, status_code=200, body=None, text=None, content=b"", headers=None):
        self.status_code = status_code
        if text is None:
            text = json.dumps(body) if body is not None else ""
        self.text = text
        self.content = content or text.encode("utf-8")
        self.headers = headers or {}

    def json(self):
        return json.loads(self.text)


class StubSession:
    """Records calls and replays queued responses (or raises queued errors)."""

    def __init__(self):
        self.responses = []
        self.calls = []

    def queue(self, *items):
        self.responses.extend(items)
        return self

    def post(self, url, **kwargs):
        self.calls.append(("POST", url, kwargs))
        return self._next()

    def get(self, url, **kwargs):
        self.calls.append(("GET", url, kwargs))
        return self._next()

    def _next(self):
        if not self.responses:
            raise AssertionError("unexpected HTTP call")
        item = self.responses.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    @property
    def posted(self):
        """JSON payloads of all POST calls, in order."""
        return [kw.get("json") for method, _, kw in self.calls if method == "POST"]


@pytest.fixture(autouse=True)
def clear_provider_env(monkeypatch):
    """Keep real API keys from leaking into configs under test."""
    for name in PROVIDER_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def app_dir(tmp_path):
    """Directory standing in for the executable's location."""
    path = tmp_path / "app"
    path.mkdir()
    return path


@pytest.fixture
def config_service(tmp_path, app_dir):
    """Config service with defaults; download root is ``app_dir/Image``."""
    return ConfigService(path=str(tmp_path / "config" / "config.yaml"), exec_dir=str(app_dir))


@pytest.fixture
def download_root(app_dir):
    return app_dir / "Image"


@pytest.fixture
def session():
    return StubSession()


@pytest.fixture
def respond():
    """Build a stub response: ``respond({"data": ...}, status=200)``."""

    def _respond(body=None, status=200, text=None, content=b"", headers=None):
        return StubResponse(status, body, text, content, headers)

    return _respond


@pytest.fixture
def store(config_service, session):
    return AssetStore(config_service, session=session)


def _image_bytes(fmt, mode="RGB", color=(200, 30, 30)):
    buffer = io.BytesIO()
    Image.new(mode, (4, 4), color).save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def png_bytes():
    """Fully opaque 4x4 RGB PNG."""
    return _image_bytes("PNG")


@pytest.fixture
def jpeg_bytes():
    return _image_bytes("JPEG")


@pytest.fixture
def png_b64(png_bytes):
    return base64.b64encode(png_bytes).decode("ascii")


@pytest.fixture
def png_data_url(png_b64):
    return f"data:image/png;base64,{png_b64}"
