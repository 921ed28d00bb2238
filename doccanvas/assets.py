"""
Local asset store for generated and imported images.

Images are written under the configured download root and handed back
to callers as *asset references*: root-relative POSIX paths such as
``generated_20250101_120000_4242_0.png`` or ``Import/photo_4242.png``.
The absolute location is resolved on demand and every resolution goes
through :func:`safe_join`, which refuses absolute paths and any
reference that would escape the root.

Filenames combine a timestamp, the process id and a per-process counter,
so concurrent generations never collide and no file locking is needed.
"""

from __future__ import annotations

import itertools
import os
import shutil
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import requests

from doccanvas.codec import (
    decode_data_url,
    encode_data_url,
    extension_for_mime,
    is_data_url,
    mime_from_path,
    sniff_mime,
)
from doccanvas.config import ConfigService
from doccanvas.errors import APIError, AssetIOError, ParseError, SecurityError, TransportError
from doccanvas.utils import ensure_dir, timestamp

DOWNLOAD_TIMEOUT = 60.0

IMPORT_DIR = "Import"
TEXT_EXTENSIONS = {".txt", ".md"}
IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".webp"}


def safe_join(root: str, reference: str) -> str:
    """Join an asset reference onto ``root`` and verify it stays inside.

    The reference is rejected if it is absolute or has a ``..`` segment.
    After joining, the path relative to ``root`` is derived again and
    rejected if it escapes the root or points at the root itself.

    Parameters:
        root: Absolute download root.
        reference: Root-relative asset reference.

    Returns:
        The absolute path of the referenced file.

    Raises:
        SecurityError: On an absolute path or traversal attempt.
    """
    normalized = (reference or "").replace("\\", "/")
    if os.path.isabs(reference or "") or normalized.startswith("/"):
        raise SecurityError("absolute paths are not allowed")
    if ".." in normalized.split("/"):
        raise SecurityError("path traversal is not allowed")

    cleaned = os.path.normpath(normalized) if normalized else "."
    full_path = os.path.join(root, cleaned)

    rel_path = os.path.relpath(full_path, root)
    if rel_path == os.curdir or rel_path == os.pardir or rel_path.startswith(os.pardir + os.sep):
        raise SecurityError("resolved path is outside the allowed directory")
    return full_path


@dataclass
class ImportResult:
    """Outcome of importing a file onto the canvas.

    Attributes:
        type: ``"text"`` or ``"image"``.
        content: File text for text files, asset reference for images.
    """

    type: str
    content: str


class AssetStore:
    """Persists images under the download root and resolves references.

    Parameters:
        config_service: Source of the configured download root.
        session: HTTP session used to download provider image URLs.
    """

    _counter = itertools.count()
    _counter_lock = threading.Lock()

    def __init__(self, config_service: ConfigService, session: Optional[Any] = None):
        self.config_service = config_service
        self.session = session or requests.Session()

    @property
    def exec_dir(self) -> str:
        return self.config_service.exec_dir

    def resolve_download_root(self) -> str:
        """Absolute download root (relative paths anchor to the executable)."""
        return self.config_service.resolve_download_root()

    # ── Writing ──────────────────────────────────────────────────────────

    def persist(self, data: bytes, mime_type: str) -> str:
        """Write image bytes under the download root.

        Parameters:
            data: Raw image bytes.
            mime_type: Mime type used to pick the file extension.

        Returns:
            The asset reference (root-relative, forward slashes).
        """
        root = self.resolve_download_root()
        try:
            ensure_dir(root)
        except OSError as exc:
            raise AssetIOError(f"failed to create download directory {root}: {exc}", root) from exc

        with self._counter_lock:
            seq = next(self._counter)
        filename = f"generated_{timestamp()}_{os.getpid()}_{seq}.{extension_for_mime(mime_type)}"
        file_path = os.path.join(root, filename)

        try:
            with open(file_path, "wb") as fh:
                fh.write(data)
        except OSError as exc:
            raise AssetIOError(f"failed to save image file {file_path}: {exc}", file_path) from exc

        print(f"[AssetStore] Saved {len(data)} bytes to {file_path}")
        return Path(os.path.relpath(file_path, root)).as_posix()

    def persist_source(self, source: str) -> str:
        """Persist an image given as a data URL or a downloadable URL."""
        if is_data_url(source):
            if not source.startswith("data:image/"):
                raise ParseError("data URL does not contain an image")
            data, mime_type = decode_data_url(source)
            return self.persist(data, mime_type)

        try:
            response = self.session.get(source, timeout=DOWNLOAD_TIMEOUT)
        except requests.exceptions.RequestException as exc:
            raise TransportError(f"failed to download image: {exc}") from exc
        if response.status_code != 200:
            raise APIError("Image download", response.text, response.status_code)

        data = response.content
        content_type = (response.headers.get("Content-Type") or "").split(";", 1)[0].strip()
        if not content_type.startswith("image/"):
            content_type = sniff_mime(data)
        return self.persist(data, content_type)

    # ── Reading ──────────────────────────────────────────────────────────

    def resolve(self, reference: str) -> str:
        """Resolve an asset reference to an absolute, security-checked path.

        References stored before the download root existed were relative
        to the executable's directory; those are found by a second lookup
        when the primary path does not exist. If neither exists, the
        primary path is returned so callers see a consistent not-found.
        """
        primary = safe_join(self.resolve_download_root(), reference)
        if os.path.isfile(primary):
            return primary

        legacy = os.path.join(self.exec_dir, os.path.normpath(reference))
        if os.path.isfile(legacy):
            return legacy
        return primary

    def read_as_data_url(self, reference: str) -> str:
        """Return the referenced image as ``data:{mime};base64,{payload}``."""
        path = self.resolve(reference)
        try:
            with open(path, "rb") as fh:
                data = fh.read()
        except OSError as exc:
            raise AssetIOError(f"failed to read image file {path}: {exc}", path) from exc
        mime_type = mime_from_path(path) or sniff_mime(data)
        return encode_data_url(data, mime_type)

    def file_url(self, reference: str) -> str:
        """``file://`` URL of the referenced image (which must exist)."""
        path = self.resolve(reference)
        if not os.path.isfile(path):
            raise AssetIOError(f"image file does not exist: {path}", path)
        return Path(os.path.abspath(path)).as_uri()

    # ── Import / export ──────────────────────────────────────────────────

    def import_file(self, source_path: str) -> ImportResult:
        """Bring an external file onto the canvas.

        Text files (``.txt``, ``.md``) are returned inline. Images are
        copied to ``Import/{stem}_{pid}{ext}`` under the download root.
        """
        ext = os.path.splitext(source_path)[1].lower()

        if ext in TEXT_EXTENSIONS:
            try:
                with open(source_path, "r", encoding="utf-8") as fh:
                    return ImportResult(type="text", content=fh.read())
            except OSError as exc:
                raise AssetIOError(f"failed to read text file {source_path}: {exc}", source_path) from exc

        if ext not in IMAGE_EXTENSIONS:
            raise AssetIOError(f"unsupported file type: {ext}", source_path)

        import_dir = os.path.join(self.resolve_download_root(), IMPORT_DIR)
        try:
            ensure_dir(import_dir)
        except OSError as exc:
            raise AssetIOError(f"failed to create import directory {import_dir}: {exc}", import_dir) from exc

        filename = os.path.basename(source_path)
        stem, file_ext = os.path.splitext(filename)
        target_name = f"{stem}_{os.getpid()}{file_ext}"
        target_path = os.path.join(import_dir, target_name)
        try:
            shutil.copyfile(source_path, target_path)
        except OSError as exc:
            raise AssetIOError(f"failed to write imported image {target_path}: {exc}", target_path) from exc

        print(f"[AssetStore] Imported {source_path} -> {target_path}")
        return ImportResult(type="image", content=f"{IMPORT_DIR}/{target_name}")

    def export(self, reference: str, destination: str) -> str:
        """Copy the referenced image to ``destination`` and return it."""
        source = self.resolve(reference)
        if not os.path.isfile(source):
            raise AssetIOError(f"source image not found: {source}", source)
        try:
            shutil.copyfile(source, destination)
        except OSError as exc:
            raise AssetIOError(f"failed to write exported image {destination}: {exc}", destination) from exc
        return destination
