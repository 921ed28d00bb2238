"""
Canvas image service.

Caller-facing facade wiring the configuration service, the asset store
and the provider registry together. The GUI glue layer calls these
methods directly; each call reads a fresh configuration snapshot, so a
``save_config`` from one UI action is picked up by the next generation
without restarting.

Flow of :meth:`CanvasImageService.generate_image`::

    config snapshot → ProviderRegistry.create → provider.generate
        → external API → AssetStore.persist → asset reference
"""

from __future__ import annotations

import time
from typing import Any, Optional, Sequence

from doccanvas.assets import AssetStore, ImportResult
from doccanvas.config import AppConfig, ConfigService
from doccanvas.generation.base import BaseProvider
from doccanvas.generation.registry import ProviderRegistry


class CanvasImageService:
    """Image generation and asset access for the document canvas.

    Parameters:
        config_service: Shared configuration (created with defaults if omitted).
        session: Optional HTTP session used by providers and downloads.
    """

    def __init__(
        self,
        config_service: Optional[ConfigService] = None,
        session: Optional[Any] = None,
    ):
        self.config_service = config_service or ConfigService()
        self.assets = AssetStore(self.config_service, session=session)
        # One pooled session for provider calls and image downloads.
        self.session = self.assets.session

    # ── Configuration ────────────────────────────────────────────────────

    def get_config(self) -> AppConfig:
        return self.config_service.get_config()

    def save_config(self, config: AppConfig) -> None:
        self.config_service.save(config)

    # ── Generation ───────────────────────────────────────────────────────

    def provider(self) -> BaseProvider:
        """Provider for the current configuration."""
        cfg = self.config_service.get_config()
        return ProviderRegistry.create(cfg.image_gen, self.assets, session=self.session)

    def generate_image(
        self,
        prompt: str,
        context_data: str = "",
        reference_images: Optional[Sequence[str]] = None,
    ) -> str:
        """Generate an image and return its asset reference."""
        provider = self.provider()
        t0 = time.time()
        reference = provider.generate(prompt, context_data, reference_images)
        print(f"[CanvasImageService] {provider} ✓ {reference} ({time.time() - t0:.1f}s)")
        return reference

    # ── Assets ───────────────────────────────────────────────────────────

    def get_image_data_url(self, src: str) -> str:
        return self.assets.read_as_data_url(src)

    def get_image_file_url(self, src: str) -> str:
        return self.assets.file_url(src)

    def import_file(self, path: str) -> ImportResult:
        return self.assets.import_file(path)

    def export_image(self, src: str, destination: str) -> str:
        return self.assets.export(src, destination)
