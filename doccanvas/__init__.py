"""
doccanvas: AI image generation and local asset storage for the
document canvas.

Normalizes four image-generation providers (OpenRouter, OpenAI, Google,
xAI) behind one ``generate(prompt, context, reference_images)`` call and
stores every result under a configured download root, handing callers
a root-relative *asset reference* that can later be redisplayed or
exported.

Modules:
    - config: Provider tagged-union config and the locked config service
    - generation: Provider base class, registry and implementations
    - assets: Secure asset store (persist, resolve, import, export)
    - codec: Data URLs, mime types, force-alpha PNG re-encoding
    - service: Caller-facing facade used by the canvas front end

Quick Start:
    >>> from doccanvas import CanvasImageService
    >>> service = CanvasImageService()
    >>> ref = service.generate_image("a lighthouse at dusk")
    >>> data_url = service.get_image_data_url(ref)
"""

__version__ = "0.1.0"
__author__ = "fm-doc-canvas Team"

from doccanvas.config import AppConfig, ConfigService
from doccanvas.generation.registry import ProviderRegistry
from doccanvas.service import CanvasImageService

__all__ = [
    "AppConfig",
    "CanvasImageService",
    "ConfigService",
    "ProviderRegistry",
    "__version__",
]
