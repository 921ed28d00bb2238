"""
Provider registry – selects the provider for the active configuration.

The provider set is closed: OpenRouter, OpenAI, Google and xAI. The
discriminant of :class:`~doccanvas.config.ImageGenConfig` picks one and
:meth:`ProviderRegistry.create` binds it to its sub-config and the asset
store. Configuration errors surface before any network activity.
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Type

from doccanvas.assets import AssetStore
from doccanvas.config import ImageGenConfig
from doccanvas.errors import ConfigError
from doccanvas.generation.base import BaseProvider
from doccanvas.generation.google import GoogleProvider
from doccanvas.generation.openai_image import OpenAIProvider
from doccanvas.generation.openrouter import OpenRouterProvider
from doccanvas.generation.xai import XAIProvider


class ProviderRegistry:
    """Maps provider discriminants to provider classes."""

    _registry: Dict[str, Type[BaseProvider]] = {
        "openrouter": OpenRouterProvider,
        "openai": OpenAIProvider,
        "google": GoogleProvider,
        "xai": XAIProvider,
    }

    @classmethod
    def create(
        cls,
        config: ImageGenConfig,
        store: AssetStore,
        session: Optional[Any] = None,
        **kwargs: Any,
    ) -> BaseProvider:
        """Instantiate the provider selected by ``config.provider``.

        Parameters:
            config: Image-generation config (tagged union).
            store: Asset store receiving generated images.
            session: Optional HTTP session shared with the provider.
            **kwargs: Additional keyword arguments forwarded to the constructor.

        Returns:
            A provider bound to its own sub-config.

        Raises:
            ConfigError: Unknown discriminant or missing sub-config.
        """
        name = (config.provider or "").lower()
        if name not in cls._registry:
            available = ", ".join(cls.available())
            raise ConfigError(f"unknown provider: {config.provider} (available: [{available}])")
        provider_cfg = config.provider_config()
        return cls._registry[name](provider_cfg, store, session=session, **kwargs)

    @classmethod
    def available(cls) -> list[str]:
        """Return a sorted list of all provider names."""
        return sorted(cls._registry.keys())

    @classmethod
    def is_registered(cls, name: str) -> bool:
        """Check whether a provider name is known."""
        return name.lower() in cls._registry
