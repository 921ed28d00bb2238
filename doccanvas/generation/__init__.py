"""
Image generation.

Contains the provider base class, the closed provider registry, and the
four provider implementations (OpenRouter, OpenAI, Google, xAI).
"""

from doccanvas.generation.base import BaseProvider, GenerationRequest, combine_prompt
from doccanvas.generation.google import GoogleProvider
from doccanvas.generation.openai_image import OpenAIProvider
from doccanvas.generation.openrouter import OpenRouterProvider
from doccanvas.generation.registry import ProviderRegistry
from doccanvas.generation.xai import XAIProvider

__all__ = [
    "BaseProvider",
    "GenerationRequest",
    "GoogleProvider",
    "OpenAIProvider",
    "OpenRouterProvider",
    "ProviderRegistry",
    "XAIProvider",
    "combine_prompt",
]
