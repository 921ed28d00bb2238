"""
xAI (Grok Imagine) provider.

OpenAI-compatible images API. Only one reference image is supported:
when any are given, the first is sent to ``/images/edits`` and the rest
are dropped; otherwise the request goes to ``/images/generations``.
"""

from __future__ import annotations

from typing import Any, Dict

from doccanvas.codec import decode_base64
from doccanvas.errors import ParseError
from doccanvas.generation.base import BaseProvider, GenerationRequest

# Grok returns JPEG when asked for base64 output.
XAI_B64_MIME = "image/jpeg"


class XAIProvider(BaseProvider):
    """Provider backend for xAI image models."""

    display_name = "xAI"

    def _generate(self, request: GenerationRequest) -> str:
        payload: Dict[str, Any] = {
            "model": self.config.model,
            "prompt": request.full_prompt,
            "response_format": "b64_json",
            "n": 1,
        }

        endpoint = "images/generations"
        if request.reference_images:
            if len(request.reference_images) > 1:
                print(
                    f"[XAIProvider] Using the first of {len(request.reference_images)} "
                    f"reference images; xAI accepts only one"
                )
            payload["image"] = {"url": request.reference_images[0]}
            endpoint = "images/edits"

        url = f"{self.config.base_url.rstrip('/')}/{endpoint}"
        body = self._post_json(url, payload, self.config.effective_api_key())

        data = body.get("data")
        if not isinstance(data, list) or not data or not isinstance(data[0], dict):
            raise ParseError("no image data in response")
        item = data[0]
        if item.get("b64_json"):
            return self.store.persist(decode_base64(item["b64_json"]), XAI_B64_MIME)
        if item.get("url"):
            return self.store.persist_source(item["url"])
        raise ParseError("no image data in response")
