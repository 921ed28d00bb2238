"""
OpenRouter provider.

Uses the chat-completions endpoint with an image output modality.
Reference images travel as ``image_url`` content parts after the text.

Reference: https://openrouter.ai/docs/features/multimodal/image-generation
"""

from __future__ import annotations

from typing import Any, Dict, List, Union

from doccanvas.codec import find_data_url
from doccanvas.errors import ParseError
from doccanvas.generation.base import BaseProvider, GenerationRequest


class OpenRouterProvider(BaseProvider):
    """Provider backend for OpenRouter image-capable chat models."""

    display_name = "OpenRouter"

    def _generate(self, request: GenerationRequest) -> str:
        payload = self.build_payload(request)
        url = f"{self.config.base_url.rstrip('/')}/chat/completions"
        body = self._post_json(url, payload, self.config.effective_api_key())
        return self.store.persist_source(self.extract_image(body))

    def build_payload(self, request: GenerationRequest) -> Dict[str, Any]:
        content: Union[str, List[Dict[str, Any]]] = request.full_prompt
        if request.reference_images:
            content = [{"type": "text", "text": request.full_prompt}]
            content.extend(
                {"type": "image_url", "image_url": {"url": image}}
                for image in request.reference_images
            )
        return {
            "model": self.config.model,
            "messages": [{"role": "user", "content": content}],
            "modalities": ["image", "text"],
        }

    @staticmethod
    def extract_image(body: Dict[str, Any]) -> str:
        """Return the image URL or data URL carried by the first choice.

        ``message.images[0].image_url.url`` wins; otherwise the message
        text is scanned for an inline base64 data URL.
        """
        choices = body.get("choices")
        if not isinstance(choices, list) or not choices:
            raise ParseError("no choices in response")
        message = choices[0].get("message") if isinstance(choices[0], dict) else None
        if not isinstance(message, dict):
            raise ParseError("invalid message format")

        images = message.get("images")
        if isinstance(images, list) and images:
            first = images[0]
            image_url = first.get("image_url") if isinstance(first, dict) else None
            url = image_url.get("url") if isinstance(image_url, dict) else None
            if not isinstance(url, str) or not url:
                raise ParseError("invalid image URL format")
            return url

        content = message.get("content")
        if isinstance(content, str):
            found = find_data_url(content)
            if found:
                return found

        raise ParseError("no image found in response")
