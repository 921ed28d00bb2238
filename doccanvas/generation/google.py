"""
Google Gemini provider.

Calls ``models/{model}:generateContent`` with the API key in the query
string. The prompt is one text part; each reference image becomes an
``inline_data`` part built from its data URL.
"""

from __future__ import annotations

from typing import Any, Dict, List, Tuple
from urllib.parse import quote

from doccanvas.codec import DEFAULT_MIME, decode_base64, split_data_url
from doccanvas.errors import ParseError
from doccanvas.generation.base import BaseProvider, GenerationRequest


class GoogleProvider(BaseProvider):
    """Provider backend for Gemini image models."""

    display_name = "Google"

    def endpoint(self) -> str:
        base = self.config.base_url.rstrip("/")
        return (
            f"{base}/models/{quote(self.config.model, safe='')}:generateContent"
            f"?key={quote(self.config.effective_api_key(), safe='')}"
        )

    def _generate(self, request: GenerationRequest) -> str:
        payload = {"contents": [{"parts": self.build_parts(request)}]}
        # Key travels in the URL, never as a bearer header.
        body = self._post(self.endpoint(), self._headers(""), json=payload)
        data, mime_type = self.extract_image(body)
        return self.store.persist(data, mime_type)

    @staticmethod
    def build_parts(request: GenerationRequest) -> List[Dict[str, Any]]:
        parts: List[Dict[str, Any]] = [{"text": request.full_prompt}]
        for image in request.reference_images:
            if not image.startswith("data:image/"):
                continue
            try:
                mime_type, payload = split_data_url(image)
            except ParseError:
                continue
            parts.append(
                {"inline_data": {"mime_type": mime_type or "image/jpeg", "data": payload}}
            )
        return parts

    @staticmethod
    def extract_image(body: Dict[str, Any]) -> Tuple[bytes, str]:
        """Return ``(bytes, mime_type)`` of the first inline image part."""
        candidates = body.get("candidates")
        if not isinstance(candidates, list) or not candidates:
            raise ParseError("no candidates in response")
        content = candidates[0].get("content") if isinstance(candidates[0], dict) else None
        parts = content.get("parts") if isinstance(content, dict) else None
        for part in parts or []:
            if not isinstance(part, dict):
                continue
            inline = part.get("inlineData") or part.get("inline_data")
            if isinstance(inline, dict) and inline.get("data"):
                mime_type = inline.get("mimeType") or inline.get("mime_type") or DEFAULT_MIME
                return decode_base64(inline["data"]), mime_type
        raise ParseError("no image data found in response")
