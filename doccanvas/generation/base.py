"""
Abstract base class for all image-generation providers.

Every provider integrated into doccanvas subclasses :class:`BaseProvider`
and implements :meth:`BaseProvider._generate`. The public entry point,
:meth:`BaseProvider.generate`, takes ``(prompt, context_data,
reference_images)``, returns an asset reference, and writes exactly one
new file under the download root on success.

Shared here:
    - the context/prompt template applied before any provider call
    - header construction (bearer auth only when a key is configured)
    - the POST helper mapping transport, status and body errors onto
      the doccanvas error taxonomy
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence, Tuple

import requests

from doccanvas.assets import AssetStore
from doccanvas.errors import APIError, ParseError, TransportError

IMAGE_TIMEOUT = 180.0

CONTEXT_TEMPLATE = (
    "Context information:\n{context}\n\n"
    "Based on the above context, generate an image for: {prompt}"
)


def combine_prompt(prompt: str, context_data: str = "") -> str:
    """Prepend context to the prompt using the fixed template.

    Example:
        ``combine_prompt("draw a cat", "blue theme")`` →
        ``"Context information:\\nblue theme\\n\\nBased on the above
        context, generate an image for: draw a cat"``
    """
    if not context_data:
        return prompt
    return CONTEXT_TEMPLATE.format(context=context_data, prompt=prompt)


@dataclass(frozen=True)
class GenerationRequest:
    """One generation call.

    Attributes:
        prompt: User prompt.
        context_data: Text from connected canvas nodes (may be empty).
        reference_images: Data URLs, in caller order.
    """

    prompt: str
    context_data: str = ""
    reference_images: Tuple[str, ...] = ()

    @property
    def full_prompt(self) -> str:
        return combine_prompt(self.prompt, self.context_data)


class BaseProvider(ABC):
    """Abstract base class for image-generation providers.

    Parameters:
        config: The provider's own sub-config (base URL, model, key).
        store: Asset store receiving the decoded image.
        session: ``requests``-compatible session; defaults to a new
                 :class:`requests.Session`.
        timeout: Per-request timeout in seconds.
    """

    #: Human-readable provider name used in error messages.
    display_name = "Provider"

    def __init__(
        self,
        config: Any,
        store: AssetStore,
        session: Optional[Any] = None,
        timeout: float = IMAGE_TIMEOUT,
    ):
        self.config = config
        self.store = store
        self.session = session or requests.Session()
        self.timeout = timeout

    def generate(
        self,
        prompt: str,
        context_data: str = "",
        reference_images: Optional[Sequence[str]] = None,
    ) -> str:
        """Generate one image and store it.

        Parameters:
            prompt: Text prompt.
            context_data: Optional context, combined with the prompt.
            reference_images: Optional data URLs steering generation.

        Returns:
            The asset reference of the stored image.
        """
        request = GenerationRequest(
            prompt=prompt,
            context_data=context_data or "",
            reference_images=tuple(reference_images or ()),
        )
        return self._generate(request)

    @abstractmethod
    def _generate(self, request: GenerationRequest) -> str:
        """Provider-specific request/response handling."""
        ...

    # ── HTTP helpers ─────────────────────────────────────────────────────

    @staticmethod
    def _headers(api_key: str, content_type: Optional[str] = "application/json") -> Dict[str, str]:
        headers: Dict[str, str] = {}
        if content_type:
            headers["Content-Type"] = content_type
        # Locally hosted compatible endpoints run without a key.
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        return headers

    def _post(self, url: str, headers: Dict[str, str], **kwargs: Any) -> Dict[str, Any]:
        """POST and return the decoded JSON body.

        Raises:
            TransportError: Connection failure or timeout.
            APIError: Non-200 status, or a non-empty ``error.message``.
            ParseError: Body is not a JSON object.
        """
        try:
            response = self.session.post(url, headers=headers, timeout=self.timeout, **kwargs)
        except requests.exceptions.RequestException as exc:
            raise TransportError(f"failed to send request to {self.display_name}: {exc}") from exc

        if response.status_code != 200:
            raise APIError(self.display_name, response.text, response.status_code)

        try:
            body = response.json()
        except ValueError as exc:
            raise ParseError(f"failed to unmarshal {self.display_name} response: {exc}") from exc
        if not isinstance(body, dict):
            raise ParseError(f"unexpected {self.display_name} response: {type(body).__name__}")

        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            raise APIError(self.display_name, str(error["message"]))
        return body

    def _post_json(self, url: str, payload: Dict[str, Any], api_key: str) -> Dict[str, Any]:
        return self._post(url, self._headers(api_key), json=payload)

    def __repr__(self) -> str:
        model = getattr(self.config, "model", "")
        return f"{self.__class__.__name__}(model='{model}')"
