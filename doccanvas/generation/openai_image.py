"""
OpenAI image provider.

Three request paths, chosen per call:

    1. **No reference images** – JSON to ``/images/generations`` and the
       base64 result is read from ``data[0].b64_json``.
    2. **Reference images** (default) – the Responses API with a forced
       ``image_generation`` tool call. A chat "controller" model drives
       the tool; candidates are tried in order until one returns an
       ``image_generation_call`` result.
    3. **Reference images, legacy edits** (``use_edits_endpoint``) –
       multipart upload to ``/images/edits``; every reference image is
       re-encoded as an RGBA PNG first.

Reference: https://platform.openai.com/docs/guides/image-generation
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence, Tuple

from doccanvas.codec import (
    decode_base64,
    decode_data_url,
    force_alpha_png,
    is_data_url,
    mime_for_output_format,
)
from doccanvas.errors import APIError, DocCanvasError, ParseError, TransportError
from doccanvas.generation.base import BaseProvider, GenerationRequest

# Tried in order when the configured model is empty or is an image model,
# and after the configured controller model otherwise.
DEFAULT_CONTROLLER_MODELS: Tuple[str, ...] = ("gpt-4.1-mini", "gpt-4.1", "gpt-4o")

MAX_REFERENCE_IMAGES = 5

IMAGE_TOOL = "image_generation"

TOOL_INSTRUCTION = (
    "You must call the image_generation tool to create the image. "
    "Never answer in plain text.\n\n{prompt}"
)

# Models that only return base64 when asked explicitly on api.openai.com.
B64_REQUEST_MODELS = {"dall-e-2", "dall-e-3"}


def is_image_model(model: str) -> bool:
    """Whether a model name looks like an image model rather than a chat model."""
    name = model.strip().lower()
    return name.startswith(("gpt-image", "dall-e")) or "image" in name


def controller_candidates(
    model: str,
    fallback: Sequence[str] = DEFAULT_CONTROLLER_MODELS,
) -> Tuple[List[str], Optional[str]]:
    """Pick the controller models to try and the tool's own image model.

    Returns:
        ``(candidates, tool_model)``. ``tool_model`` is the configured
        model when it is an image model, else ``None``.

    Example:
        ``controller_candidates("gpt-image-1")`` →
        ``(["gpt-4.1-mini", "gpt-4.1", "gpt-4o"], "gpt-image-1")``
    """
    model = (model or "").strip()
    if not model:
        return list(fallback), None
    if is_image_model(model):
        return list(fallback), model
    return [model] + [m for m in fallback if m != model], None


class OpenAIProvider(BaseProvider):
    """Provider backend for OpenAI (and compatible) image APIs.

    Parameters:
        fallback_models: Controller chain for the Responses API path
            (default: :data:`DEFAULT_CONTROLLER_MODELS`).
    """

    display_name = "OpenAI"

    def __init__(self, *args: Any, fallback_models: Optional[Sequence[str]] = None, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.fallback_models = tuple(fallback_models or DEFAULT_CONTROLLER_MODELS)

    @property
    def base_url(self) -> str:
        return self.config.base_url.rstrip("/")

    def _generate(self, request: GenerationRequest) -> str:
        if not request.reference_images:
            return self._generate_image(request)
        if self.config.use_edits_endpoint:
            return self._edit_image(request)
        return self._respond_with_tool(request)

    # ── Images API ───────────────────────────────────────────────────────

    def _wants_b64(self) -> bool:
        if "api.openai.com" not in self.config.base_url:
            return True
        return self.config.model in B64_REQUEST_MODELS

    def _generate_image(self, request: GenerationRequest) -> str:
        payload: Dict[str, Any] = {
            "model": self.config.model,
            "prompt": request.full_prompt,
            "n": 1,
        }
        if self._wants_b64():
            payload["response_format"] = "b64_json"

        url = f"{self.base_url}/images/generations"
        body = self._post_json(url, payload, self.config.effective_api_key())
        return self.store.persist(self._extract_b64(body), "image/png")

    @staticmethod
    def _extract_b64(body: Dict[str, Any]) -> bytes:
        data = body.get("data")
        if not isinstance(data, list) or not data or not isinstance(data[0], dict):
            raise ParseError("no image data in response")
        b64 = data[0].get("b64_json")
        if not b64:
            raise ParseError("no image data in response")
        return decode_base64(b64)

    # ── Responses API ────────────────────────────────────────────────────

    def build_responses_payload(
        self,
        controller: str,
        tool_model: Optional[str],
        prompt: str,
        images: Sequence[str],
    ) -> Dict[str, Any]:
        content: List[Dict[str, Any]] = [
            {"type": "input_text", "text": TOOL_INSTRUCTION.format(prompt=prompt)}
        ]
        content.extend({"type": "input_image", "image_url": image} for image in images)

        tool: Dict[str, Any] = {"type": IMAGE_TOOL}
        if tool_model:
            tool["model"] = tool_model

        return {
            "model": controller,
            "input": [{"role": "user", "content": content}],
            "tools": [tool],
            "tool_choice": {"type": IMAGE_TOOL},
        }

    @staticmethod
    def extract_tool_image(body: Dict[str, Any]) -> Optional[Tuple[str, str]]:
        """Return ``(base64, mime_type)`` of the first image tool call, if any."""
        output = body.get("output")
        if not isinstance(output, list):
            return None
        for item in output:
            if not isinstance(item, dict) or item.get("type") != "image_generation_call":
                continue
            result = item.get("result")
            if isinstance(result, str) and result:
                return result, mime_for_output_format(item.get("output_format"))
        return None

    def _respond_with_tool(self, request: GenerationRequest) -> str:
        images = request.reference_images[:MAX_REFERENCE_IMAGES]
        if len(request.reference_images) > MAX_REFERENCE_IMAGES:
            print(
                f"[OpenAIProvider] Sending the first {MAX_REFERENCE_IMAGES} of "
                f"{len(request.reference_images)} reference images"
            )

        candidates, tool_model = controller_candidates(self.config.model, self.fallback_models)
        url = f"{self.base_url}/responses"
        api_key = self.config.effective_api_key()
        last_error: Optional[DocCanvasError] = None

        for controller in candidates:
            payload = self.build_responses_payload(controller, tool_model, request.full_prompt, images)
            try:
                body = self._post_json(url, payload, api_key)
            except (TransportError, APIError) as e:
                print(f"[OpenAIProvider] Controller {controller} failed: {e}")
                last_error = e
                continue

            found = self.extract_tool_image(body)
            if found is None:
                print(f"[OpenAIProvider] Controller {controller} returned no image tool call")
                last_error = ParseError(f"no image_generation_call result from {controller}")
                continue

            b64, mime_type = found
            return self.store.persist(decode_base64(b64), mime_type)

        raise last_error or ParseError("no controller models to try")

    # ── Legacy multipart edits ───────────────────────────────────────────

    @staticmethod
    def edit_prompt(prompt: str, image_count: int) -> str:
        """Append instructions naming every reference image after the first."""
        if image_count <= 1:
            return prompt
        notes = [
            "Please incorporate elements from reference image 2 "
            "(style, colors, composition, etc.) into the base image."
        ]
        notes.extend(
            f"Also consider reference image {n}'s characteristics."
            for n in range(3, image_count + 1)
        )
        return f"{prompt}\n\n{' '.join(notes)}"

    def _edit_image(self, request: GenerationRequest) -> str:
        files = []
        for i, image in enumerate(request.reference_images):
            if not is_data_url(image):
                raise ParseError("only data URL images are supported for image edits")
            raw, _ = decode_data_url(image)
            field_name = "image" if i == 0 else f"image{i + 1}"
            files.append((field_name, ("image.png", force_alpha_png(raw), "image/png")))

        form = {
            "model": self.config.model,
            "prompt": self.edit_prompt(request.full_prompt, len(request.reference_images)),
            "n": "1",
            "response_format": "b64_json",
        }
        # requests sets the multipart boundary itself.
        headers = self._headers(self.config.effective_api_key(), content_type=None)
        body = self._post(f"{self.base_url}/images/edits", headers, data=form, files=files)
        return self.store.persist(self._extract_b64(body), "image/png")
