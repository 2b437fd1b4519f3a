"""
Gemini generation clients shared by the MCP tools.

Two backends sit behind one contract: AI Studio (API key) and Vertex AI
(project/location). Both go through the google-genai SDK.
"""
import base64
import logging
from dataclasses import dataclass
from typing import Any, Protocol, Sequence

import httpx
from google import genai
from google.genai import types

from .config import ApiConfig
from .errors import UpstreamGenerationFailure
from .history import ImagePayload
from .sessions import ChatMessage, MessagePart

logger = logging.getLogger(__name__)


@dataclass
class GenerationResult:
    image_data: bytes | None = None
    mime_type: str = "image/png"
    text: str = ""
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and bool(self.image_data)


class GenerationClient(Protocol):
    model_id: str

    def generate_image(
        self,
        parts: Sequence[MessagePart],
        aspect_ratio: str,
        *,
        enable_google_search: bool = False,
    ) -> GenerationResult:
        ...

    def chat(
        self,
        history: Sequence[ChatMessage],
        message_parts: Sequence[MessagePart],
        system_prompt: str | None = None,
    ) -> str:
        ...


def _image_part_from_bytes(img_bytes: bytes, mime_type: str):
    """Create a Gemini Part from image bytes with SDK compatibility fallbacks."""
    if hasattr(types.Part, "from_bytes"):
        return types.Part.from_bytes(data=img_bytes, mime_type=mime_type)
    return types.Part(inline_data=types.Blob(data=img_bytes, mime_type=mime_type))


def _to_part(part: MessagePart):
    if isinstance(part, ImagePayload):
        return _image_part_from_bytes(part.data, part.mime_type)
    return types.Part.from_text(text=part)


def _to_content(role: str, parts: Sequence[MessagePart]):
    return types.Content(role=role, parts=[_to_part(p) for p in parts])


_ssl_bypass_installed = False


def _setup_ssl_bypass():
    """Monkey-patch httpx to disable SSL verification."""
    global _ssl_bypass_installed
    if _ssl_bypass_installed:
        return

    _original_client_init = httpx.Client.__init__
    def _patched_client_init(self, *args, **kwargs):
        kwargs['verify'] = False
        return _original_client_init(self, *args, **kwargs)
    httpx.Client.__init__ = _patched_client_init

    _original_async_client_init = httpx.AsyncClient.__init__
    def _patched_async_client_init(self, *args, **kwargs):
        kwargs['verify'] = False
        return _original_async_client_init(self, *args, **kwargs)
    httpx.AsyncClient.__init__ = _patched_async_client_init

    _ssl_bypass_installed = True
    logger.warning("SSL certificate verification is disabled")


def _extract_inline_image(part) -> tuple[bytes, str] | None:
    inline = getattr(part, "inline_data", None)
    if inline is None:
        inline = getattr(part, "inlineData", None)
    if inline is None:
        return None

    data = getattr(inline, "data", None)
    mime = getattr(inline, "mime_type", None) or getattr(inline, "mimeType", None) or "image/png"
    if not data:
        return None
    if isinstance(data, str):
        data = base64.b64decode(data)
    return data, str(mime)


class GeminiClient:
    """AI Studio backend."""

    backend = "ai_studio"

    def __init__(self, client: Any, model_id: str):
        self._client = client
        self.model_id = model_id

    def _image_config(self, aspect_ratio: str, enable_google_search: bool):
        config_kwargs: dict[str, Any] = {
            "response_modalities": ["IMAGE", "TEXT"],
            "image_config": types.ImageConfig(aspect_ratio=aspect_ratio),
        }
        if enable_google_search:
            config_kwargs["tools"] = [types.Tool(google_search=types.GoogleSearch())]
        return types.GenerateContentConfig(**config_kwargs)

    def generate_image(
        self,
        parts: Sequence[MessagePart],
        aspect_ratio: str,
        *,
        enable_google_search: bool = False,
    ) -> GenerationResult:
        """
        Stream an image generation request.

        Returns:
            GenerationResult holding the last image part and the concatenated
            text. Any SDK or transport error is reported via `error`, not raised.
        """
        result = GenerationResult()
        text_parts = []

        try:
            stream = self._client.models.generate_content_stream(
                model=self.model_id,
                contents=[_to_content("user", parts)],
                config=self._image_config(aspect_ratio, enable_google_search),
            )
            for chunk in stream:
                candidates = getattr(chunk, "candidates", None) or []
                content = getattr(candidates[0], "content", None) if candidates else None
                for part in getattr(content, "parts", None) or []:
                    image = _extract_inline_image(part)
                    if image is not None:
                        result.image_data, result.mime_type = image
                    elif getattr(part, "text", None):
                        text_parts.append(part.text)
        except Exception as e:
            logger.warning("%s image request failed: %s", self.backend, e)
            result.error = self._describe_error(e)

        result.text = "".join(text_parts)
        return result

    def chat(
        self,
        history: Sequence[ChatMessage],
        message_parts: Sequence[MessagePart],
        system_prompt: str | None = None,
    ) -> str:
        contents = [_to_content(m.role, m.parts) for m in history]
        contents.append(_to_content("user", message_parts))
        config = None
        if system_prompt:
            config = types.GenerateContentConfig(system_instruction=system_prompt)

        try:
            response = self._client.models.generate_content(
                model=self.model_id,
                contents=contents,
                config=config,
            )
        except Exception as e:
            logger.warning("%s chat request failed: %s", self.backend, e)
            raise UpstreamGenerationFailure(f"Chat request failed: {self._describe_error(e)}") from e

        return getattr(response, "text", None) or ""

    def _describe_error(self, error: Exception) -> str:
        return str(error)


class VertexGeminiClient(GeminiClient):
    """Vertex AI backend, with error messages pointing at project setup."""

    backend = "vertex"

    def __init__(self, client: Any, model_id: str, location: str):
        super().__init__(client, model_id)
        self.location = location

    def _describe_error(self, error: Exception) -> str:
        message = str(error)
        code = getattr(error, "code", None)
        status = getattr(error, "status", None)

        if code == 404 or status == "NOT_FOUND":
            return (
                "Model not found. Please verify:\n"
                f'1. VERTEX_MODEL_ID="{self.model_id}" exists\n'
                f'2. VERTEX_LOCATION="{self.location}" has this model deployed'
            )
        if code == 429 or status == "RESOURCE_EXHAUSTED":
            return "Vertex AI quota exceeded. Please try again later or check your project quotas."
        if code == 403 or status == "PERMISSION_DENIED":
            return (
                "Authentication failed. Please check:\n"
                "1. GOOGLE_APPLICATION_CREDENTIALS points to valid key file\n"
                "2. Or run: gcloud auth application-default login"
            )
        return message


def create_client(api: ApiConfig, *, no_ssl_verify: bool = False) -> GeminiClient:
    """Build the backend selected by the API configuration."""
    if no_ssl_verify:
        _setup_ssl_bypass()

    if api.mode == "vertex":
        client = genai.Client(vertexai=True, project=api.project_id, location=api.location)
        return VertexGeminiClient(client, api.model_id, api.location)

    client = genai.Client(api_key=api.api_key)
    return GeminiClient(client, api.model_id)
