"""
MCP tool definitions and their handlers.
"""
import json
import logging
from datetime import datetime, timezone
from pathlib import Path

from mcp.types import Tool, TextContent

from .core import GenerationClient, GenerationResult
from .errors import InvalidArguments, UnknownTool, UpstreamGenerationFailure
from .history import ImageHistoryEntry
from .references import format_failures, resolve_reference, resolve_references
from .sessions import DEFAULT_SESSION, VALID_ASPECT_RATIOS, ConversationRegistry
from .storage import DEFAULT_OUTPUT_DIR, build_output_path, save_image

logger = logging.getLogger(__name__)

# Maximum number of caller-supplied images per request
MAX_INPUT_IMAGES = 10
# Maximum number of recent history images included for consistency
MAX_REFERENCE_IMAGES = 3

_REFERENCE_HELP = "Supports file paths, 'last', or 'history:N' references."

CONSISTENCY_INSTRUCTION = (
    "IMPORTANT: Maintain visual consistency with the provided reference images "
    "(same style, character appearance, color palette)."
)


def _session_property(description: str) -> dict:
    return {"type": "string", "description": description}


def _reference_list_property(description: str) -> dict:
    return {
        "type": "array",
        "items": {"type": "string"},
        "description": f"{description} {_REFERENCE_HELP}",
        "maxItems": MAX_INPUT_IMAGES,
    }


def _aspect_ratio_property(description: str) -> dict:
    return {"type": "string", "enum": list(VALID_ASPECT_RATIOS), "description": description}


TOOLS = [
    Tool(
        name="gemini_chat",
        description="Chat with Gemini. Supports multi-turn conversations with up to 10 reference images.",
        inputSchema={
            "type": "object",
            "properties": {
                "message": {
                    "type": "string",
                    "description": "The message to send to Gemini"
                },
                "images": _reference_list_property("Array of image paths to include in the chat (max 10)."),
                "conversation_id": _session_property(
                    "Optional conversation ID for maintaining context and accessing image history"
                ),
                "system_prompt": {
                    "type": "string",
                    "description": "Optional system prompt to guide the model's behavior"
                },
            },
            "required": ["message"]
        }
    ),
    Tool(
        name="gemini_generate_image",
        description="Generate images using Gemini. Supports session-based image consistency for maintaining style/character across multiple generations.",
        inputSchema={
            "type": "object",
            "properties": {
                "prompt": {
                    "type": "string",
                    "description": "Description of the image to generate"
                },
                "aspect_ratio": _aspect_ratio_property(
                    "Aspect ratio for the generated image. Overrides session setting if provided."
                ),
                "output_path": {
                    "type": "string",
                    "description": "Optional path where to save the generated image. If not provided, saves to ~/Documents/nanobanana_generated/"
                },
                "conversation_id": _session_property(
                    "Session ID for maintaining image history and consistency across generations"
                ),
                "use_image_history": {
                    "type": "boolean",
                    "description": "If true, includes previous generated images from this session for style/character consistency"
                },
                "reference_images": _reference_list_property(
                    "Reference images for style/character consistency (max 10)."
                ),
                "enable_google_search": {
                    "type": "boolean",
                    "description": "Enable Google Search for real-world reference grounding"
                },
            },
            "required": ["prompt"]
        }
    ),
    Tool(
        name="gemini_edit_image",
        description="Edit or modify existing images based on prompts. Supports session history references ('last' or 'history:N') and image consistency features.",
        inputSchema={
            "type": "object",
            "properties": {
                "image_path": {
                    "type": "string",
                    "description": "Path to the original image. Use 'last' for most recent generated image, or 'history:N' (e.g., 'history:0') to reference by index"
                },
                "edit_prompt": {
                    "type": "string",
                    "description": "Instructions for how to edit the image"
                },
                "aspect_ratio": _aspect_ratio_property(
                    "Aspect ratio for the edited image. Overrides session setting if provided."
                ),
                "output_path": {
                    "type": "string",
                    "description": "Optional output path. If not provided, saves to ~/Documents/nanobanana_generated/"
                },
                "conversation_id": _session_property(
                    "Session ID for accessing image history and maintaining consistency"
                ),
                "reference_images": _reference_list_property(
                    "Additional reference images for style consistency (max 10)."
                ),
                "enable_google_search": {
                    "type": "boolean",
                    "description": "Enable Google Search for real-world reference grounding"
                },
            },
            "required": ["image_path", "edit_prompt"]
        }
    ),
    Tool(
        name="get_image_history",
        description="Get the list of generated/edited images in a session for reference",
        inputSchema={
            "type": "object",
            "properties": {
                "conversation_id": _session_property("The session ID to get image history for"),
            },
            "required": ["conversation_id"]
        }
    ),
    Tool(
        name="clear_conversation",
        description="Clear conversation history for a specific conversation ID",
        inputSchema={
            "type": "object",
            "properties": {
                "conversation_id": _session_property("The conversation ID to clear"),
            },
            "required": ["conversation_id"]
        }
    ),
    Tool(
        name="set_aspect_ratio",
        description="Set the aspect ratio for subsequent image generation and editing in this session. Must be called before generating/editing images if a specific ratio is desired.",
        inputSchema={
            "type": "object",
            "properties": {
                "aspect_ratio": _aspect_ratio_property("The aspect ratio to use for image generation/editing"),
                "conversation_id": _session_property(
                    "Session ID to apply this setting to (default: 'default')"
                ),
            },
            "required": ["aspect_ratio"]
        }
    ),
]


def _text(text: str) -> list[TextContent]:
    return [TextContent(type="text", text=text)]


def _require(arguments: dict, name: str):
    value = arguments.get(name)
    if not value:
        raise InvalidArguments(f"'{name}' is required")
    return value


def _check_result(result: GenerationResult, action: str, details: str) -> bytes:
    if result.error is not None:
        raise UpstreamGenerationFailure(f"Image {action} failed: {result.error}\n{result.text}".rstrip())
    if not result.image_data:
        model_said = f"Model response: {result.text}" if result.text else "No image returned from model"
        raise UpstreamGenerationFailure(f"Image {action} failed.\n{details}\n{model_said}")
    return result.image_data


class NanoBananaTools:
    """Handlers for every tool in TOOLS, bound to one registry and one client."""

    def __init__(
        self,
        registry: ConversationRegistry,
        client: GenerationClient,
        output_dir: Path | str = DEFAULT_OUTPUT_DIR,
    ):
        self.registry = registry
        self.client = client
        self.output_dir = Path(output_dir)
        self._handlers = {
            "gemini_chat": self.gemini_chat,
            "gemini_generate_image": self.gemini_generate_image,
            "gemini_edit_image": self.gemini_edit_image,
            "get_image_history": self.get_image_history,
            "clear_conversation": self.clear_conversation,
            "set_aspect_ratio": self.set_aspect_ratio,
        }

    def _generate(self, parts, aspect_ratio: str, arguments: dict) -> GenerationResult:
        """Run the image request; a client that raises is treated like one that reports an error."""
        try:
            return self.client.generate_image(
                parts,
                aspect_ratio,
                enable_google_search=bool(arguments.get("enable_google_search")),
            )
        except Exception as e:
            logger.warning("Image request raised: %s", e)
            return GenerationResult(error=str(e))

    async def call(self, name: str, arguments: dict | None) -> list[TextContent]:
        handler = self._handlers.get(name)
        if handler is None:
            raise UnknownTool(f"Unknown tool: {name}")
        return await handler(arguments or {})

    async def gemini_chat(self, arguments: dict) -> list[TextContent]:
        message = _require(arguments, "message")
        session = arguments.get("conversation_id") or DEFAULT_SESSION
        context = self.registry.get_or_create(session)

        resolved, failed = resolve_references(
            context.images,
            arguments.get("images") or [],
            output_dir=self.output_dir,
            limit=MAX_INPUT_IMAGES,
        )
        message_parts = [message] + [r.payload for r in resolved]

        try:
            text = self.client.chat(context.transcript, message_parts, arguments.get("system_prompt"))
        except UpstreamGenerationFailure:
            raise
        except Exception as e:
            raise UpstreamGenerationFailure(f"Chat request failed: {e}") from e
        context.record_exchange(message_parts, text)

        if resolved:
            text = f"[{len(resolved)} image(s) included]\n\n{text}"
        return _text(text + format_failures(failed, "image"))

    async def gemini_generate_image(self, arguments: dict) -> list[TextContent]:
        prompt = _require(arguments, "prompt")
        session = arguments.get("conversation_id") or DEFAULT_SESSION
        context = self.registry.get_or_create(session)
        aspect_ratio = context.effective_aspect_ratio(arguments.get("aspect_ratio"))

        resolved, failed = resolve_references(
            context.images,
            arguments.get("reference_images") or [],
            output_dir=self.output_dir,
            limit=MAX_INPUT_IMAGES,
        )
        parts = [r.payload for r in resolved]

        final_prompt = prompt
        if arguments.get("use_image_history") and len(context.images):
            parts.extend(entry.payload for entry in context.images.recent(MAX_REFERENCE_IMAGES))
            final_prompt = f"{prompt}\n\n{CONSISTENCY_INSTRUCTION}"
        parts.append(final_prompt)

        logger.info("Generating image for session %s (%s, %d image part(s))", session, aspect_ratio, len(parts) - 1)
        result = self._generate(parts, aspect_ratio, arguments)
        image_data = _check_result(result, "generation", f'Prompt: "{prompt}"')

        final_path = build_output_path(arguments.get("output_path"), stem="generated", output_dir=self.output_dir)
        save_image(image_data, final_path)
        context.images.append(
            ImageHistoryEntry.from_bytes(
                image_data,
                file_path=str(final_path),
                prompt=prompt,
                type="generated",
                mime_type=result.mime_type,
            )
        )

        text = (
            "Image generated successfully!\n"
            f'Prompt: "{prompt}"\n'
            f"Saved to: {final_path}\n"
            f"Session: {session} (history: {len(context.images)} images)"
        )
        text += format_failures(failed, "reference image")
        if result.text:
            text += f"\n\nModel response: {result.text}"
        return _text(text)

    async def gemini_edit_image(self, arguments: dict) -> list[TextContent]:
        image_path = _require(arguments, "image_path")
        edit_prompt = _require(arguments, "edit_prompt")
        session = arguments.get("conversation_id") or DEFAULT_SESSION
        context = self.registry.get_or_create(session)
        aspect_ratio = context.effective_aspect_ratio(arguments.get("aspect_ratio"))

        source = resolve_reference(context.images, image_path, output_dir=self.output_dir)
        resolved, failed = resolve_references(
            context.images,
            arguments.get("reference_images") or [],
            output_dir=self.output_dir,
            limit=MAX_INPUT_IMAGES,
        )

        parts = [r.payload for r in resolved]
        parts.append(
            f"Based on this image, generate a new edited version with the following modifications: {edit_prompt}\n\n"
            "IMPORTANT: Create a completely new image that incorporates the requested changes while maintaining "
            "the style and overall composition of the original."
        )
        parts.append(source.payload)

        logger.info("Editing %s for session %s (%s)", image_path, session, aspect_ratio)
        result = self._generate(parts, aspect_ratio, arguments)
        image_data = _check_result(
            result, "editing", f'Original: {image_path}\nEdit request: "{edit_prompt}"'
        )

        if source.entry is not None:
            stem = f"history_{source.entry.id}_edited"
            original = f"[{image_path}] {source.path}"
        else:
            stem = f"{Path(image_path).stem}_edited"
            original = source.path
        final_path = build_output_path(arguments.get("output_path"), stem=stem, output_dir=self.output_dir)
        save_image(image_data, final_path)
        context.images.append(
            ImageHistoryEntry.from_bytes(
                image_data,
                file_path=str(final_path),
                prompt=edit_prompt,
                type="edited",
                mime_type=result.mime_type,
            )
        )

        text = (
            "Image edited successfully!\n"
            f"Original: {original}\n"
            f'Edit request: "{edit_prompt}"\n'
            f"Saved to: {final_path}\n"
            f"Session: {session} (history: {len(context.images)} images)"
        )
        text += format_failures(failed, "reference image")
        if result.text:
            text += f"\n\nModel response: {result.text}"
        return _text(text)

    async def get_image_history(self, arguments: dict) -> list[TextContent]:
        session = _require(arguments, "conversation_id")
        context = self.registry.get(session)
        if context is None or not len(context.images):
            return _text(f"No image history found for session: {session}")

        history_info = [
            {
                "index": index,
                "reference": f"history:{index}",
                "id": entry.id,
                "filePath": entry.file_path,
                "prompt": entry.prompt,
                "type": entry.type,
                "timestamp": datetime.fromtimestamp(entry.timestamp, tz=timezone.utc).isoformat(),
            }
            for index, entry in context.images.list()
        ]
        return _text(
            f'Image History for session "{session}" ({len(history_info)} images):\n\n'
            'Use "last" to reference the most recent image, or "history:N" (e.g., "history:0") to reference by index.\n\n'
            + json.dumps(history_info, indent=2)
        )

    async def clear_conversation(self, arguments: dict) -> list[TextContent]:
        session = _require(arguments, "conversation_id")
        self.registry.clear(session)
        return _text(f"Conversation history cleared for ID: {session}")

    async def set_aspect_ratio(self, arguments: dict) -> list[TextContent]:
        aspect_ratio = arguments.get("aspect_ratio")
        session = arguments.get("conversation_id") or DEFAULT_SESSION
        self.registry.set_aspect_ratio(session, aspect_ratio)
        return _text(
            f"Aspect ratio set to {aspect_ratio} for session: {session}\n"
            "This will apply to both image generation and editing."
        )
