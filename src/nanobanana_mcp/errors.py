"""
Errors raised by the NanoBanana tools and surfaced to MCP callers.
"""


class NanoBananaError(Exception):
    """Base class for failures reported back to the tool caller."""


class InvalidReference(NanoBananaError):
    """An image reference could not be resolved from history or disk."""

    def __init__(self, reference: str, message: str | None = None):
        self.reference = reference
        super().__init__(
            message
            or f"Image file not found: {reference}. Use 'last' or 'history:N' to reference session images."
        )


class InvalidAspectRatio(NanoBananaError):
    """The ratio is not one of the supported aspect ratios."""

    def __init__(self, ratio, valid):
        self.ratio = ratio
        super().__init__(f"Invalid aspect ratio: {ratio}. Valid: {', '.join(valid)}")


class MissingAspectRatio(NanoBananaError):
    """Neither the call nor the session supplies an aspect ratio."""

    def __init__(self, valid):
        super().__init__(
            "Aspect ratio not specified. Either pass aspect_ratio parameter or call set_aspect_ratio first.\n"
            f"Valid ratios: {', '.join(valid)}"
        )


class UpstreamGenerationFailure(NanoBananaError):
    """The Gemini backend returned an error or no image."""


class InvalidArguments(NanoBananaError):
    """A required tool argument is missing or empty."""


class UnknownTool(NanoBananaError):
    """No handler is registered under the requested tool name."""


class ConfigError(NanoBananaError):
    """Environment configuration is missing or invalid."""
