"""
MCP Server exposing Gemini chat, image generation and image editing.
"""
import asyncio
import logging

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import Tool, TextContent

from .config import Settings, configure_logging, describe, load_dotenv, load_settings
from .core import create_client
from .errors import ConfigError, NanoBananaError
from .sessions import ConversationRegistry
from .tools import TOOLS, NanoBananaTools

logger = logging.getLogger(__name__)

server = Server("nanobanana-mcp")

# Session state lives for the lifetime of the process
registry = ConversationRegistry()
_tools: NanoBananaTools | None = None


def _get_tools(settings: Settings | None = None) -> NanoBananaTools:
    """Build the Gemini client and tool handlers on first use."""
    global _tools
    if _tools is None:
        settings = settings or load_settings()
        _tools = NanoBananaTools(
            registry,
            create_client(settings.api, no_ssl_verify=settings.no_ssl_verify),
            output_dir=settings.output_dir,
        )
    return _tools


@server.list_tools()
async def list_tools() -> list[Tool]:
    """List available tools."""
    return TOOLS


@server.call_tool()
async def call_tool(name: str, arguments: dict) -> list[TextContent]:
    """Handle tool calls. Failures propagate so the MCP result carries isError."""
    logger.info("Tool call: %s", name)
    try:
        return await _get_tools().call(name, arguments)
    except NanoBananaError as e:
        logger.warning("%s failed: %s", name, e)
        raise
    except Exception:
        logger.exception("%s failed unexpectedly", name)
        raise


async def run_server():
    """Run the MCP server."""
    async with stdio_server() as (read_stream, write_stream):
        await server.run(
            read_stream,
            write_stream,
            server.create_initialization_options()
        )


def main():
    """Entry point for the MCP server."""
    load_dotenv()
    try:
        settings = load_settings()
    except ConfigError as e:
        configure_logging()
        logger.error("Error: %s", e)
        raise SystemExit(1)

    configure_logging(settings.log_level)
    logger.info("Initialized in %s", describe(settings))
    _get_tools(settings)
    logger.info("Gemini MCP server running on stdio")
    asyncio.run(run_server())


if __name__ == "__main__":
    main()
