"""
Environment-driven configuration and logging setup.
"""
import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from .errors import ConfigError
from .storage import DEFAULT_OUTPUT_DIR

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.5-flash-image"
DEFAULT_VERTEX_LOCATION = "us-central1"

API_MODES = ("ai_studio", "vertex")

_TRUTHY = {"1", "true", "yes", "on"}


def load_dotenv(env_path: Path | str | None = None):
    """Load environment variables from a .env file.

    Variables already present in the environment are left alone.

    Args:
        env_path: Path to .env file. If None, looks in current directory.
    """
    if env_path is None:
        env_path = Path.cwd() / ".env"
    else:
        env_path = Path(env_path)

    if env_path.exists():
        with open(env_path, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if line and not line.startswith("#") and "=" in line:
                    key, _, value = line.partition("=")
                    key = key.strip()
                    value = value.strip().strip('"').strip("'")
                    if key and key not in os.environ:
                        os.environ[key] = value


@dataclass(frozen=True)
class ApiConfig:
    mode: str
    model_id: str = DEFAULT_MODEL
    api_key: str | None = None
    project_id: str | None = None
    location: str = DEFAULT_VERTEX_LOCATION
    credentials: str | None = None


@dataclass(frozen=True)
class Settings:
    api: ApiConfig
    output_dir: Path = DEFAULT_OUTPUT_DIR
    no_ssl_verify: bool = False
    log_level: str = "INFO"


def mask_api_key(api_key: str) -> str:
    if len(api_key) > 12:
        return f"{api_key[:8]}...{api_key[-4:]}"
    return "****"


def load_api_config(environ: Mapping[str, str] | None = None) -> ApiConfig:
    """Build the API configuration selected by API_MODE.

    Raises:
        ConfigError: if the selected mode is missing its key or project.
    """
    env = os.environ if environ is None else environ

    mode = env.get("API_MODE") or "ai_studio"
    if mode not in API_MODES:
        logger.warning("Unknown API_MODE %r, falling back to ai_studio", mode)
        mode = "ai_studio"

    if mode == "vertex":
        project_id = env.get("VERTEX_PROJECT_ID")
        if not project_id:
            raise ConfigError("VERTEX_PROJECT_ID is required for Vertex AI mode")
        return ApiConfig(
            mode="vertex",
            model_id=env.get("VERTEX_MODEL_ID") or DEFAULT_MODEL,
            project_id=project_id,
            location=env.get("VERTEX_LOCATION") or DEFAULT_VERTEX_LOCATION,
            credentials=env.get("GOOGLE_APPLICATION_CREDENTIALS"),
        )

    api_key = env.get("GOOGLE_AI_API_KEY") or env.get("GEMINI_API_KEY")
    if not api_key:
        raise ConfigError("GOOGLE_AI_API_KEY (or GEMINI_API_KEY) is required for AI Studio mode")
    return ApiConfig(
        mode="ai_studio",
        model_id=env.get("AI_STUDIO_MODEL_ID") or DEFAULT_MODEL,
        api_key=api_key,
    )


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    env = os.environ if environ is None else environ
    output_dir = env.get("NANOBANANA_OUTPUT_DIR")
    return Settings(
        api=load_api_config(env),
        output_dir=Path(output_dir).expanduser() if output_dir else DEFAULT_OUTPUT_DIR,
        no_ssl_verify=env.get("NANOBANANA_NO_SSL_VERIFY", "").strip().lower() in _TRUTHY,
        log_level=(env.get("NANOBANANA_LOG_LEVEL") or "INFO").upper(),
    )


def configure_logging(level: str = "INFO") -> None:
    """Send log records to stderr; stdout carries the MCP stdio stream."""
    logging.basicConfig(
        stream=sys.stderr,
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )


def describe(settings: Settings) -> str:
    api = settings.api
    if api.mode == "vertex":
        credentials = api.credentials or "application default"
        return (
            f"vertex mode (Project: {api.project_id}, Location: {api.location}, "
            f"Model: {api.model_id}, Credentials: {credentials})"
        )
    return f"ai_studio mode (API Key: {mask_api_key(api.api_key or '')}, Model: {api.model_id})"
