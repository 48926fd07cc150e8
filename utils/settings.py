"""Environment-driven configuration for the realtime relay."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_REALTIME_MODEL = "gpt-4o-realtime-preview-2024-10-01"
DEFAULT_REALTIME_URL = "wss://api.openai.com/v1/realtime"


def _parse_float(name: str, default: float) -> float:
    """Return environment variable as float when possible, falling back to default."""
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return float(value)
    except ValueError:
        logger.warning("Ignoring invalid float for %s: %s", name, value)
        return default


def _parse_str(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value.strip()


@dataclass
class RelaySettings:
    """Runtime settings for the relay, the fallback responder, and the materials store.

    Attributes:
        openai_api_key: Credential for every OpenAI call. When empty the relay
            runs every session in fallback mode and the fallback responder
            serves canned replies only.
        realtime_model: Model id appended to the realtime websocket URL.
        realtime_url: Base websocket URL of the realtime endpoint.
        voice: Voice selected in the upstream session configuration.
        chat_model: Model used by the single-turn fallback completion.
        transcribe_model: Model used to transcribe audio in fallback mode.
        transcribe_language: Language hint passed to transcription.
        upstream_connect_timeout: Seconds allowed to open the upstream socket.
        upstream_ready_timeout: Seconds allowed for the upstream to acknowledge
            the session configuration.
        external_call_timeout: Seconds allowed for transcription, completion and
            credential minting calls.
        database_dir: Directory holding the materials SQLite file.
        log_level: Root logging level name.
    """

    openai_api_key: Optional[str] = None
    realtime_model: str = DEFAULT_REALTIME_MODEL
    realtime_url: str = DEFAULT_REALTIME_URL
    voice: str = "echo"
    chat_model: str = "gpt-4o"
    transcribe_model: str = "whisper-1"
    transcribe_language: str = "ja"
    upstream_connect_timeout: float = 10.0
    upstream_ready_timeout: float = 10.0
    external_call_timeout: float = 30.0
    database_dir: Path = Path("database")
    log_level: str = "INFO"

    @property
    def upstream_enabled(self) -> bool:
        return bool(self.openai_api_key)

    @property
    def realtime_endpoint(self) -> str:
        return f"{self.realtime_url}?model={self.realtime_model}"

    @classmethod
    def from_env(cls) -> "RelaySettings":
        """Load `.env` (if present) and build settings from the environment."""
        load_dotenv()
        api_key = (os.getenv("OPENAI_API_KEY") or "").strip() or None
        return cls(
            openai_api_key=api_key,
            realtime_model=_parse_str("OPENAI_REALTIME_MODEL", DEFAULT_REALTIME_MODEL),
            realtime_url=_parse_str("OPENAI_REALTIME_URL", DEFAULT_REALTIME_URL),
            voice=_parse_str("REALTIME_VOICE", "echo"),
            chat_model=_parse_str("FALLBACK_CHAT_MODEL", "gpt-4o"),
            transcribe_model=_parse_str("TRANSCRIBE_MODEL", "whisper-1"),
            transcribe_language=_parse_str("TRANSCRIBE_LANGUAGE", "ja"),
            upstream_connect_timeout=_parse_float("UPSTREAM_CONNECT_TIMEOUT", 10.0),
            upstream_ready_timeout=_parse_float("UPSTREAM_READY_TIMEOUT", 10.0),
            external_call_timeout=_parse_float("EXTERNAL_CALL_TIMEOUT", 30.0),
            database_dir=Path(_parse_str("DATABASE_DIR", "database")).expanduser(),
            log_level=_parse_str("LOG_LEVEL", "INFO").upper(),
        )
