"""Runtime settings, connection profiles and environment overrides."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Callable, Dict, Mapping

from ..utils import logging as logging_utils

__all__ = [
    "Settings",
    "Profile",
    "ProfilePreset",
    "PROFILE_PRESETS",
    "PROFILE_COLORS",
    "redact_secret",
]

LOGGER = logging.getLogger(__name__)

_TRUE_VALUES = frozenset({"1", "true", "yes", "on", "debug"})


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in _TRUE_VALUES


# Environment variable -> (Settings field, parser). Values that fail to parse are ignored.
_ENV_FIELDS: Mapping[str, tuple[str, Callable[[str], Any]]] = {
    "PAGEPILOT_API_KEY": ("api_key", str),
    "PAGEPILOT_BASE_URL": ("base_url", str),
    "PAGEPILOT_MODEL": ("model", str),
    "PAGEPILOT_EVENTS_LOG": ("events_log_path", str),
    "PAGEPILOT_MODEL_CACHE": ("model_cache_path", str),
    "PAGEPILOT_CHANNEL_HOST": ("channel_host", str),
    "PAGEPILOT_ENABLE_TOOLS": ("enable_tools", _parse_bool),
    "PAGEPILOT_DEBUG_LOGGING": ("debug_logging", _parse_bool),
    "PAGEPILOT_TOOL_TIMEOUT": ("tool_timeout", float),
    "PAGEPILOT_REQUEST_TIMEOUT": ("request_timeout", float),
    "PAGEPILOT_MAX_TOOL_ITERATIONS": ("max_tool_iterations", int),
    "PAGEPILOT_MAX_RETRIES": ("max_retries", int),
    "PAGEPILOT_CHANNEL_PORT": ("channel_port", int),
    "PAGEPILOT_EVENT_BUFFER_SIZE": ("event_buffer_size", int),
    "PAGEPILOT_EVENT_STARTUP_TAIL": ("event_startup_tail", int),
}

PROFILE_COLORS: tuple[str, ...] = ("red", "green", "blue", "orange", "purple", "pink", "yellow", "gray")


@dataclass(slots=True, frozen=True)
class Profile:
    """Connection profile for one OpenAI-compatible endpoint.

    Owned by the settings UI; the conversation engine treats it as an
    immutable value for the duration of one exchange.
    """

    name: str
    base_url: str
    model: str
    has_key: bool = True
    max_tokens: int = 4096
    context_limit: int = 16_384
    color: str = "red"

    @property
    def display_color(self) -> str:
        color = (self.color or "").lower()
        return color if color in PROFILE_COLORS else "gray"


@dataclass(slots=True, frozen=True)
class ProfilePreset:
    name: str
    base_url: str


PROFILE_PRESETS: tuple[ProfilePreset, ...] = (
    ProfilePreset("OpenAI", "https://api.openai.com/v1"),
    ProfilePreset("Groq", "https://api.groq.com/openai/v1"),
    ProfilePreset("Together", "https://api.together.xyz/v1"),
    ProfilePreset("OpenRouter", "https://openrouter.ai/api/v1"),
    ProfilePreset("Local (LM Studio)", "http://localhost:1234/v1"),
    ProfilePreset("Local (Ollama)", "http://localhost:11434/v1"),
    ProfilePreset("Custom", ""),
)


@dataclass(slots=True)
class Settings:
    """Process-wide settings resolved at startup."""

    base_url: str = "https://api.openai.com/v1"
    api_key: str = ""
    model: str = "gpt-4o-mini"
    enable_tools: bool = True
    tool_timeout: float = 10.0
    max_tool_iterations: int = 5
    request_timeout: float = 90.0
    max_retries: int = 1
    retry_min_seconds: float = 0.5
    retry_max_seconds: float = 6.0
    temperature: float = 0.7
    event_buffer_size: int = 500
    event_startup_tail: int = 100
    model_refresh_days: float = 7.0
    events_log_path: str | None = None
    model_cache_path: str | None = None
    channel_host: str = "127.0.0.1"
    channel_port: int = 8765
    debug_logging: bool = False

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None, **defaults: Any) -> "Settings":
        """Build settings from keyword defaults plus ``PAGEPILOT_*`` overrides."""

        env = os.environ if environ is None else environ
        overrides: Dict[str, Any] = {}
        for env_name, (field_name, parse) in _ENV_FIELDS.items():
            raw = env.get(env_name)
            if raw is None:
                continue
            try:
                overrides[field_name] = parse(raw)
            except ValueError:
                LOGGER.warning("Ignoring %s=%r: expected %s", env_name, raw, getattr(parse, "__name__", "a value"))
        if overrides:
            LOGGER.debug("Applied environment overrides: %s", sorted(overrides))
        return replace(cls(**defaults), **overrides)

    @property
    def effective_tool_timeout(self) -> float:
        return self.tool_timeout if self.tool_timeout > 0 else 10.0

    def resolve_events_log_path(self) -> Path:
        if self.events_log_path:
            return Path(self.events_log_path).expanduser()
        return logging_utils.default_data_dir() / "browser_events.jsonl"

    def resolve_model_cache_path(self) -> Path:
        if self.model_cache_path:
            return Path(self.model_cache_path).expanduser()
        return self.resolve_events_log_path().parent / "models.json"

    def default_profile(self) -> Profile:
        return Profile(
            name="Default",
            base_url=self.base_url,
            model=self.model,
            has_key=bool(self.api_key),
        )

    def redacted(self) -> dict[str, Any]:
        payload = {item.name: getattr(self, item.name) for item in fields(self)}
        payload["api_key"] = redact_secret(self.api_key)
        return payload


def redact_secret(value: str) -> str:
    stripped = (value or "").strip()
    if not stripped:
        return ""
    if len(stripped) <= 4:
        return "*" * len(stripped)
    return f"{stripped[:2]}{'*' * (len(stripped) - 4)}{stripped[-2:]}"
