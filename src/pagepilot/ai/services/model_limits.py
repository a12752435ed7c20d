"""Model context/output limits sourced from a periodically refreshed table."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Mapping

import httpx

LOGGER = logging.getLogger(__name__)

DEFAULT_LIMITS_URL = "https://models.dev/api.json"
DEFAULT_REFRESH_INTERVAL = 7 * 24 * 60 * 60.0


@dataclass(slots=True, frozen=True)
class ModelLimit:
    """Context window and output cap for one model, in tokens."""

    context_window: int
    max_output: int

    def to_dict(self) -> dict[str, int]:
        return {"context": self.context_window, "output": self.max_output}


@dataclass(slots=True, frozen=True)
class ModelLimitMatch:
    """A successful lookup; ``model_id`` is the database key that matched."""

    model_id: str
    limit: ModelLimit


def find_model_limit(models: Mapping[str, ModelLimit], user_model_id: str) -> ModelLimitMatch | None:
    """Resolve a user-supplied model id against a lowercase-keyed table.

    Resolution order: exact match, then a database id that is a prefix of the
    user id (longest wins), then a database id that starts with the user id
    (lexicographically first wins). ``None`` means unknown.
    """

    normalized = (user_model_id or "").strip().lower()
    if not normalized:
        return None

    exact = models.get(normalized)
    if exact is not None:
        return ModelLimitMatch(normalized, exact)

    shorter = [key for key in models if normalized.startswith(key)]
    if shorter:
        key = max(shorter, key=len)
        return ModelLimitMatch(key, models[key])

    longer = sorted(key for key in models if key.startswith(normalized))
    if longer:
        return ModelLimitMatch(longer[0], models[longer[0]])

    return None


def flatten_provider_table(payload: Mapping[str, Any]) -> dict[str, ModelLimit]:
    """Flatten ``{provider: {models: {id: {limit: {context, output}}}}}`` into ``{id: ModelLimit}``."""

    flat: dict[str, ModelLimit] = {}
    for provider in payload.values():
        if not isinstance(provider, Mapping):
            continue
        models = provider.get("models")
        if not isinstance(models, Mapping):
            continue
        for model_id, info in models.items():
            if not isinstance(info, Mapping):
                continue
            limit = info.get("limit")
            if not isinstance(limit, Mapping):
                continue
            context = limit.get("context")
            output = limit.get("output")
            if isinstance(context, int) and isinstance(output, int):
                flat[str(model_id).lower()] = ModelLimit(context, output)
    return flat


class ModelLimitsService:
    """Caches the model-limit table on disk and refreshes it at most once per interval.

    A failed refresh keeps whatever table was previously loaded.
    """

    def __init__(
        self,
        cache_path: Path | str,
        *,
        source_url: str = DEFAULT_LIMITS_URL,
        refresh_interval: float = DEFAULT_REFRESH_INTERVAL,
        http_client: httpx.AsyncClient | None = None,
        request_timeout: float = 30.0,
    ) -> None:
        self.cache_path = Path(cache_path).expanduser()
        self.source_url = source_url
        self.refresh_interval = float(refresh_interval)
        self._http_client = http_client
        self._request_timeout = request_timeout
        self._models: dict[str, ModelLimit] = {}
        self._last_refresh: datetime | None = None
        self._refresh_lock = asyncio.Lock()

    @property
    def models(self) -> Mapping[str, ModelLimit]:
        return dict(self._models)

    @property
    def last_refresh(self) -> datetime | None:
        return self._last_refresh

    def set_models(self, models: Mapping[str, ModelLimit], *, refreshed_at: datetime | None = None) -> None:
        self._models = {key.lower(): value for key, value in models.items()}
        self._last_refresh = refreshed_at

    def find(self, model_id: str) -> ModelLimitMatch | None:
        return find_model_limit(self._models, model_id)

    def context_limit(self, model_id: str) -> int | None:
        match = self.find(model_id)
        return match.limit.context_window if match else None

    def output_limit(self, model_id: str) -> int | None:
        match = self.find(model_id)
        return match.limit.max_output if match else None

    def is_stale(self, *, now: float | None = None) -> bool:
        if self._last_refresh is None:
            return True
        current = time.time() if now is None else now
        return current - self._last_refresh.timestamp() > self.refresh_interval

    def load_cache(self) -> bool:
        """Load the on-disk cache; returns ``False`` when absent or unreadable."""

        if not self.cache_path.exists():
            LOGGER.info("No model limits cache at %s", self.cache_path)
            return False
        try:
            payload = json.loads(self.cache_path.read_text(encoding="utf-8"))
            models = {
                str(key).lower(): ModelLimit(int(value["context"]), int(value["output"]))
                for key, value in payload["models"].items()
            }
            refreshed = datetime.fromisoformat(payload["last_refresh"])
        except (OSError, ValueError, KeyError, TypeError, AttributeError):
            LOGGER.warning("Failed to load model limits cache %s", self.cache_path, exc_info=True)
            return False
        if refreshed.tzinfo is None:
            refreshed = refreshed.replace(tzinfo=UTC)
        self.set_models(models, refreshed_at=refreshed)
        LOGGER.info("Loaded %s model limit(s) from cache", len(models))
        return True

    def save_cache(self) -> None:
        refreshed = self._last_refresh or datetime.now(UTC)
        payload = {
            "models": {key: value.to_dict() for key, value in sorted(self._models.items())},
            "last_refresh": refreshed.isoformat(),
        }
        try:
            self.cache_path.parent.mkdir(parents=True, exist_ok=True)
            self.cache_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError:
            LOGGER.error("Failed to save model limits cache %s", self.cache_path, exc_info=True)

    async def refresh(self) -> bool:
        """Fetch the table from the source; returns ``True`` when it was replaced."""

        if self._refresh_lock.locked():
            LOGGER.debug("Model limits refresh already in progress")
            return False
        async with self._refresh_lock:
            LOGGER.info("Fetching model limits from %s", self.source_url)
            try:
                payload = await self._fetch()
            except (httpx.HTTPError, ValueError) as exc:
                LOGGER.warning("Model limits refresh failed; keeping %s cached model(s): %s", len(self._models), exc)
                return False
            if not isinstance(payload, Mapping):
                LOGGER.warning("Model limits payload is not an object; keeping cache")
                return False
            models = flatten_provider_table(payload)
            if not models:
                LOGGER.warning("Model limits payload had no usable entries; keeping %s cached model(s)", len(self._models))
                return False
            self.set_models(models, refreshed_at=datetime.now(UTC))
            self.save_cache()
            LOGGER.info("Fetched %s model limit(s)", len(models))
            return True

    async def refresh_if_needed(self) -> bool:
        if not self.is_stale():
            return False
        return await self.refresh()

    async def _fetch(self) -> Any:
        if self._http_client is not None:
            response = await self._http_client.get(self.source_url)
            response.raise_for_status()
            return response.json()
        async with httpx.AsyncClient(timeout=self._request_timeout) as client:
            response = await client.get(self.source_url)
            response.raise_for_status()
            return response.json()


__all__ = [
    "DEFAULT_LIMITS_URL",
    "DEFAULT_REFRESH_INTERVAL",
    "ModelLimit",
    "ModelLimitMatch",
    "ModelLimitsService",
    "find_model_limit",
    "flatten_provider_table",
]
