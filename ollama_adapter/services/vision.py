"""Vision capability detection for Ollama models.

``/api/show`` has reported vision support differently across server releases:

- 0.6.4+ lists ``"vision"`` in a top-level ``capabilities`` array;
- 0.6.0 - 0.6.3 only expose ``details.projector.architecture == "clip"``;
- older builds put ``"clip"`` (or a vision family name) in ``details.families``,
  which later turned from an array into a plain string.

Each of these is one predicate below. They run in a fixed order and the first
match wins; when the server says nothing useful the model name is the last
resort.
"""
from __future__ import annotations

import enum
import logging
from collections.abc import Callable
from dataclasses import dataclass
from time import monotonic
from typing import Any

import httpx

from ollama_adapter.core.capability_cache import CapabilityCache, default_capability_cache
from ollama_adapter.utils.llm import join_host

logger = logging.getLogger(__name__)

FAMILY_VISION_MARKERS = ("vl", "vision", "qwen25vl", "llava")
NAME_VISION_MARKERS = ("vl", "vision", "llava", "qwen2.5vl")

_VISION_MODEL_PREFIXES = (
    "gemma3",
    "llava",
    "llama3.2-vision",
    "llava-llama3",
    "moondream",
    "bakllava",
    "llava-phi3",
    "granite3.2-vision",
)
_TOOL_USE_MODEL_PREFIXES = (
    "qwq",
    "llama3.3",
    "llama3.2",
    "llama3.1",
    "mistral",
    "qwen2.5",
    "qwen2.5-coder",
    "qwen2",
    "mistral-nemo",
    "mixtral",
    "smollm2",
    "mistral-small",
    "command-r",
    "hermes3",
    "mistral-large",
)


def model_name_supports_vision(model: str) -> bool:
    return model.startswith(_VISION_MODEL_PREFIXES)


def model_name_supports_tool_use(model: str) -> bool:
    return model.startswith(_TOOL_USE_MODEL_PREFIXES)


class Verdict(enum.Enum):
    MATCH = "match"
    NO_MATCH = "no_match"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ShowResponse:
    """The parts of an ``/api/show`` payload that matter for vision detection."""

    model: str
    capabilities: tuple[str, ...] | None = None
    projector_architecture: str | None = None
    families: tuple[str, ...] | None = None

    @classmethod
    def from_payload(cls, model: str, payload: dict[str, Any]) -> ShowResponse:
        capabilities = payload.get("capabilities")
        details = payload.get("details")
        if not isinstance(details, dict):
            details = {}

        projector = details.get("projector")
        architecture = projector.get("architecture") if isinstance(projector, dict) else None

        families = details.get("families")
        if isinstance(families, str):
            normalized_families: tuple[str, ...] | None = (families,)
        elif isinstance(families, list):
            normalized_families = tuple(str(item) for item in families)
        else:
            normalized_families = None

        return cls(
            model=model,
            capabilities=tuple(str(item) for item in capabilities) if isinstance(capabilities, list) else None,
            projector_architecture=architecture if isinstance(architecture, str) else None,
            families=normalized_families,
        )


def check_capabilities(info: ShowResponse) -> Verdict:
    if info.capabilities is None:
        return Verdict.UNKNOWN
    normalized = {item.strip().lower() for item in info.capabilities}
    return Verdict.MATCH if "vision" in normalized else Verdict.NO_MATCH


def check_projector(info: ShowResponse) -> Verdict:
    if info.projector_architecture is None:
        return Verdict.UNKNOWN
    return Verdict.MATCH if info.projector_architecture == "clip" else Verdict.NO_MATCH


def check_families(info: ShowResponse) -> Verdict:
    if info.families is None:
        return Verdict.UNKNOWN
    for family in info.families:
        lowered = family.lower()
        if lowered == "clip" or any(marker in lowered for marker in FAMILY_VISION_MARKERS):
            return Verdict.MATCH
    return Verdict.NO_MATCH


def check_model_name(info: ShowResponse) -> Verdict:
    lowered = info.model.lower()
    if any(marker in lowered for marker in NAME_VISION_MARKERS):
        return Verdict.MATCH
    return Verdict.NO_MATCH


VISION_PREDICATES: tuple[tuple[str, Callable[[ShowResponse], Verdict]], ...] = (
    ("capabilities", check_capabilities),
    ("projector", check_projector),
    ("families", check_families),
    ("model_name", check_model_name),
)


def resolve_vision(info: ShowResponse) -> tuple[bool, str | None]:
    """Return the verdict and the name of the predicate that matched, if any."""
    for name, predicate in VISION_PREDICATES:
        if predicate(info) is Verdict.MATCH:
            return True, name
    return False, None


class VisionDetector:
    def __init__(
        self,
        *,
        cache: CapabilityCache | None = None,
        timeout_seconds: int = 60,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._cache = cache if cache is not None else default_capability_cache
        self._timeout = timeout_seconds
        self._transport = transport

    async def supports_vision(self, host: str, model: str) -> bool:
        key = CapabilityCache.make_key(host, model)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        started_at = monotonic()
        try:
            payload = await self._fetch_show(host, model)
        except Exception as error:
            logger.warning("ollama_show_capabilities_failed model=%s host=%s error=%s", model, host, error)
            self._cache.set(key, False)
            return False

        if not isinstance(payload, dict):
            logger.info("ollama_show_capabilities_empty model=%s host=%s", model, host)
            self._cache.set(key, False)
            return False

        supported, matched_by = resolve_vision(ShowResponse.from_payload(model, payload))
        self._cache.set(key, supported)
        logger.info(
            "ollama_show_capabilities_ok model=%s vision=%s matched_by=%s elapsed_ms=%d",
            model,
            supported,
            matched_by or "none",
            int((monotonic() - started_at) * 1000),
        )
        return supported

    async def _fetch_show(self, host: str, model: str) -> Any:
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            response = await client.post(join_host(host, "/api/show"), json={"name": model})
        response.raise_for_status()
        return response.json()


_default_detector = VisionDetector()


async def supports_vision(host: str, model: str) -> bool:
    return await _default_detector.supports_vision(host, model)
