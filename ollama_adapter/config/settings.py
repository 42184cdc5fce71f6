from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_OLLAMA_HOST = "http://localhost:11434"


@dataclass(frozen=True)
class Settings:
    ollama_host: str
    ollama_model: str
    temperature: float
    request_timeout_seconds: int
    blob_db_path: str
    log_level: str


def _require_env(name: str) -> str:
    value = os.getenv(name, "").strip()
    if not value:
        raise ValueError(f"Missing required environment variable: {name}")
    return value


def _parse_temperature(raw: str) -> float:
    try:
        temperature = float(raw)
    except ValueError as error:
        raise ValueError("OLLAMA_TEMPERATURE must be a number") from error

    if not 0.0 <= temperature <= 2.0:
        raise ValueError("OLLAMA_TEMPERATURE must be between 0 and 2")
    return temperature


def load_settings() -> Settings:
    timeout_raw = os.getenv("REQUEST_TIMEOUT_SECONDS", "60").strip()
    try:
        request_timeout_seconds = int(timeout_raw)
    except ValueError as error:
        raise ValueError("REQUEST_TIMEOUT_SECONDS must be an integer") from error

    if request_timeout_seconds < 5:
        raise ValueError("REQUEST_TIMEOUT_SECONDS must be >= 5")

    ollama_host = os.getenv("OLLAMA_HOST", DEFAULT_OLLAMA_HOST).strip().rstrip("/")
    if not ollama_host:
        raise ValueError("OLLAMA_HOST cannot be empty")

    return Settings(
        ollama_host=ollama_host,
        ollama_model=_require_env("OLLAMA_MODEL"),
        temperature=_parse_temperature(os.getenv("OLLAMA_TEMPERATURE", "0.7").strip()),
        request_timeout_seconds=request_timeout_seconds,
        blob_db_path=os.getenv("BLOB_DB_PATH", "./data/blobs.db").strip(),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
