"""Incremental decoding of newline-delimited chat streams.

Ollama's native ``/api/chat`` emits one JSON object per line, the
OpenAI-compatible endpoint emits server-sent events (``data: {...}``). Both
arrive as arbitrary byte chunks, so a line (or a multi-byte character) may be
split across two reads. :class:`LineBuffer` reassembles complete lines and
keeps the trailing partial line for the next chunk.
"""
from __future__ import annotations

import codecs
import json
from typing import Any

from ollama_adapter.services.errors import StreamDecodeError

SSE_DATA_PREFIX = "data:"
SSE_DONE_SENTINEL = "[DONE]"


class LineBuffer:
    def __init__(self, encoding: str = "utf-8") -> None:
        self._decoder = codecs.getincrementaldecoder(encoding)()
        self._buffer = ""

    @property
    def pending(self) -> str:
        return self._buffer

    def feed(self, chunk: bytes) -> list[str]:
        """Return the complete, non-blank lines made available by ``chunk``."""
        self._buffer += self._decoder.decode(chunk)
        lines: list[str] = []
        while True:
            idx = self._buffer.find("\n")
            if idx == -1:
                break
            line = self._buffer[:idx].strip()
            self._buffer = self._buffer[idx + 1 :]
            if line:
                lines.append(line)
        return lines

    def flush(self) -> list[str]:
        """Return whatever is left once the stream has ended."""
        self._buffer += self._decoder.decode(b"", final=True)
        remainder = self._buffer.strip()
        self._buffer = ""
        return [remainder] if remainder else []


def decode_ndjson_line(line: str) -> dict[str, Any]:
    try:
        event = json.loads(line)
    except json.JSONDecodeError as error:
        raise StreamDecodeError(f"Malformed stream line: {line[:200]!r}") from error
    if not isinstance(event, dict):
        return {}
    return event


def decode_sse_line(line: str) -> dict[str, Any] | None:
    """Decode one SSE line; comments and non-data fields yield ``None``."""
    if not line.startswith(SSE_DATA_PREFIX):
        return None
    data = line[len(SSE_DATA_PREFIX) :].strip()
    if data == SSE_DONE_SENTINEL:
        return {"done": True}
    return decode_ndjson_line(data)


def ollama_event_content(event: dict[str, Any]) -> str:
    message = event.get("message")
    if not isinstance(message, dict):
        return ""
    content = message.get("content")
    return content if isinstance(content, str) else ""


def openai_event_content(event: dict[str, Any]) -> str:
    choices = event.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return ""
    delta = choices[0].get("delta")
    if not isinstance(delta, dict):
        return ""
    content = delta.get("content")
    return content if isinstance(content, str) else ""
