from __future__ import annotations

import asyncio
import logging
import re
from typing import Any

import httpx

from ollama_adapter.core.blob_store import BlobStore
from ollama_adapter.core.chat_options import ChatOptions
from ollama_adapter.core.messages import ImagePart, Message, StreamTextResult, get_message_text, has_image_parts
from ollama_adapter.services.errors import HttpStatusError, ImageTooLargeError
from ollama_adapter.services.openai_compatible import OpenAICompatible
from ollama_adapter.services.stream_decoder import decode_ndjson_line, ollama_event_content
from ollama_adapter.services.vision import model_name_supports_tool_use, model_name_supports_vision
from ollama_adapter.utils.llm import join_host, normalize_openai_api_host_and_path

logger = logging.getLogger(__name__)

_DATA_URI_PREFIX_RE = re.compile(r"^data:image/[^;]+;base64,")
IMAGE_PROCESSING_FAILURE = "failed processing images"


class Ollama(OpenAICompatible):
    """Ollama chat model.

    Text-only conversations go through Ollama's OpenAI-compatible endpoint.
    As soon as one message carries an image the native ``/api/chat`` endpoint
    is used instead, with image blobs inlined as bare base64 strings.
    """

    name = "Ollama"

    def __init__(
        self,
        *,
        ollama_host: str,
        ollama_model: str,
        temperature: float,
        blob_store: BlobStore,
        timeout_seconds: int = 60,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(
            api_key="ollama",
            api_host=normalize_openai_api_host_and_path(ollama_host).api_host,
            model=ollama_model,
            temperature=temperature,
            timeout_seconds=timeout_seconds,
            transport=transport,
        )
        self._ollama_host = ollama_host
        self._ollama_model = ollama_model
        self._blob_store = blob_store

    def is_support_tool_use(self) -> bool:
        return model_name_supports_tool_use(self._ollama_model)

    def is_support_vision(self) -> bool:
        return model_name_supports_vision(self._ollama_model)

    async def chat(self, messages: list[Message], options: ChatOptions | None = None) -> StreamTextResult:
        if not has_image_parts(messages):
            return await super().chat(messages, options)

        options = options or ChatOptions()
        mapped = await asyncio.gather(*(self._map_message(m) for m in messages))
        logger.info(
            "ollama_chat_with_images model=%s messages=%d images=%d",
            self._ollama_model,
            len(mapped),
            sum(len(m.get("images", ())) for m in mapped),
        )

        payload = {
            "model": self._ollama_model,
            "stream": options.resolve_stream(),
            "messages": mapped,
        }
        return await self._send_chat(
            url=join_host(self._ollama_host, "/api/chat"),
            payload=payload,
            headers=None,
            options=options,
            decode_line=decode_ndjson_line,
            extract_content=ollama_event_content,
            extract_buffered=ollama_event_content,
        )

    def _raise_for_status(self, status_code: int, body: str) -> None:
        if IMAGE_PROCESSING_FAILURE in body:
            raise ImageTooLargeError(self._ollama_model)
        raise HttpStatusError(status_code, body)

    async def _map_message(self, message: Message) -> dict[str, Any]:
        mapped: dict[str, Any] = {"role": message.role, "content": get_message_text(message)}
        if message.role != "user":
            return mapped

        keys = [part.storage_key for part in message.content_parts if isinstance(part, ImagePart)]
        resolved = await asyncio.gather(*(self._resolve_image(key) for key in keys))
        images = [data for data in resolved if data]
        if images:
            mapped["images"] = images
        return mapped

    async def _resolve_image(self, storage_key: str) -> str | None:
        blob = await self._blob_store.get_blob(storage_key)
        if blob is None:
            logger.warning("ollama_image_blob_missing storage_key=%s", storage_key)
            return None
        return _DATA_URI_PREFIX_RE.sub("", blob, count=1)
