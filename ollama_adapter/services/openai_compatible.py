from __future__ import annotations

import inspect
import logging
from collections.abc import AsyncIterator, Callable
from time import monotonic
from typing import Any

import httpx

from ollama_adapter.core.chat_options import ChatOptions
from ollama_adapter.core.messages import Message, StreamTextResult, get_message_text
from ollama_adapter.services.errors import HttpStatusError
from ollama_adapter.services.stream_decoder import LineBuffer, decode_sse_line, openai_event_content
from ollama_adapter.utils.llm import join_host, normalize_openai_api_host_and_path

logger = logging.getLogger(__name__)

LineDecoder = Callable[[str], "dict[str, Any] | None"]
ContentExtractor = Callable[[dict[str, Any]], str]


async def _next_chunk(chunks: AsyncIterator[bytes]) -> bytes | None:
    try:
        return await chunks.__anext__()
    except StopAsyncIteration:
        return None


class OpenAICompatible:
    """Text-only chat against any ``/v1/chat/completions`` style endpoint."""

    name = "OpenAI Compatible"

    def __init__(
        self,
        *,
        api_key: str,
        api_host: str,
        model: str,
        temperature: float,
        api_path: str | None = None,
        timeout_seconds: int = 60,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        normalized = normalize_openai_api_host_and_path(api_host, api_path)
        self._api_key = api_key
        self._api_host = normalized.api_host
        self._api_path = normalized.api_path
        self._model = model
        self._temperature = temperature
        self._timeout = timeout_seconds
        self._transport = transport

    @property
    def api_host(self) -> str:
        return self._api_host

    def _request_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._api_key}"}

    def _http_client(self, headers: dict[str, str] | None = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout, headers=headers, transport=self._transport)

    async def chat(self, messages: list[Message], options: ChatOptions | None = None) -> StreamTextResult:
        options = options or ChatOptions()
        stream = options.resolve_stream()
        payload = {
            "model": self._model,
            "messages": [{"role": m.role, "content": get_message_text(m)} for m in messages],
            "temperature": self._temperature,
            "stream": stream,
        }
        return await self._send_chat(
            url=join_host(self._api_host, self._api_path),
            payload=payload,
            headers=self._request_headers(),
            options=options,
            decode_line=decode_sse_line,
            extract_content=openai_event_content,
            extract_buffered=self._buffered_text,
        )

    @staticmethod
    def _buffered_text(data: dict[str, Any]) -> str:
        choices = data.get("choices") or [{}]
        message = choices[0].get("message") or {}
        return str(message.get("content") or "")

    def _raise_for_status(self, status_code: int, body: str) -> None:
        raise HttpStatusError(status_code, body)

    async def _send_chat(
        self,
        *,
        url: str,
        payload: dict[str, Any],
        headers: dict[str, str] | None,
        options: ChatOptions,
        decode_line: LineDecoder,
        extract_content: ContentExtractor,
        extract_buffered: ContentExtractor,
    ) -> StreamTextResult:
        started_at = monotonic()
        options.raise_if_aborted()

        async with self._http_client(headers) as client:
            request = client.build_request("POST", url, json=payload)
            response = await options.guard(client.send(request, stream=True))
            try:
                if response.is_error:
                    body = await self._read_error_body(response)
                    logger.warning(
                        "chat_http_error provider=%s model=%s status=%d body=%r",
                        self.name,
                        self._model,
                        response.status_code,
                        body[:300],
                    )
                    self._raise_for_status(response.status_code, body)

                if payload.get("stream"):
                    result = await self._consume_stream(response, options, decode_line, extract_content)
                else:
                    await options.guard(response.aread())
                    data = response.json()
                    # valid JSON that is not an object carries no content, same as a stream line
                    result = StreamTextResult.from_text(extract_buffered(data) if isinstance(data, dict) else "")
            finally:
                await response.aclose()

        elapsed_ms = int((monotonic() - started_at) * 1000)
        logger.info(
            "chat_ok provider=%s model=%s stream=%s response_chars=%d elapsed_ms=%d",
            self.name,
            self._model,
            payload.get("stream"),
            len(result.text),
            elapsed_ms,
        )
        return result

    @staticmethod
    async def _read_error_body(response: httpx.Response) -> str:
        try:
            await response.aread()
        except httpx.HTTPError as error:
            logger.debug("chat_error_body_unreadable error=%s", error)
            return ""
        return response.text

    async def _consume_stream(
        self,
        response: httpx.Response,
        options: ChatOptions,
        decode_line: LineDecoder,
        extract_content: ContentExtractor,
    ) -> StreamTextResult:
        lines = LineBuffer()
        fragments: list[str] = []
        finished = False
        events = 0

        async def handle(line: str) -> None:
            nonlocal finished, events
            if finished:
                return
            event = decode_line(line)
            if event is None:
                return
            events += 1
            if event.get("done"):
                finished = True
                return
            content = extract_content(event)
            if content:
                fragments.append(content)
                await self._notify(options, StreamTextResult.from_text("".join(fragments)))

        chunks = response.aiter_bytes()
        while True:
            chunk = await options.guard(_next_chunk(chunks))
            if chunk is None:
                break
            for line in lines.feed(chunk):
                await handle(line)

        for line in lines.flush():
            await handle(line)

        logger.debug("chat_stream_closed provider=%s events=%d done_seen=%s", self.name, events, finished)
        return StreamTextResult.from_text("".join(fragments))

    @staticmethod
    async def _notify(options: ChatOptions, result: StreamTextResult) -> None:
        if options.on_result_change is None:
            return
        outcome = options.on_result_change(result)
        if inspect.isawaitable(outcome):
            await outcome
