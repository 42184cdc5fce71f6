from __future__ import annotations

import argparse
import asyncio
import logging
import mimetypes
import sys
import uuid
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

from ollama_adapter.config.settings import Settings, load_settings
from ollama_adapter.core.blob_store import SQLiteBlobStore, to_data_uri
from ollama_adapter.core.capability_cache import CapabilityCache
from ollama_adapter.core.chat_options import ChatOptions
from ollama_adapter.core.messages import ContentPart, ImagePart, Message, StreamTextResult, TextPart
from ollama_adapter.services.errors import OllamaError
from ollama_adapter.services.ollama_client import Ollama
from ollama_adapter.services.vision import VisionDetector
from ollama_adapter.utils.logging import configure_logging

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ollama-adapter", description="Chat with an Ollama model.")
    parser.add_argument("prompt", help="User message to send")
    parser.add_argument("--image", action="append", default=[], type=Path, help="Image file to attach (repeatable)")
    parser.add_argument("--system", default=None, help="Optional system message")
    parser.add_argument("--no-stream", action="store_true", help="Wait for the full reply instead of streaming")
    return parser


class _DeltaPrinter:
    def __init__(self) -> None:
        self._printed = 0

    def __call__(self, result: StreamTextResult) -> None:
        text = result.text
        sys.stdout.write(text[self._printed :])
        sys.stdout.flush()
        self._printed = len(text)


def _store_images(blob_store: SQLiteBlobStore, paths: list[Path]) -> list[ImagePart]:
    parts: list[ImagePart] = []
    for path in paths:
        mime_type = mimetypes.guess_type(path.name)[0] or "image/png"
        storage_key = f"image:{uuid.uuid4().hex}"
        blob_store.set_blob(storage_key, to_data_uri(path.read_bytes(), mime_type))
        parts.append(ImagePart(storage_key=storage_key))
    return parts


async def _run(settings: Settings, args: argparse.Namespace) -> int:
    blob_store = SQLiteBlobStore(settings.blob_db_path)
    detector = VisionDetector(cache=CapabilityCache(), timeout_seconds=settings.request_timeout_seconds)
    model = Ollama(
        ollama_host=settings.ollama_host,
        ollama_model=settings.ollama_model,
        temperature=settings.temperature,
        blob_store=blob_store,
        timeout_seconds=settings.request_timeout_seconds,
    )

    vision = await detector.supports_vision(settings.ollama_host, settings.ollama_model)
    logger.info(
        "startup_model model=%s vision=%s tool_use=%s",
        settings.ollama_model,
        vision,
        model.is_support_tool_use(),
    )

    image_parts: list[ImagePart] = []
    if args.image:
        if vision:
            image_parts = _store_images(blob_store, args.image)
        else:
            logger.warning("images_dropped model=%s count=%d reason=no_vision", settings.ollama_model, len(args.image))

    messages: list[Message] = []
    if args.system:
        messages.append(Message.text("system", args.system))
    user_parts: list[ContentPart] = [TextPart(text=args.prompt), *image_parts]
    messages.append(Message(role="user", content_parts=tuple(user_parts)))

    stream = not args.no_stream
    printer = _DeltaPrinter()
    options = ChatOptions(
        on_result_change=printer,
        stream=stream,
    )

    try:
        result = await model.chat(messages, options)
    except OllamaError as error:
        logger.error("chat_failed model=%s error=%s", settings.ollama_model, error)
        return 1

    if not stream:
        printer(result)
    sys.stdout.write("\n")
    return 0


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    settings = load_settings()
    configure_logging(settings.log_level)

    try:
        app_version = version("ollama-chat-adapter")
    except PackageNotFoundError:
        app_version = "unknown"

    logger.info(
        "startup version=%s host=%s model=%s timeout_s=%d",
        app_version,
        settings.ollama_host,
        settings.ollama_model,
        settings.request_timeout_seconds,
    )
    return asyncio.run(_run(settings, args))


if __name__ == "__main__":
    sys.exit(main())
