import dataclasses

import pytest

from ollama_adapter.core.capability_cache import CapabilityCache
from ollama_adapter.core.chat_options import AbortSignal, ChatOptions
from ollama_adapter.core.messages import (
    ImagePart,
    Message,
    StreamTextResult,
    TextPart,
    get_message_text,
    has_image_parts,
)
from ollama_adapter.services.errors import RequestAbortedError


def test_get_message_text_joins_text_parts() -> None:
    message = Message(
        role="user",
        content_parts=(TextPart(text="a"), ImagePart(storage_key="k"), TextPart(text=""), TextPart(text="b")),
    )

    assert get_message_text(message) == "a\nb"


def test_has_image_parts() -> None:
    assert has_image_parts([Message.text("user", "hi")]) is False
    assert has_image_parts([Message.text("user", "hi"), Message(role="user", content_parts=(ImagePart("k"),))]) is True


def test_stream_text_result_is_immutable() -> None:
    result = StreamTextResult.from_text("hello")

    with pytest.raises(dataclasses.FrozenInstanceError):
        result.content_parts[0].text = "changed"  # type: ignore[misc]
    assert result.text == "hello"


def test_chat_options_stream_resolution() -> None:
    assert ChatOptions().resolve_stream() is False
    assert ChatOptions(signal=AbortSignal()).resolve_stream() is True
    assert ChatOptions(stream=True).resolve_stream() is True
    assert ChatOptions(signal=AbortSignal(), stream=False).resolve_stream() is False


def test_abort_signal() -> None:
    signal = AbortSignal()
    signal.raise_if_aborted()

    signal.abort("stop")

    assert signal.aborted is True
    with pytest.raises(RequestAbortedError, match="stop"):
        ChatOptions(signal=signal).raise_if_aborted()


def test_capability_cache() -> None:
    cache = CapabilityCache()
    key = CapabilityCache.make_key("http://h", "m")

    assert key == "http://h|m"
    assert cache.get(key) is None
    cache.set(key, False)
    assert key in cache
    assert cache.get(key) is False
    assert len(cache) == 1
    cache.clear()
    assert len(cache) == 0
