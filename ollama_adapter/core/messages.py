from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Union

Role = Literal["user", "assistant", "system"]


@dataclass(frozen=True)
class TextPart:
    text: str
    type: Literal["text"] = "text"


@dataclass(frozen=True)
class ImagePart:
    storage_key: str
    type: Literal["image"] = "image"


ContentPart = Union[TextPart, ImagePart]


@dataclass(frozen=True)
class Message:
    role: Role
    content_parts: tuple[ContentPart, ...] = field(default_factory=tuple)

    @classmethod
    def text(cls, role: Role, text: str) -> Message:
        return cls(role=role, content_parts=(TextPart(text=text),))


@dataclass(frozen=True)
class StreamTextResult:
    """Result of a chat call.

    Instances handed to ``on_result_change`` are snapshots; later events
    produce new instances rather than mutating earlier ones.
    """

    content_parts: tuple[TextPart, ...]

    @classmethod
    def from_text(cls, text: str) -> StreamTextResult:
        return cls(content_parts=(TextPart(text=text),))

    @property
    def text(self) -> str:
        return "".join(part.text for part in self.content_parts)


def get_message_text(message: Message) -> str:
    return "\n".join(part.text for part in message.content_parts if isinstance(part, TextPart) and part.text)


def has_image_parts(messages: list[Message]) -> bool:
    return any(isinstance(part, ImagePart) for message in messages for part in message.content_parts)
