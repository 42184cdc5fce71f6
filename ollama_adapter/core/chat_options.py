from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from ollama_adapter.core.messages import StreamTextResult
from ollama_adapter.services.errors import RequestAbortedError

ResultCallback = Callable[[StreamTextResult], "Awaitable[None] | None"]

T = TypeVar("T")


class AbortSignal:
    """Cancellation flag shared between a caller and a chat call.

    Awaits run through :meth:`guard` are cancelled as soon as :meth:`abort` is
    called, so a read stalled on a silent server fails immediately.
    """

    def __init__(self) -> None:
        self._reason: str | None = None
        self._event = asyncio.Event()

    @property
    def aborted(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    def abort(self, reason: str = "aborted by caller") -> None:
        self._reason = reason
        self._event.set()

    def raise_if_aborted(self) -> None:
        if self._event.is_set():
            raise RequestAbortedError(self._reason or "aborted by caller")

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` unless the signal fires first."""
        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
            if not task.done():
                task.cancel()
                await asyncio.gather(task, return_exceptions=True)

        if self.aborted and not task.cancelled():
            # consume the outcome, the abort takes precedence
            task.exception()
        self.raise_if_aborted()
        return task.result()


@dataclass(frozen=True)
class ChatOptions:
    signal: AbortSignal | None = None
    on_result_change: ResultCallback | None = None
    # None keeps the legacy behaviour: stream only when a signal was supplied
    stream: bool | None = None

    def resolve_stream(self) -> bool:
        if self.stream is not None:
            return self.stream
        return self.signal is not None

    def raise_if_aborted(self) -> None:
        if self.signal is not None:
            self.signal.raise_if_aborted()

    async def guard(self, awaitable: Awaitable[T]) -> T:
        if self.signal is None:
            return await awaitable
        return await self.signal.guard(awaitable)
