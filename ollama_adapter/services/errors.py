from __future__ import annotations


class OllamaError(Exception):
    pass


class HttpStatusError(OllamaError):
    def __init__(self, status_code: int, body: str) -> None:
        super().__init__(f"Status Code {status_code}, {body}")
        self.status_code = status_code
        self.body = body


class ImageTooLargeError(OllamaError):
    def __init__(self, model: str) -> None:
        super().__init__(
            f"Image too large for {model}'s context window. "
            "Try a smaller image or a model with a bigger num_ctx."
        )
        self.model = model


class StreamDecodeError(OllamaError):
    pass


class RequestAbortedError(OllamaError):
    pass
