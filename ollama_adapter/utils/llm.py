from __future__ import annotations

from dataclasses import dataclass

DEFAULT_CHAT_PATH = "/chat/completions"


@dataclass(frozen=True)
class ApiHostAndPath:
    api_host: str
    api_path: str


def join_host(host: str, path: str) -> str:
    return host.rstrip("/") + path


def normalize_openai_api_host_and_path(api_host: str, api_path: str | None = None) -> ApiHostAndPath:
    """Split a user supplied endpoint into an OpenAI-style host and request path.

    ``localhost:11434`` becomes ``http://localhost:11434/v1`` with the default
    ``/chat/completions`` path. A host that already carries the full path is
    split back into its two halves.
    """
    host = api_host.strip().rstrip("/")
    path = (api_path or "").strip() or DEFAULT_CHAT_PATH
    if not path.startswith("/"):
        path = "/" + path

    if host.endswith(DEFAULT_CHAT_PATH):
        host = host[: -len(DEFAULT_CHAT_PATH)]
        path = DEFAULT_CHAT_PATH

    if "://" not in host:
        host = "http://" + host

    if path == DEFAULT_CHAT_PATH and not host.endswith("/v1"):
        host = host + "/v1"

    return ApiHostAndPath(api_host=host, api_path=path)
