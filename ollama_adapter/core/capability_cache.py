from __future__ import annotations


class CapabilityCache:
    """Process-lifetime map of ``host|model`` to a vision capability verdict.

    Entries are never evicted or refreshed. Build one at startup and pass it to
    every detector that should share results.
    """

    def __init__(self) -> None:
        self._entries: dict[str, bool] = {}

    @staticmethod
    def make_key(host: str, model: str) -> str:
        return host + "|" + model

    def get(self, key: str) -> bool | None:
        return self._entries.get(key)

    def set(self, key: str, value: bool) -> None:
        self._entries[key] = value

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        self._entries.clear()


default_capability_cache = CapabilityCache()
