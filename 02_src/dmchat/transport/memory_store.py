"""In-memory vector-memory context."""


class SessionMemoryStore:
    """Holds the memory entries returned by the last generation.

    Entries are opaque dicts; the only key the engine reads is "messageid".
    """

    def __init__(self, entries: list[dict] | None = None):
        self._entries: list[dict] = list(entries or [])

    def context(self) -> list[dict]:
        return list(self._entries)

    def replace(self, entries: list[dict]) -> None:
        self._entries = list(entries)

    def discard(self, ids: list[str]) -> None:
        doomed = set(ids)
        self._entries = [
            entry for entry in self._entries if entry.get("messageid") not in doomed
        ]

    def clear(self) -> None:
        self._entries = []

    def __len__(self) -> int:
        return len(self._entries)
