"""Per-server session tokens."""

from typing import Optional


class SessionStore:
    """
    Maps server id to the session token it issued.

    Owned by one ProtocolClient; tokens from one server are never sent to
    another. A later token for the same server replaces the earlier one.
    """

    def __init__(self):
        self._tokens: dict[str, str] = {}

    def __contains__(self, server_id: str) -> bool:
        return server_id in self._tokens

    def __len__(self) -> int:
        return len(self._tokens)

    def get(self, server_id: str) -> Optional[str]:
        return self._tokens.get(server_id)

    def set(self, server_id: str, token: str) -> None:
        self._tokens[server_id] = token

    def discard(self, server_id: str) -> None:
        self._tokens.pop(server_id, None)

    def clear(self) -> None:
        self._tokens.clear()
