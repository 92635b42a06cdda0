"""Read-only message search over the current session."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from .models import Message


def filter_messages(messages: Sequence[Message], term: str) -> Sequence[Message]:
    """Return messages whose text contains ``term`` (case-insensitive).

    A blank term yields ``messages`` itself, untouched.
    """
    if not term.strip():
        return messages
    needle = term.lower()
    return [message for message in messages if needle in message.text.lower()]


@dataclass
class SearchState:
    """Tracks in-conversation search position and results."""

    query: str = ""
    results: list[int] = field(default_factory=list)
    position: int = -1

    def update(self, messages: Sequence[Message], query: str) -> None:
        """Recompute matching message indices for ``query``."""
        self.query = query
        self.position = -1
        if not query.strip():
            self.results = []
            return
        needle = query.lower()
        self.results = [
            index
            for index, message in enumerate(messages)
            if needle in message.text.lower()
        ]

    def reset(self) -> None:
        """Clear all search state."""
        self.query = ""
        self.results = []
        self.position = -1

    def advance(self) -> int:
        """Move to the next result, wrapping around. Returns the current message index."""
        if not self.results:
            return -1
        self.position = (self.position + 1) % len(self.results)
        return self.results[self.position]

    def has_results(self) -> bool:
        return len(self.results) > 0
