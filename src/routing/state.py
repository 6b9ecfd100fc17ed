"""Per-conversation handoff state."""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod


class ConversationStateStore(ABC):
    """Key-value view of which conversations have been handed to a human.

    Handoff is monotonic: once set it is never cleared by the router.
    """

    @abstractmethod
    def get(self, conversation_id: str) -> bool:
        """Return True if the conversation is in handoff mode."""

    @abstractmethod
    def set_handoff(self, conversation_id: str) -> bool:
        """Mark the conversation as handed off.

        Returns True on the first transition, False if it was already set.
        """


class InMemoryConversationStateStore(ConversationStateStore):
    """Process-local store; state is lost on restart."""

    def __init__(self) -> None:
        self._handoff: dict[str, bool] = {}
        self._lock = threading.Lock()

    def get(self, conversation_id: str) -> bool:
        with self._lock:
            return self._handoff.get(conversation_id, False)

    def set_handoff(self, conversation_id: str) -> bool:
        with self._lock:
            if self._handoff.get(conversation_id, False):
                return False
            self._handoff[conversation_id] = True
            return True

    def __len__(self) -> int:
        with self._lock:
            return len(self._handoff)
