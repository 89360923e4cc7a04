"""
Session storage for conversation state.

Access is always scoped to one user id; the store is the only shared
mutable resource the conversation layer touches.
"""

from abc import ABC, abstractmethod
from typing import Dict, Optional

from ..transfer.models import TransferOutcome
from .models import IDLE_STATE, ConversationState


class SessionStore(ABC):
    """Key-value store of ConversationState keyed by user id."""

    @abstractmethod
    def get(self, user_id: str) -> ConversationState:
        """Current state; users never seen before are Idle"""
        pass

    @abstractmethod
    def put(self, user_id: str, state: ConversationState) -> None:
        pass

    @abstractmethod
    def reset(self, user_id: str) -> None:
        """Return the user to Idle, dropping every collected field"""
        pass

    @abstractmethod
    def remember_pending_bridge(self, user_id: str, outcome: Optional[TransferOutcome]) -> None:
        """Keep (or with None, forget) the user's last bridge whose settlement was not observed"""
        pass

    @abstractmethod
    def pending_bridge(self, user_id: str) -> Optional[TransferOutcome]:
        pass


class InMemorySessionStore(SessionStore):
    """Process-local store; state is lost on restart."""

    def __init__(self) -> None:
        self._states: Dict[str, ConversationState] = {}
        self._pending_bridges: Dict[str, TransferOutcome] = {}

    def get(self, user_id: str) -> ConversationState:
        return self._states.get(user_id, IDLE_STATE)

    def put(self, user_id: str, state: ConversationState) -> None:
        if state.is_idle:
            self._states.pop(user_id, None)
        else:
            self._states[user_id] = state

    def reset(self, user_id: str) -> None:
        self._states.pop(user_id, None)

    def remember_pending_bridge(self, user_id: str, outcome: Optional[TransferOutcome]) -> None:
        if outcome is None:
            self._pending_bridges.pop(user_id, None)
        else:
            self._pending_bridges[user_id] = outcome

    def pending_bridge(self, user_id: str) -> Optional[TransferOutcome]:
        return self._pending_bridges.get(user_id)

    def __len__(self) -> int:
        return len(self._states)
