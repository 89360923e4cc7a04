"""
Conversation Module

Per-user state machine that collects bridge and transfer intents turn by
turn and hands completed intents to the TransferOrchestrator.
"""

from .engine import ConversationEngine, Notifier
from .models import (
    ConversationState,
    EventKind,
    MessageKind,
    OutboundMessage,
    Stage,
    UserEvent,
)
from .session_store import InMemorySessionStore, SessionStore

__all__ = [
    "ConversationEngine",
    "Notifier",
    "ConversationState",
    "EventKind",
    "MessageKind",
    "OutboundMessage",
    "Stage",
    "UserEvent",
    "SessionStore",
    "InMemorySessionStore",
]
