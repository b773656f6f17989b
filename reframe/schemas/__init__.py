"""
Data schemas for reflection sessions.
"""

from .chat import ChatMode, ChatRequest
from .session import (
    Bias,
    BiasDecision,
    ChatMessage,
    MessageRole,
    SessionSnapshot,
    REQUIRED_SNAPSHOT_KEYS,
)

__all__ = [
    "ChatMode",
    "ChatRequest",
    "Bias",
    "BiasDecision",
    "ChatMessage",
    "MessageRole",
    "SessionSnapshot",
    "REQUIRED_SNAPSHOT_KEYS",
]
