"""
Reframe - guided reflection sessions.

A user defines an experience through conversation, collects ideas for
handling it, and then challenges the cognitive biases in their view of it.
"""

from .model_output import parse_model_output
from .state import SessionState

__all__ = ["parse_model_output", "SessionState"]
