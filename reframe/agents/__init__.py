"""
Stage workflows for reflection sessions.
"""

from .chat_backend import ChatBackend, HttpChatClient, LocalChatBackend
from .challenge_biases import ChallengeBiasesWorkflow
from .define_experience import DefineExperienceWorkflow
from .generate_ideas import GenerateIdeasWorkflow
from .requests import CancellationToken, RequestSlot

__all__ = [
    "ChatBackend",
    "HttpChatClient",
    "LocalChatBackend",
    "ChallengeBiasesWorkflow",
    "DefineExperienceWorkflow",
    "GenerateIdeasWorkflow",
    "CancellationToken",
    "RequestSlot",
]
