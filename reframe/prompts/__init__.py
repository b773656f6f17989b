"""
Prompt templates for reflection session stages.
"""

from .stage_prompts import (
    DEFINE_EXPERIENCE_SYSTEM_PROMPT,
    GENERATE_IDEAS_SYSTEM_PROMPT,
    CHALLENGE_BIASES_SYSTEM_PROMPT,
    FORCE_SUMMARY_INSTRUCTION,
    build_messages,
)

__all__ = [
    "DEFINE_EXPERIENCE_SYSTEM_PROMPT",
    "GENERATE_IDEAS_SYSTEM_PROMPT",
    "CHALLENGE_BIASES_SYSTEM_PROMPT",
    "FORCE_SUMMARY_INSTRUCTION",
    "build_messages",
]
