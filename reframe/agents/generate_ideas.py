"""
Generate-ideas stage.

Asks the model for a batch of new ideas and merges them into the
suggestion pool. Ideas already suggested, or already chosen by the user,
are not added twice.
"""

from __future__ import annotations

from typing import Optional

from ..errors import RequestCancelled, StageNotReady
from ..model_output import extract_suggested_ideas, parse_model_output
from ..schemas.chat import ChatMode, ChatRequest
from ..state import SessionState
from .chat_backend import ChatBackend
from .requests import RequestSlot


class GenerateIdeasWorkflow:
    """Runs stage two against a session."""

    def __init__(self, state: SessionState, backend: ChatBackend):
        self.state = state
        self.backend = backend
        self.slot = RequestSlot("generate-ideas")

    def build_request(self) -> ChatRequest:
        ideas = self.state.ideas
        return ChatRequest(
            mode=ChatMode.GENERATE_IDEAS,
            experience=self.state.experience,
            summary=self.state.summary,
            history=self.state.api_history(),
            my_ideas=list(ideas.my_ideas),
            all_suggested_ideas=list(ideas.suggested_ideas),
            idea_comments=dict(ideas.comments),
        )

    def generate(self) -> Optional[list[str]]:
        """
        Request new ideas and add them to the suggestion pool.

        Returns:
            The ideas that were added (possibly none), or None if the
            request was superseded

        Raises:
            StageNotReady: If the experience has no summary yet
        """
        if not self.state.experience.strip() or not self.state.summary:
            raise StageNotReady("Please complete the experience definition first to generate ideas")

        token = self.slot.begin()
        try:
            raw_text = self.backend.complete(self.build_request())
            token.raise_if_cancelled()

            parsed = parse_model_output(raw_text)
            new_ideas = extract_suggested_ideas(parsed.structured)
            if not new_ideas:
                print("  [Chat] No ideas found in the reply")
                return []
            return self.state.ideas.add_suggestions(new_ideas)
        except RequestCancelled:
            return None
        finally:
            self.slot.finish(token)

    def cancel(self):
        self.slot.cancel()
