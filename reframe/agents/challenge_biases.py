"""
Challenge-biases stage.

Each analysis run produces a new, versioned set of biases. Earlier sets are
kept; the new set becomes the active one. The user's decisions and comments
on the active set are sent along so the next analysis can build on them.
"""

from __future__ import annotations

from typing import Optional

from ..errors import NoBiasesFound, RequestCancelled, StageNotReady
from ..model_output import extract_biases, parse_model_output
from ..schemas.chat import ChatMode, ChatRequest
from ..schemas.session import Bias
from ..state import SessionState
from .chat_backend import ChatBackend
from .requests import RequestSlot

NO_BIASES_MESSAGE = "No biases were identified. Please try again."


class ChallengeBiasesWorkflow:
    """
    Runs stage three against a session.

    Usage:
        workflow = ChallengeBiasesWorkflow(state, backend)
        biases = workflow.analyze()
        state.feedback.decide(biases[0].id, "accepted")
        state.ideas.toggle(biases[0].challenging_ideas[0])
    """

    def __init__(self, state: SessionState, backend: ChatBackend):
        self.state = state
        self.backend = backend
        self.slot = RequestSlot("challenge-biases")

    def build_request(self) -> ChatRequest:
        ideas = self.state.ideas
        feedback = self.state.feedback
        previous = self.state.biases
        return ChatRequest(
            mode=ChatMode.CHALLENGE_BIASES,
            experience=self.state.experience,
            summary=self.state.summary,
            history=self.state.api_history(),
            my_ideas=list(ideas.my_ideas),
            all_suggested_ideas=list(ideas.suggested_ideas),
            idea_comments=dict(ideas.comments),
            bias_comments=dict(feedback.comments),
            bias_idea_comments={k: dict(v) for k, v in feedback.idea_comments.items()},
            previous_biases=[b.to_dict() for b in previous] if previous else None,
        )

    def analyze(self) -> Optional[list[Bias]]:
        """
        Run a bias analysis and append it as a new analysis set.

        Returns:
            The new, active set of biases, or None if the request was
            superseded by a newer analysis

        Raises:
            StageNotReady: If the experience has no summary yet
            NoBiasesFound: If the reply identified no biases
        """
        if not self.state.experience.strip() or not self.state.summary:
            raise StageNotReady("Please complete the experience definition first")

        token = self.slot.begin()
        try:
            raw_text = self.backend.complete(self.build_request())
            token.raise_if_cancelled()

            parsed = parse_model_output(raw_text)
            descriptors = extract_biases(parsed.structured)
            if not descriptors:
                print("  [Chat] No biases found in the reply")
                raise NoBiasesFound(NO_BIASES_MESSAGE)
            return self.state.analyses.append_analysis(descriptors)
        except RequestCancelled:
            return None
        finally:
            self.slot.finish(token)

    def select(self, index: int) -> list[Bias]:
        """Show an earlier analysis set again."""
        return self.state.analyses.select(index)

    def cancel(self):
        self.slot.cancel()
