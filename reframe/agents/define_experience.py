"""
Define-experience stage.

A conversation that draws the experience out of the user and ends with a
summary. The model finishes the stage on its own by emitting a summary
block in a normal reply, or the user asks for the summary early
(force_summary). Forced summaries never enter the transcript.
"""

from __future__ import annotations

from typing import Optional

from ..config import get_settings
from ..errors import RequestCancelled, ResponseShapeError, StageNotReady, SummaryUnavailable
from ..model_output import display_text, parse_model_output
from ..schemas.chat import ChatMode, ChatRequest
from ..schemas.session import ChatMessage, MessageRole
from ..state import SessionState
from .chat_backend import ChatBackend
from .requests import RequestSlot

SUMMARY_UNAVAILABLE_MESSAGE = (
    "Unable to generate summary. Please continue the conversation and try again."
)


class DefineExperienceWorkflow:
    """
    Runs stage one against a session.

    Usage:
        workflow = DefineExperienceWorkflow(state, backend)
        workflow.start()                      # opening question
        workflow.send("It happened at work")  # one user turn
        workflow.force_summary()              # summary now
    """

    def __init__(
        self,
        state: SessionState,
        backend: ChatBackend,
        summary_min_chars: Optional[int] = None,
    ):
        self.state = state
        self.backend = backend
        self.summary_min_chars = (
            get_settings().summary_min_chars if summary_min_chars is None else summary_min_chars
        )
        self.turns = RequestSlot("define-experience")
        self.summaries = RequestSlot("summary")

    def _require_experience(self):
        if not self.state.experience.strip():
            raise StageNotReady("Describe the experience first")

    def _request(self, force_summary: bool = False) -> ChatRequest:
        return ChatRequest(
            mode=ChatMode.DEFINE_EXPERIENCE,
            experience=self.state.experience,
            history=self.state.api_history(),
            force_summary=force_summary,
        )

    # ── Conversation turns ──────────────────────────────────────

    def start(self) -> Optional[ChatMessage]:
        """
        Ask the opening question for a new experience.

        Does nothing when the conversation has already started.

        Returns:
            The assistant message, or None if nothing was applied
        """
        self._require_experience()
        if self.state.history:
            return None
        return self._turn()

    def send(self, text: str) -> Optional[ChatMessage]:
        """
        Add a user turn and get the assistant's reply.

        The user message is recorded before the request goes out, so it
        stays in the transcript even if the request fails.

        Returns:
            The assistant message, or None if the request was superseded
        """
        self._require_experience()
        text = text.strip()
        if not text:
            return None
        self.state.add_message(MessageRole.USER, text)
        return self._turn()

    def _turn(self) -> Optional[ChatMessage]:
        token = self.turns.begin()
        try:
            raw_text = self.backend.complete(self._request())
            token.raise_if_cancelled()

            parsed = parse_model_output(raw_text)
            content = display_text(parsed, raw_text)
            if not content:
                raise ResponseShapeError("Message content is empty")

            message = self.state.add_message(MessageRole.ASSISTANT, content)
            if parsed.structured.summary:
                self.state.set_summary(parsed.structured.summary)
            return message
        except RequestCancelled:
            return None
        finally:
            self.turns.finish(token)

    # ── Summary ─────────────────────────────────────────────────

    def force_summary(self) -> Optional[str]:
        """
        Ask for the summary now and finish the stage.

        Without a summary block in the reply, the reply text itself is used
        when it is long enough to be a summary.

        Returns:
            The summary, or None if the request was superseded

        Raises:
            StageNotReady: If there is no conversation to summarize
            SummaryUnavailable: If the reply holds nothing usable
        """
        self._require_experience()
        if not self.state.history:
            raise StageNotReady("Start the conversation before asking for a summary")

        token = self.summaries.begin()
        try:
            raw_text = self.backend.complete(self._request(force_summary=True))
            token.raise_if_cancelled()

            parsed = parse_model_output(raw_text)
            summary = parsed.structured.summary
            if not summary:
                print("  [Chat] Expected a summary but none was found in the reply")
                fallback = parsed.clean_text.strip() or raw_text.strip()
                if len(fallback) <= self.summary_min_chars:
                    raise SummaryUnavailable(SUMMARY_UNAVAILABLE_MESSAGE)
                summary = fallback

            self.state.set_summary(summary)
            return summary
        except RequestCancelled:
            return None
        finally:
            self.summaries.finish(token)

    def cancel(self):
        self.turns.cancel()
        self.summaries.cancel()
