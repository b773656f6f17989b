"""
Session state for a three-stage reflection session.

SessionState is the single source of truth for one session: the experience
text, the define-experience transcript and summary, the idea registry, the
versioned bias analyses and the user's feedback. Stage workflows read and
write it only through its methods and components; interested parties
subscribe to change notifications instead of sharing references.

Usage:
    state = SessionState()
    unsubscribe = state.subscribe(lambda topic: print("changed:", topic))
    state.set_experience("Moving to a new city")
    state.ideas.add("Join a running club")
    snapshot = state.export_snapshot()
"""

from __future__ import annotations

from typing import Any, Callable, Optional

from .biases import BiasAnalysisLog, BiasFeedback
from .ideas import IdeaRegistry
from .schemas.session import ChatMessage, MessageRole, SessionSnapshot

Listener = Callable[[str], None]

# Change topics sent to listeners
TOPIC_EXPERIENCE = "experience"
TOPIC_TRANSCRIPT = "transcript"
TOPIC_SUMMARY = "summary"
TOPIC_IDEAS = "ideas"
TOPIC_BIASES = "biases"
TOPIC_FEEDBACK = "feedback"
TOPIC_SESSION = "session"


class SessionState:
    """Aggregate state of one reflection session."""

    def __init__(self, experience: str = ""):
        self._listeners: list[Listener] = []
        # Bulk operations notify once with TOPIC_SESSION
        self._muted = False

        self.experience = experience
        self._history: list[ChatMessage] = []
        self.summary: Optional[str] = None
        self.is_finished = False

        self.ideas = IdeaRegistry(on_change=lambda: self._notify(TOPIC_IDEAS))
        self.analyses = BiasAnalysisLog(on_change=lambda: self._notify(TOPIC_BIASES))
        self.feedback = BiasFeedback(on_change=lambda: self._notify(TOPIC_FEEDBACK))

    # ── Subscriptions ───────────────────────────────────────────

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener; returns a function that removes it."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, topic: str):
        if self._muted:
            return
        for listener in list(self._listeners):
            listener(topic)

    # ── Experience & transcript ─────────────────────────────────

    def set_experience(self, experience: str):
        self.experience = experience
        self._notify(TOPIC_EXPERIENCE)

    @property
    def history(self) -> list[ChatMessage]:
        return list(self._history)

    def add_message(self, role: MessageRole | str, content: str) -> ChatMessage:
        message = ChatMessage.create(role, content)
        self._history.append(message)
        self._notify(TOPIC_TRANSCRIPT)
        return message

    def api_history(self) -> list[dict]:
        """Transcript in the chat endpoint's format (without ids)."""
        return [m.to_api_dict() for m in self._history]

    def set_summary(self, summary: Optional[str]):
        """Record the experience summary; a summary finishes stage one."""
        self.summary = summary
        self.is_finished = summary is not None
        self._notify(TOPIC_SUMMARY)

    def set_finished(self, finished: bool):
        self.is_finished = finished
        self._notify(TOPIC_SUMMARY)

    # ── Biases ──────────────────────────────────────────────────

    @property
    def biases(self):
        """The active analysis set (None before the first analysis)."""
        return self.analyses.active

    # ── Reset / import / export ─────────────────────────────────

    def reset(self):
        """Clear everything except the experience description."""
        self._muted = True
        try:
            self._history = []
            self.summary = None
            self.is_finished = False
            self.ideas.clear()
            self.analyses.clear()
            self.feedback.clear()
        finally:
            self._muted = False
        self._notify(TOPIC_SESSION)

    def export_snapshot(self) -> dict:
        return self.to_snapshot().to_dict()

    def to_snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            experience=self.experience,
            history=list(self._history),
            summary=self.summary,
            my_ideas=list(self.ideas.my_ideas),
            suggested_ideas=list(self.ideas.suggested_ideas),
            idea_comments=dict(self.ideas.comments),
            challenge_ideas=list(self.ideas.challenge_ideas),
            bias_sets=self.analyses.sets,
            active_bias_set=self.analyses.active_index,
            bias_decisions=dict(self.feedback.decisions),
            bias_user_ideas={k: list(v) for k, v in self.ideas.bias_ideas.items()},
            bias_comments=dict(self.feedback.comments),
            bias_idea_comments={k: dict(v) for k, v in self.feedback.idea_comments.items()},
        )

    def import_snapshot(self, data: Any) -> SessionSnapshot:
        """
        Replace the whole session with a snapshot.

        The snapshot is fully validated before anything changes, so a bad
        snapshot leaves the current session exactly as it was.

        Raises:
            SessionImportError: if the snapshot is structurally invalid
        """
        snapshot = SessionSnapshot.from_dict(data)

        self._muted = True
        try:
            self.experience = snapshot.experience
            self._history = list(snapshot.history)
            self.summary = snapshot.summary
            self.is_finished = snapshot.summary is not None
            self.ideas.load(
                my_ideas=snapshot.my_ideas,
                suggested_ideas=snapshot.suggested_ideas,
                challenge_ideas=snapshot.challenge_ideas,
                bias_ideas=snapshot.bias_user_ideas,
                comments=snapshot.idea_comments,
            )
            self.feedback.load(
                decisions=snapshot.bias_decisions,
                comments=snapshot.bias_comments,
                idea_comments=snapshot.bias_idea_comments,
            )
            self.analyses.load(
                snapshot.bias_sets,
                snapshot.active_bias_set,
                known_ids=self.feedback.referenced_ids() + list(snapshot.bias_user_ideas),
            )
        finally:
            self._muted = False
        self._notify(TOPIC_SESSION)
        return snapshot

    @classmethod
    def from_snapshot(cls, data: Any) -> "SessionState":
        state = cls()
        state.import_snapshot(data)
        return state
