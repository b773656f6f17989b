"""
Idea registry with provenance tracking.

Ideas are plain strings and act as their own keys. Three pools decide how
an idea is presented:

- my_ideas: the user's active list
- suggested_ideas: every idea the model ever suggested (never shrinks)
- challenge_ideas: ideas taken from a bias's challenging ideas (never shrinks)

Provenance is derived from pool membership on every read and never stored.
"""

from __future__ import annotations

from enum import Enum
from typing import Callable, Iterable, Optional


class IdeaOrigin(str, Enum):
    """Presentation class of an idea, in precedence order."""
    CHALLENGE = "challenge"
    SUGGESTED = "suggested"
    USER = "user"


def classify_idea(idea: str, suggested: Iterable[str], challenge: Iterable[str]) -> IdeaOrigin:
    if idea in challenge:
        return IdeaOrigin.CHALLENGE
    if idea in suggested:
        return IdeaOrigin.SUGGESTED
    return IdeaOrigin.USER


def set_comment(comments: dict[str, str], key: str, text: Optional[str]) -> bool:
    """Store a trimmed comment, or delete the key when the text is blank.

    Returns True if the map changed.
    """
    text = (text or "").strip()
    if text:
        if comments.get(key) == text:
            return False
        comments[key] = text
        return True
    return comments.pop(key, None) is not None


class IdeaRegistry:
    """
    The user's ideas, the suggestion pool and per-idea comments.

    An idea typed under a specific bias is listed under that bias as well as
    in my_ideas. Removing it through either surface removes it from both, so
    every bias-scoped idea is always in my_ideas and sits under one bias only.
    """

    def __init__(self, on_change: Optional[Callable[[], None]] = None):
        self.my_ideas: list[str] = []
        self.suggested_ideas: list[str] = []
        self.challenge_ideas: list[str] = []
        self.bias_ideas: dict[str, list[str]] = {}
        self.comments: dict[str, str] = {}
        self._toggled_out: dict[str, int] = {}
        self._toggled_bias: dict[str, tuple[str, int]] = {}
        self._on_change = on_change

    def _changed(self):
        if self._on_change:
            self._on_change()

    # ── My ideas ────────────────────────────────────────────────

    def add(self, idea: str) -> bool:
        """Add a user-authored idea. Blank or already-listed ideas are ignored."""
        idea = idea.strip()
        if not idea or idea in self.my_ideas:
            return False
        self.my_ideas.append(idea)
        self._changed()
        return True

    def adopt(self, idea: str) -> bool:
        """Move a suggestion into my ideas."""
        if idea in self.my_ideas:
            return False
        self.my_ideas.append(idea)
        self._changed()
        return True

    def remove(self, idea: str) -> bool:
        """Retract an idea from my ideas and from any bias it was typed under.

        Comments on the idea are kept.
        """
        if idea not in self.my_ideas:
            return False
        self.my_ideas.remove(idea)
        self._drop_from_bias_lists(idea)
        self._changed()
        return True

    def toggle(self, idea: str) -> bool:
        """
        Toggle a bias's challenging idea in my ideas.

        Adding also records it in the suggestion pool and marks it as
        challenge-derived. Removing only touches my ideas, so the idea can
        resurface as a suggestion. An idea typed under a bias is held out of
        its bias list while toggled off and goes back to the same bias and
        position when toggled on, keeping its user origin.

        Returns:
            True if the idea is now in my ideas
        """
        if idea in self.my_ideas:
            self._toggled_out[idea] = self.my_ideas.index(idea)
            self._toggled_bias.pop(idea, None)
            for bias_id, ideas in self.bias_ideas.items():
                if idea in ideas:
                    self._toggled_bias[idea] = (bias_id, ideas.index(idea))
            self.my_ideas.remove(idea)
            self._drop_from_bias_lists(idea)
            self._changed()
            return False

        # Toggling back restores the idea's old place in the list
        position = min(self._toggled_out.pop(idea, len(self.my_ideas)), len(self.my_ideas))
        self.my_ideas.insert(position, idea)
        placement = self._toggled_bias.pop(idea, None)
        if placement is not None:
            bias_id, index = placement
            ideas = self.bias_ideas.setdefault(bias_id, [])
            ideas.insert(min(index, len(ideas)), idea)
        else:
            if idea not in self.suggested_ideas:
                self.suggested_ideas.append(idea)
            if idea not in self.challenge_ideas:
                self.challenge_ideas.append(idea)
        self._changed()
        return True

    # ── Suggestions ─────────────────────────────────────────────

    def add_suggestions(self, ideas: Iterable[str]) -> list[str]:
        """Extend the suggestion pool; returns the ideas that were new."""
        added = []
        for idea in ideas:
            idea = idea.strip()
            if idea and idea not in self.suggested_ideas and idea not in self.my_ideas:
                self.suggested_ideas.append(idea)
                added.append(idea)
        if added:
            self._changed()
        return added

    def available_suggestions(self) -> list[str]:
        """Suggestions not yet taken into my ideas."""
        return [i for i in self.suggested_ideas if i not in self.my_ideas]

    # ── Bias-scoped ideas ───────────────────────────────────────

    def ideas_for_bias(self, bias_id: str) -> list[str]:
        return list(self.bias_ideas.get(bias_id, []))

    def add_bias_idea(self, bias_id: str, idea: str) -> bool:
        """Add a user idea typed under a bias (listed in my ideas too)."""
        idea = idea.strip()
        if not idea or idea in self.my_ideas or idea in self.bias_ideas.get(bias_id, []):
            return False
        self.bias_ideas.setdefault(bias_id, []).append(idea)
        self.my_ideas.append(idea)
        self._changed()
        return True

    def remove_bias_idea(self, bias_id: str, idea: str) -> bool:
        if idea not in self.bias_ideas.get(bias_id, []):
            return False
        self._drop_from_bias_lists(idea)
        if idea in self.my_ideas:
            self.my_ideas.remove(idea)
        self._changed()
        return True

    def _drop_from_bias_lists(self, idea: str):
        for bias_id in list(self.bias_ideas):
            ideas = self.bias_ideas[bias_id]
            if idea in ideas:
                ideas.remove(idea)
                if not ideas:
                    del self.bias_ideas[bias_id]

    # ── Provenance ──────────────────────────────────────────────

    def classify(self, idea: str) -> IdeaOrigin:
        return classify_idea(idea, self.suggested_ideas, self.challenge_ideas)

    def classified_ideas(self) -> list[tuple[str, IdeaOrigin]]:
        return [(idea, self.classify(idea)) for idea in self.my_ideas]

    # ── Comments ────────────────────────────────────────────────

    def comment(self, idea: str) -> Optional[str]:
        return self.comments.get(idea)

    def has_comment(self, idea: str) -> bool:
        return idea in self.comments

    def set_comment(self, idea: str, text: Optional[str]) -> bool:
        """Set or clear (blank text) the comment on an idea."""
        changed = set_comment(self.comments, idea, text)
        if changed:
            self._changed()
        return changed

    # ── Bulk ────────────────────────────────────────────────────

    def clear(self):
        self.my_ideas = []
        self.suggested_ideas = []
        self.challenge_ideas = []
        self.bias_ideas = {}
        self.comments = {}
        self._toggled_out = {}
        self._toggled_bias = {}
        self._changed()

    def load(
        self,
        my_ideas: list[str],
        suggested_ideas: list[str],
        challenge_ideas: list[str],
        bias_ideas: dict[str, list[str]],
        comments: dict[str, str],
    ):
        """Replace every pool at once (used by session import)."""
        self.my_ideas = list(my_ideas)
        self.suggested_ideas = list(suggested_ideas)
        self.challenge_ideas = list(challenge_ideas)
        self.bias_ideas = {k: list(v) for k, v in bias_ideas.items()}
        self.comments = dict(comments)
        self._toggled_out = {}
        self._toggled_bias = {}
        self._changed()
