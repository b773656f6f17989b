"""
Versioned bias analyses and the user's feedback on them.

Every successful analysis is appended as a new set. Ids are re-keyed as
analysis_<setIndex>_<originalId> with a set index drawn from a counter that
never goes backwards, so decisions and comments keyed by bias id can never
leak from one analysis into another.
"""

from __future__ import annotations

import re
import threading
from typing import Callable, Optional, Sequence

from .errors import NoBiasesFound
from .ideas import set_comment
from .model_output import BiasDescriptor
from .schemas.session import Bias, BiasDecision

ANALYSIS_ID_RE = re.compile(r"^analysis_(\d+)_")


def analysis_index_of(bias_id: str) -> Optional[int]:
    """Set index encoded in a versioned bias id (None for foreign ids)."""
    match = ANALYSIS_ID_RE.match(bias_id)
    return int(match.group(1)) if match else None


class BiasAnalysisLog:
    """Append-only sequence of analysis sets with a selectable active set."""

    def __init__(self, on_change: Optional[Callable[[], None]] = None):
        self._sets: list[list[Bias]] = []
        self._active: Optional[int] = None
        self._next_index = 0
        self._lock = threading.Lock()
        self._on_change = on_change

    def _changed(self):
        if self._on_change:
            self._on_change()

    @property
    def sets(self) -> list[list[Bias]]:
        return [list(s) for s in self._sets]

    @property
    def active_index(self) -> Optional[int]:
        return self._active

    @property
    def active(self) -> Optional[list[Bias]]:
        """Biases of the currently displayed analysis."""
        if self._active is None:
            return None
        return list(self._sets[self._active])

    def __len__(self) -> int:
        return len(self._sets)

    def append_analysis(self, descriptors: Sequence[BiasDescriptor]) -> list[Bias]:
        """
        Stamp globally unique ids on a parsed analysis and append it.

        The new set becomes the active one.

        Raises:
            NoBiasesFound: if the analysis has no biases (nothing is appended)
        """
        if not descriptors:
            raise NoBiasesFound("No biases were identified in the analysis")

        with self._lock:
            set_index = self._next_index
            self._next_index += 1

            biases: list[Bias] = []
            used: set[str] = set()
            for position, descriptor in enumerate(descriptors, start=1):
                local_id = descriptor.id or f"bias_{position}"
                bias_id = f"analysis_{set_index}_{local_id}"
                # Repeated ids inside one response get the position appended
                while bias_id in used:
                    bias_id = f"{bias_id}_{position}"
                used.add(bias_id)
                biases.append(Bias(
                    id=bias_id,
                    title=descriptor.title,
                    explanation=descriptor.explanation,
                    challenging_ideas=tuple(descriptor.challenging_ideas),
                ))

            self._sets.append(biases)
            self._active = len(self._sets) - 1

        self._changed()
        return list(biases)

    def select(self, index: int) -> list[Bias]:
        """Make an earlier (or later) set the displayed one."""
        if not 0 <= index < len(self._sets):
            raise IndexError(f"No analysis set {index}")
        self._active = index
        self._changed()
        return list(self._sets[index])

    def find(self, bias_id: str) -> Optional[Bias]:
        for biases in self._sets:
            for bias in biases:
                if bias.id == bias_id:
                    return bias
        return None

    def all_ids(self) -> list[str]:
        return [b.id for s in self._sets for b in s]

    def clear(self):
        with self._lock:
            self._sets = []
            self._active = None
            self._next_index = 0
        self._changed()

    def load(self, sets: list[list[Bias]], active: Optional[int], known_ids: Sequence[str] = ()):
        """
        Replace all sets (used by session import).

        The counter resumes past every analysis index seen in the sets or in
        known_ids (ids still referenced by feedback maps), so a new analysis
        never reuses the id space of an older one.
        """
        indexes = [analysis_index_of(i) for i in [b.id for s in sets for b in s] + list(known_ids)]
        highest = max((i for i in indexes if i is not None), default=-1)
        with self._lock:
            self._sets = [list(s) for s in sets]
            self._active = active
            self._next_index = max(len(self._sets), highest + 1)
        self._changed()


class BiasFeedback:
    """Decisions, comments and per-idea comments, all keyed by bias id."""

    def __init__(self, on_change: Optional[Callable[[], None]] = None):
        self.decisions: dict[str, BiasDecision] = {}
        self.comments: dict[str, str] = {}
        self.idea_comments: dict[str, dict[str, str]] = {}
        self._on_change = on_change

    def _changed(self):
        if self._on_change:
            self._on_change()

    def decide(self, bias_id: str, decision: Optional[BiasDecision | str]):
        """Accept or reject a bias; None makes it undecided again."""
        if decision is None:
            if self.decisions.pop(bias_id, None) is not None:
                self._changed()
            return
        self.decisions[bias_id] = BiasDecision(decision)
        self._changed()

    def decision(self, bias_id: str) -> Optional[BiasDecision]:
        return self.decisions.get(bias_id)

    def set_comment(self, bias_id: str, text: Optional[str]) -> bool:
        changed = set_comment(self.comments, bias_id, text)
        if changed:
            self._changed()
        return changed

    def has_comment(self, bias_id: str) -> bool:
        return bias_id in self.comments

    def set_idea_comment(self, bias_id: str, idea: str, text: Optional[str]) -> bool:
        """Comment on an idea in the context of one bias."""
        comments = self.idea_comments.get(bias_id, {})
        changed = set_comment(comments, idea, text)
        if comments:
            self.idea_comments[bias_id] = comments
        else:
            self.idea_comments.pop(bias_id, None)
        if changed:
            self._changed()
        return changed

    def idea_comment(self, bias_id: str, idea: str) -> Optional[str]:
        return self.idea_comments.get(bias_id, {}).get(idea)

    def has_idea_comment(self, bias_id: str, idea: str) -> bool:
        return idea in self.idea_comments.get(bias_id, {})

    def referenced_ids(self) -> list[str]:
        return list({*self.decisions, *self.comments, *self.idea_comments})

    def clear(self):
        self.decisions = {}
        self.comments = {}
        self.idea_comments = {}
        self._changed()

    def load(
        self,
        decisions: dict[str, BiasDecision],
        comments: dict[str, str],
        idea_comments: dict[str, dict[str, str]],
    ):
        self.decisions = dict(decisions)
        self.comments = dict(comments)
        self.idea_comments = {k: dict(v) for k, v in idea_comments.items()}
        self._changed()
