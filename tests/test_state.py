"""
Tests for the session state model: transcript, reset, import/export and
change notifications.
"""

import copy
import json
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from reframe.errors import SessionImportError
from reframe.model_output import BiasDescriptor
from reframe.schemas.session import BiasDecision, MessageRole
from reframe.state import SessionState


def _populated_state():
    state = SessionState(experience="Starting a new job")
    state.add_message("assistant", "What happened on your first day?")
    state.add_message("user", "Nobody talked to me at lunch.")
    state.add_message("assistant", "That sounds lonely.")
    state.set_summary("Felt isolated during the first week at a new job.")
    state.ideas.add("Invite a colleague for coffee")
    state.ideas.add_suggestions(["Join a team channel", "Ask for a buddy"])
    state.ideas.adopt("Ask for a buddy")
    state.ideas.set_comment("Ask for a buddy", "HR offers this")
    biases = state.analyses.append_analysis([
        BiasDescriptor(id="spotlight", title="Spotlight effect", challenging_ideas=("Others are busy too",)),
    ])
    state.ideas.toggle("Others are busy too")
    state.ideas.add_bias_idea(biases[0].id, "Count friendly moments")
    state.feedback.decide(biases[0].id, BiasDecision.ACCEPTED)
    state.feedback.set_comment(biases[0].id, "Very true")
    state.feedback.set_idea_comment(biases[0].id, "Others are busy too", "Noticed it")
    return state


@pytest.fixture
def state():
    return _populated_state()


class TestTranscript:
    def test_messages_get_unique_ids(self):
        state = SessionState()
        ids = {state.add_message(MessageRole.USER, f"m{i}").id for i in range(20)}
        assert len(ids) == 20

    def test_api_history_has_no_ids(self, state):
        history = state.api_history()
        assert history[0] == {"role": "assistant", "content": "What happened on your first day?"}
        assert all(set(m) == {"role", "content"} for m in history)

    def test_history_is_a_copy(self, state):
        state.history.clear()
        assert len(state.history) == 3

    def test_summary_finishes_stage(self):
        state = SessionState()
        state.set_summary("Done")
        assert state.is_finished
        state.set_summary(None)
        assert not state.is_finished


class TestReset:
    def test_reset_keeps_experience_only(self, state):
        state.reset()
        assert state.experience == "Starting a new job"
        assert state.history == []
        assert state.summary is None
        assert not state.is_finished
        assert state.ideas.my_ideas == []
        assert state.ideas.suggested_ideas == []
        assert state.ideas.challenge_ideas == []
        assert state.ideas.bias_ideas == {}
        assert state.ideas.comments == {}
        assert len(state.analyses) == 0
        assert state.biases is None
        assert state.feedback.decisions == {}
        assert state.feedback.comments == {}
        assert state.feedback.idea_comments == {}

    def test_counter_restarts_after_reset(self, state):
        state.reset()
        biases = state.analyses.append_analysis([BiasDescriptor(id="a", title="A")])
        assert biases[0].id == "analysis_0_a"


class TestExportImport:
    def test_round_trip(self, state):
        snapshot = state.export_snapshot()
        restored = SessionState.from_snapshot(json.loads(json.dumps(snapshot)))
        assert restored.export_snapshot() == snapshot
        assert restored.is_finished

    def test_import_missing_experience_leaves_state_untouched(self, state):
        before = state.export_snapshot()
        assert len(state.history) == 3

        bad = copy.deepcopy(before)
        del bad["experience"]
        with pytest.raises(SessionImportError, match="experience"):
            state.import_snapshot(bad)

        assert len(state.history) == 3
        assert state.export_snapshot() == before

    def test_import_bad_nested_value_leaves_state_untouched(self, state):
        before = state.export_snapshot()
        bad = copy.deepcopy(before)
        bad["biasDecisions"] = {"analysis_0_spotlight": "maybe"}
        with pytest.raises(SessionImportError):
            state.import_snapshot(bad)
        assert state.export_snapshot() == before

    def test_import_replaces_everything(self, state):
        other = SessionState(experience="Moving abroad")
        other.add_message("assistant", "Where to?")
        state.import_snapshot(other.export_snapshot())
        assert state.experience == "Moving abroad"
        assert [m.content for m in state.history] == ["Where to?"]
        assert state.summary is None
        assert state.ideas.my_ideas == []
        assert len(state.analyses) == 0
        assert state.feedback.decisions == {}

    def test_new_analysis_after_import_does_not_reuse_ids(self, state):
        restored = SessionState.from_snapshot(state.export_snapshot())
        biases = restored.analyses.append_analysis([BiasDescriptor(id="spotlight", title="Again")])
        assert biases[0].id == "analysis_1_spotlight"
        assert restored.feedback.decision("analysis_1_spotlight") is None

    def test_counter_respects_feedback_only_ids(self):
        snapshot = SessionState(experience="x").export_snapshot()
        snapshot["biasComments"] = {"analysis_4_old": "kept"}
        restored = SessionState.from_snapshot(snapshot)
        biases = restored.analyses.append_analysis([BiasDescriptor(id="n", title="N")])
        assert biases[0].id == "analysis_5_n"

    def test_snapshot_without_bias_sets_imports_active_biases(self, state):
        snapshot = state.export_snapshot()
        del snapshot["biasSets"]
        del snapshot["activeBiasSet"]
        restored = SessionState.from_snapshot(snapshot)
        assert len(restored.analyses) == 1
        assert [b.id for b in restored.biases] == ["analysis_0_spotlight"]


class TestSubscriptions:
    def test_topics(self):
        state = SessionState()
        topics = []
        state.subscribe(topics.append)
        state.set_experience("x")
        state.add_message("user", "hi")
        state.set_summary("s")
        state.ideas.add("idea")
        state.analyses.append_analysis([BiasDescriptor(id="a", title="A")])
        state.feedback.decide("analysis_0_a", "rejected")
        assert topics == ["experience", "transcript", "summary", "ideas", "biases", "feedback"]

    def test_bulk_operations_notify_once(self, state):
        topics = []
        state.subscribe(topics.append)
        state.reset()
        assert topics == ["session"]
        topics.clear()
        state.import_snapshot(_populated_state().export_snapshot())
        assert topics == ["session"]

    def test_failed_import_does_not_notify(self, state):
        topics = []
        state.subscribe(topics.append)
        with pytest.raises(SessionImportError):
            state.import_snapshot({})
        assert topics == []

    def test_unsubscribe(self):
        state = SessionState()
        topics = []
        unsubscribe = state.subscribe(topics.append)
        unsubscribe()
        unsubscribe()
        state.set_experience("x")
        assert topics == []
