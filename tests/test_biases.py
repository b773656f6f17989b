"""
Tests for versioned bias analyses and bias feedback.
"""

import sys
import threading
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from reframe.biases import BiasAnalysisLog, BiasFeedback, analysis_index_of
from reframe.errors import NoBiasesFound
from reframe.model_output import BiasDescriptor
from reframe.schemas.session import Bias, BiasDecision


def _descriptors(*ids):
    return [BiasDescriptor(id=i, title=f"Bias {i}", challenging_ideas=("Try X",)) for i in ids]


@pytest.fixture
def log():
    return BiasAnalysisLog()


class TestAppendAnalysis:
    def test_same_source_id_never_collides(self, log):
        first = log.append_analysis(_descriptors("bias_1"))
        second = log.append_analysis(_descriptors("bias_1"))
        assert first[0].id == "analysis_0_bias_1"
        assert second[0].id == "analysis_1_bias_1"

    def test_fallback_id_uses_position(self, log):
        biases = log.append_analysis([
            BiasDescriptor(id="", title="A"),
            BiasDescriptor(id="anchoring", title="B"),
        ])
        assert [b.id for b in biases] == ["analysis_0_bias_1", "analysis_0_anchoring"]

    def test_duplicate_ids_within_one_set(self, log):
        biases = log.append_analysis(_descriptors("x", "x"))
        assert len({b.id for b in biases}) == 2

    def test_ids_unique_across_sets(self, log):
        sizes = [3, 1, 4, 2]
        for k in sizes:
            log.append_analysis(_descriptors(*[f"bias_{n}" for n in range(1, k + 1)]))
        ids = log.all_ids()
        assert len(set(ids)) == sum(sizes)
        for set_index, biases in enumerate(log.sets):
            assert all(analysis_index_of(b.id) == set_index for b in biases)

    def test_keeps_earlier_sets_and_activates_newest(self, log):
        log.append_analysis(_descriptors("a"))
        log.append_analysis(_descriptors("b"))
        assert len(log) == 2
        assert log.active_index == 1
        assert log.active[0].id == "analysis_1_b"
        assert log.sets[0][0].id == "analysis_0_a"

    def test_fields_copied(self, log):
        bias = log.append_analysis([
            BiasDescriptor(id="s", title="Status quo", explanation="Why", challenging_ideas=("X", "Y")),
        ])[0]
        assert bias == Bias(id="analysis_0_s", title="Status quo", explanation="Why", challenging_ideas=("X", "Y"))

    def test_zero_biases_rejected(self, log):
        with pytest.raises(NoBiasesFound):
            log.append_analysis([])
        assert len(log) == 0
        assert log.active is None
        # The counter is not consumed
        assert log.append_analysis(_descriptors("a"))[0].id == "analysis_0_a"

    def test_concurrent_appends_get_distinct_indexes(self, log):
        barrier = threading.Barrier(8)

        def worker():
            barrier.wait()
            log.append_analysis(_descriptors("bias_1"))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        ids = log.all_ids()
        assert sorted(ids) == sorted(f"analysis_{i}_bias_1" for i in range(8))


class TestSelect:
    def test_select_republishes_without_renumbering(self, log):
        first = log.append_analysis(_descriptors("a"))
        log.append_analysis(_descriptors("b"))
        assert log.select(0) == first
        assert log.active == first
        assert log.active_index == 0
        assert log.all_ids() == ["analysis_0_a", "analysis_1_b"]

    def test_new_analysis_after_select_continues_counter(self, log):
        log.append_analysis(_descriptors("a"))
        log.append_analysis(_descriptors("b"))
        log.select(0)
        assert log.append_analysis(_descriptors("c"))[0].id == "analysis_2_c"

    def test_select_out_of_range(self, log):
        with pytest.raises(IndexError):
            log.select(0)


class TestLoad:
    def test_counter_resumes_past_loaded_sets(self, log):
        sets = [[Bias(id="analysis_0_a", title="A")], [Bias(id="analysis_1_b", title="B")]]
        log.load(sets, active=1)
        assert log.append_analysis(_descriptors("c"))[0].id == "analysis_2_c"

    def test_counter_resumes_past_known_ids(self, log):
        log.load([[Bias(id="analysis_0_a", title="A")]], active=0, known_ids=["analysis_5_old"])
        assert log.append_analysis(_descriptors("c"))[0].id == "analysis_6_c"

    def test_foreign_ids_ignored(self, log):
        log.load([[Bias(id="bias_1", title="Legacy")]], active=0)
        assert log.append_analysis(_descriptors("c"))[0].id == "analysis_1_c"


class TestAnalysisIndexOf:
    def test_parses_index(self):
        assert analysis_index_of("analysis_12_bias_3") == 12

    def test_foreign_id(self):
        assert analysis_index_of("bias_3") is None


class TestBiasFeedback:
    def test_decide_and_clear(self):
        feedback = BiasFeedback()
        feedback.decide("analysis_0_a", "accepted")
        assert feedback.decision("analysis_0_a") == BiasDecision.ACCEPTED
        feedback.decide("analysis_0_a", BiasDecision.REJECTED)
        assert feedback.decision("analysis_0_a") == BiasDecision.REJECTED
        feedback.decide("analysis_0_a", None)
        assert "analysis_0_a" not in feedback.decisions

    def test_invalid_decision(self):
        with pytest.raises(ValueError):
            BiasFeedback().decide("analysis_0_a", "maybe")

    def test_comment_absence(self):
        feedback = BiasFeedback()
        feedback.set_comment("analysis_0_a", "  ")
        assert not feedback.has_comment("analysis_0_a")
        feedback.set_comment("analysis_0_a", "fair point")
        assert feedback.has_comment("analysis_0_a")
        feedback.set_comment("analysis_0_a", "")
        assert feedback.comments == {}

    def test_idea_comment_inner_map_removed(self):
        feedback = BiasFeedback()
        feedback.set_idea_comment("analysis_0_a", "Try X", "did it")
        assert feedback.idea_comment("analysis_0_a", "Try X") == "did it"
        assert feedback.has_idea_comment("analysis_0_a", "Try X")
        feedback.set_idea_comment("analysis_0_a", "Try X", " ")
        assert not feedback.has_idea_comment("analysis_0_a", "Try X")
        assert feedback.idea_comments == {}

    def test_blank_idea_comment_on_new_bias_leaves_no_entry(self):
        feedback = BiasFeedback()
        feedback.set_idea_comment("analysis_0_a", "Try X", "")
        assert feedback.idea_comments == {}

    def test_referenced_ids(self):
        feedback = BiasFeedback()
        feedback.decide("analysis_0_a", "accepted")
        feedback.set_comment("analysis_1_b", "hm")
        feedback.set_idea_comment("analysis_2_c", "X", "y")
        assert sorted(feedback.referenced_ids()) == ["analysis_0_a", "analysis_1_b", "analysis_2_c"]
