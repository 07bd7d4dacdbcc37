"""
Tests for the learn/quiz phase orchestrator.
"""
import pytest

from quizagent.diagnostics import MemoryDiagnostics
from quizagent.models import PageState
from quizagent.orchestrator import Dispatch, Phase, PhaseOrchestrator, Policy

LEARN = PageState.WORD_WITH_DEFINITION
QUIZ = PageState.QUIZ


class Recorder:
    def __init__(self):
        self.calls = []

    def learn(self, fields):
        self.calls.append(("learn", fields))

    def answer(self, fields):
        self.calls.append(("answer", fields))

    def skip(self, state, fields):
        self.calls.append(("skip", state))


def make(recorder, **kwargs):
    kwargs.setdefault("batch_size", 3)
    return PhaseOrchestrator(recorder.learn, recorder.answer, recorder.skip, **kwargs)


@pytest.fixture
def recorder():
    return Recorder()


class TestCycling:
    """Batch counting and phase flips."""

    def test_phase_inferred_from_first_signal(self, recorder):
        orch = make(recorder)
        assert orch.phase is None
        orch.on_sample(QUIZ, {})
        assert orch.phase == Phase.QUIZ

    def test_learn_batch_flips_to_quiz_once(self, recorder):
        diagnostics = MemoryDiagnostics()
        orch = make(recorder, diagnostics=diagnostics)
        for _ in range(3):
            assert orch.on_sample(LEARN, {"word": "cat"}) == Dispatch.LEARN
        assert orch.phase == Phase.QUIZ
        assert orch.state.count_in_phase == 0
        assert orch.state.total_learned == 3
        assert len(diagnostics.find("PHASE_FLIP")) == 1

    def test_quiz_batch_completes_cycle(self, recorder):
        orch = make(recorder)
        for _ in range(3):
            orch.on_sample(LEARN)
        for _ in range(3):
            assert orch.on_sample(QUIZ) == Dispatch.ANSWER
        assert orch.phase == Phase.LEARN
        assert orch.state.count_in_phase == 0
        assert orch.state.cycles_completed == 1
        assert orch.state.total_answered == 3

    @pytest.mark.parametrize("state", [
        PageState.WORD_ONLY,
        PageState.ANSWER_PROMPT,
        PageState.COMPLETION,
        PageState.UNKNOWN,
    ])
    def test_skip_states_do_not_count(self, recorder, state):
        orch = make(recorder)
        orch.on_sample(LEARN)
        assert orch.on_sample(state) == Dispatch.SKIP
        assert orch.state.count_in_phase == 1
        assert recorder.calls[-1] == ("skip", state)

    def test_fields_are_passed_through(self, recorder):
        orch = make(recorder)
        orch.on_sample(LEARN, {"word": "cat", "definition": "n. 猫"})
        assert recorder.calls == [("learn", {"word": "cat", "definition": "n. 猫"})]

    def test_callback_failure_still_counts(self):
        def boom(fields):
            raise RuntimeError("tap failed")

        orch = PhaseOrchestrator(boom, boom, lambda s, f: None, batch_size=2)
        with pytest.raises(RuntimeError):
            orch.on_sample(LEARN)
        assert orch.state.total_learned == 1
        assert orch.state.count_in_phase == 1

    def test_invalid_batch_size(self, recorder):
        with pytest.raises(ValueError):
            make(recorder, batch_size=0)


class TestPolicies:
    """How a disagreeing signal is handled."""

    def test_state_policy_resyncs(self, recorder):
        diagnostics = MemoryDiagnostics()
        orch = make(recorder, policy=Policy.STATE, diagnostics=diagnostics)
        orch.on_sample(LEARN)
        assert orch.on_sample(QUIZ) == Dispatch.ANSWER
        assert orch.phase == Phase.QUIZ
        assert orch.state.count_in_phase == 1
        assert diagnostics.find("PHASE_RESYNC")

    def test_strict_policy_skips(self, recorder):
        orch = make(recorder, policy=Policy.STRICT)
        orch.on_sample(LEARN)
        assert orch.on_sample(QUIZ) == Dispatch.SKIP
        assert orch.phase == Phase.LEARN
        assert orch.state.count_in_phase == 1
        assert orch.state.total_answered == 0
        assert recorder.calls[-1] == ("skip", QUIZ)

    def test_fixed_policy_finishes(self, recorder):
        orch = make(recorder, batch_size=1, policy=Policy.FIXED, total_cycles=2)
        for state in (LEARN, QUIZ, LEARN):
            orch.on_sample(state)
        assert not orch.finished
        orch.on_sample(QUIZ)
        assert orch.finished
        assert orch.on_sample(LEARN) == Dispatch.REFUSED
        assert orch.state.total_learned == 2

    def test_policy_accepts_plain_string(self, recorder):
        assert make(recorder, policy="strict").policy == Policy.STRICT

    def test_state_policy_never_finishes(self, recorder):
        orch = make(recorder, batch_size=1, total_cycles=1)
        orch.on_sample(LEARN)
        orch.on_sample(QUIZ)
        assert orch.state.cycles_completed == 1
        assert not orch.finished


class TestControl:
    """Cancellation, reset and re-entrancy."""

    def test_cancel_refuses_samples(self, recorder):
        orch = make(recorder)
        orch.cancel()
        assert not orch.is_running()
        assert orch.on_sample(LEARN) == Dispatch.REFUSED
        assert recorder.calls == []

    def test_reset_twice_equals_once(self, recorder):
        once = make(recorder)
        twice = make(recorder)
        for orch in (once, twice):
            orch.on_sample(LEARN)
            orch.on_sample(LEARN)
            orch.cancel()
        once.reset()
        twice.reset()
        twice.reset()
        assert once.state == twice.state
        assert once.is_running() and twice.is_running()
        assert twice.phase is None
        assert twice.state.batch_size == 3

    def test_reentrant_sample_is_refused(self):
        inner = []

        def learn(fields):
            inner.append(orch.on_sample(LEARN))

        orch = PhaseOrchestrator(learn, lambda f: None, lambda s, f: None, batch_size=5)
        assert orch.on_sample(LEARN) == Dispatch.LEARN
        assert inner == [Dispatch.REFUSED]
        assert orch.state.total_learned == 1
