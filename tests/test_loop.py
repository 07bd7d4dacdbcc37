"""
Tests for the quiz session loop, driven by scripted perception.
"""
import pytest

from conftest import SCREEN, FakeHost, ScriptedPerception, make_config, no_sleep
from quizagent.classifier import PRIMARY, SECONDARY
from quizagent.diagnostics import MemoryDiagnostics
from quizagent.layout import Layout
from quizagent.loop import QuizSession, SessionStatus

LEARN_CAT = {PRIMARY: "cat", SECONDARY: "n. 猫"}
QUIZ_CAT = {PRIMARY: "cat", SECONDARY: "A.狗 B.猫 C.鱼 D.鸟"}


def px(point):
    return point.to_pixel_point(*SCREEN)


def make_session(samples, host=None, diagnostics=None, **overrides):
    host = host or FakeHost()
    session = QuizSession(
        ScriptedPerception(samples),
        host,
        layout=Layout(),
        cfg=make_config(**overrides),
        diagnostics=diagnostics or MemoryDiagnostics(),
        sleep=no_sleep,
        show_panels=False,
    )
    return session, host


class TestPullMode:
    """run() until completion, stop or exhaustion."""

    def test_fixed_session_completes(self):
        session, host = make_session(
            [LEARN_CAT, QUIZ_CAT],
            policy="fixed", batch_size=1, total_cycles=1,
        )
        result = session.run()

        assert result.status == SessionStatus.COMPLETED
        assert result.iterations == 2
        assert result.learned == 1
        assert result.answered == 1
        assert result.probes == 0
        assert "cat" in session.memory
        assert host.taps == [px(Layout().selection.option_points[1])]
        assert len(host.swipes) == 2

    def test_iteration_ceiling(self):
        session, host = make_session([], max_iterations=3)
        result = session.run()

        assert result.status == SessionStatus.EXHAUSTED
        assert result.iterations == 3
        assert host.taps == [px(Layout().selection.next_tap)] * 3
        assert [h["state"] for h in result.history] == ["unknown"] * 3

    def test_stop_before_run(self):
        session, host = make_session([LEARN_CAT])
        session.stop()
        result = session.run()
        assert result.status == SessionStatus.STOPPED
        assert result.iterations == 0
        assert host.taps == [] and host.swipes == []

    def test_stop_during_run(self):
        session, _ = make_session([{PRIMARY: "apple"}] * 10)
        session.gateway.host.on_tap = lambda x, y: session.stop()
        result = session.run()
        assert result.status == SessionStatus.STOPPED
        assert result.iterations == 1

    def test_perception_errors_do_not_escape(self):
        class BrokenPerception:
            def capture_text(self, region, label):
                raise RuntimeError("capture failed")

        diagnostics = MemoryDiagnostics()
        session = QuizSession(
            BrokenPerception(), FakeHost(), cfg=make_config(max_iterations=2),
            diagnostics=diagnostics, sleep=no_sleep, show_panels=False,
        )
        result = session.run()
        assert result.status == SessionStatus.EXHAUSTED
        assert "PERCEPTION_ERROR" in diagnostics.codes()

    def test_requires_screen_size(self):
        with pytest.raises(ValueError):
            QuizSession(
                ScriptedPerception([]), FakeHost(),
                cfg=make_config(screen_width=0, screen_height=0), show_panels=False,
            )


class TestDispatchHandlers:
    """What each classified screen makes the session do."""

    def test_skip_screens_tap_their_buttons(self):
        selection = Layout().selection
        samples = [
            {PRIMARY: "apple", SECONDARY: ""},
            {PRIMARY: "apple", SECONDARY: "本题必须作答"},
            {PRIMARY: "", SECONDARY: "恭喜你完成"},
        ]
        session, host = make_session(samples, max_iterations=3)
        session.run()
        assert host.taps == [
            px(selection.card_center),
            px(selection.prompt_confirm),
            px(selection.completion_continue),
        ]

    def test_out_of_phase_quiz_is_advanced(self):
        diagnostics = MemoryDiagnostics()
        session, host = make_session(
            [LEARN_CAT, QUIZ_CAT], diagnostics=diagnostics,
            policy="strict", batch_size=5, max_iterations=2,
        )
        session.run()
        assert "PHASE_MISMATCH" in diagnostics.codes()
        assert "CLASSIFICATION_UNKNOWN" not in diagnostics.codes()
        assert host.taps == [px(Layout().selection.next_tap)]
        assert len(host.swipes) == 1

    def test_learn_without_definition_is_rejected(self):
        diagnostics = MemoryDiagnostics()
        session, host = make_session([], diagnostics=diagnostics)
        session._on_learn({"word": "cat", "definition": None})
        assert "LEARN_REJECTED" in diagnostics.codes()
        assert len(host.swipes) == 1
        assert session.memory.get_learned_count() == 0

    def test_unknown_word_is_probed(self):
        selection = Layout().selection
        samples = [
            {PRIMARY: "dog", SECONDARY: "A.狗 B.猫 C.鱼 D.鸟"},
            {PRIMARY: "fish", SECONDARY: ""},
        ]
        session, host = make_session(samples, max_iterations=1)
        result = session.run()

        assert result.probes == 1
        assert result.answered == 1
        assert host.taps == [px(selection.option_points[0])]
        assert host.swipes == []
        probe = [h for h in result.history if "probe" in h]
        assert probe == [{"iteration": 1, "probe": 0, "trials": 1, "advanced": False}]

    def test_partial_options_are_probed(self):
        session, host = make_session(
            [QUIZ_CAT | {SECONDARY: "A.狗 B.猫"}], max_iterations=1,
        )
        session.memory.learn("cat", ["n. 猫"])
        result = session.run()
        assert result.probes == 1
        # Nothing changed on screen: four trials and one advance
        assert len(host.taps) == 5

    def test_definition_to_word_quiz(self):
        selection = Layout().selection
        session, host = make_session(
            [{PRIMARY: "n. 猫", SECONDARY: "A.dog B.cat C.fish D.bird"}], max_iterations=1,
        )
        session.memory.learn("cat", ["n. 猫"])
        result = session.run()
        assert result.probes == 0
        assert host.taps == [px(selection.option_points[1])]


class TestPushMode:
    """notify() with debounce."""

    def test_debounce_window(self):
        now = [0.0]
        session = QuizSession(
            ScriptedPerception([{PRIMARY: "apple"}] * 5), FakeHost(),
            cfg=make_config(debounce_window=0.6), sleep=no_sleep,
            clock=lambda: now[0], show_panels=False,
        )
        assert session.notify()
        now[0] = 0.3
        assert not session.notify()
        now[0] = 0.7
        assert session.notify()
        assert session.iterations == 2

    def test_dropped_while_action_in_flight(self):
        session, _ = make_session([{PRIMARY: "apple"}])
        session.gateway._lock.acquire()
        try:
            assert not session.notify()
        finally:
            session.gateway._lock.release()
        assert session.iterations == 0

    def test_dropped_after_stop(self):
        session, _ = make_session([{PRIMARY: "apple"}])
        session.stop()
        assert not session.notify()

    def test_reset_clears_session(self):
        session, _ = make_session([LEARN_CAT], batch_size=2)
        session.notify()
        session.stop()
        session.reset()
        assert session.is_running()
        assert session.iterations == 0
        assert session.history == []
        assert session.orchestrator.phase is None
