"""
Tests for the page state classifier.
"""
import pytest

from quizagent.classifier import PRIMARY, SECONDARY, StateClassifier
from quizagent.diagnostics import MemoryDiagnostics
from quizagent.models import Direction, PageState


@pytest.fixture
def classifier():
    return StateClassifier()


def sample(primary="", secondary=""):
    return {PRIMARY: primary, SECONDARY: secondary}


class TestRules:
    """Priority-ordered classification rules."""

    def test_quiz_with_inline_options(self, classifier):
        result = classifier.classify(sample("hello", "A.你好 B.再见 C.谢谢 D.对不起"))
        assert result.state == PageState.QUIZ
        assert result.fields["word"] == "hello"
        assert result.fields["options"] == ["你好", "再见", "谢谢", "对不起"]
        assert result.fields["direction"] == Direction.WORD_TO_DEFINITION

    def test_learning_card(self, classifier):
        result = classifier.classify(sample("apple", "n. 苹果\n例句 An apple a day"))
        assert result.state == PageState.WORD_WITH_DEFINITION
        assert result.fields == {"word": "apple", "definition": "n. 苹果"}

    def test_learning_card_without_tag(self, classifier):
        result = classifier.classify(sample("apple", "apple\n苹果"))
        assert result.state == PageState.WORD_WITH_DEFINITION
        assert result.fields["definition"] == "苹果"

    def test_word_only(self, classifier):
        result = classifier.classify(sample("apple", ""))
        assert result.state == PageState.WORD_ONLY
        assert result.fields == {"word": "apple"}

    def test_completion_keyword(self, classifier):
        result = classifier.classify(sample("apple", "恭喜你完成今日任务"))
        assert result.state == PageState.COMPLETION

    def test_completion_requires_whole_group(self, classifier):
        assert classifier.classify(sample("", "强化练习 点击继续")).state == PageState.COMPLETION
        assert classifier.classify(sample("", "强化练习")).state == PageState.UNKNOWN

    def test_completion_beats_quiz(self, classifier):
        result = classifier.classify(sample("hello", "A.你好 B.再见 恭喜你完成"))
        assert result.state == PageState.COMPLETION

    def test_must_answer_prompt(self, classifier):
        result = classifier.classify(sample("hello", "本题必须作答"))
        assert result.state == PageState.ANSWER_PROMPT

    def test_definition_to_word_quiz(self, classifier):
        result = classifier.classify(sample("n. 猫", "A.dog B.cat C.fish D.bird"))
        assert result.state == PageState.QUIZ
        assert result.fields["direction"] == Direction.DEFINITION_TO_WORD
        assert result.fields["definition"] == "n. 猫"
        assert result.fields["options"] == ["dog", "cat", "fish", "bird"]

    def test_no_word_is_unknown(self, classifier):
        result = classifier.classify(sample("123", "你好"))
        assert result.state == PageState.UNKNOWN
        assert result.fields == {}


class TestRobustness:
    """classify never raises."""

    @pytest.mark.parametrize("raw", [{}, None, sample(), {PRIMARY: None, SECONDARY: None}])
    def test_empty_samples_are_unknown(self, classifier, raw):
        assert classifier.classify(raw).state == PageState.UNKNOWN

    def test_internal_failure_is_reported(self):
        diagnostics = MemoryDiagnostics()
        classifier = StateClassifier(diagnostics=diagnostics)
        result = classifier.classify({PRIMARY: 42, SECONDARY: "x"})
        assert result.state == PageState.UNKNOWN
        assert diagnostics.codes() == ["CLASSIFY_ERROR"]


class TestOptionExtraction:
    """The three option extraction tiers."""

    def test_fullwidth_separators(self, classifier):
        text = "A．快的 B、慢的 C：高的 D:矮的"
        assert classifier.extract_options(text) == ["快的", "慢的", "高的", "矮的"]

    def test_line_prefixes(self, classifier):
        text = "A.快的\nB.慢的\nC.高的\nD.矮的"
        assert classifier.extract_options(text) == ["快的", "慢的", "高的", "矮的"]

    def test_script_lines_fallback(self, classifier):
        text = "A.快的\n慢的\n高的\n矮的"
        assert classifier.extract_options(text) == ["A.快的", "慢的", "高的", "矮的"]

    def test_partial_options_are_reported(self):
        diagnostics = MemoryDiagnostics()
        classifier = StateClassifier(diagnostics=diagnostics)
        options = classifier.extract_options("A.快的 B.慢的")
        assert options == ["快的", "慢的"]
        assert diagnostics.codes() == ["OPTIONS_PARTIAL"]

    def test_extract_definition_prefers_tagged_line(self):
        text = "例句\nadj. 快的"
        assert StateClassifier.extract_definition(text) == "adj. 快的"

    def test_extract_definition_none_without_script(self):
        assert StateClassifier.extract_definition("only latin") is None
