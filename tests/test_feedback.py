"""Tests for learner-facing feedback."""

import pytest

from codepedagogy.core.config import FeedbackConfig
from codepedagogy.core.feedback import (
    build_feedback,
    explain_code_pattern,
    explain_output_pattern,
    select_hints,
)
from codepedagogy.core.types import Stage, SuccessCriteria
from codepedagogy.core.validator import validate

STAGE = Stage.model_validate({
    "id": 5,
    "hints": [
        "Remember to calculate the sum before dividing",
        "Use print() to format the output",
        "A for loop can visit every item",
    ],
})


def test_passed_verdict_has_no_feedback():
    verdict = validate("42", None, SuccessCriteria(required_numbers=[42]))
    assert build_feedback(verdict, "42", STAGE) is None


def test_interpreter_error_wins():
    feedback = build_feedback(None, "", STAGE, error="NameError: name 'x' is not defined")
    assert feedback.status_text == "Error"
    assert "NameError" in feedback.message


def test_empty_output_suggests_first_hint():
    verdict = validate("", None, SuccessCriteria(required_numbers=[42]))
    feedback = build_feedback(verdict, "", STAGE)
    assert feedback.status_text == "No Output"
    assert feedback.suggested_hints == ("Remember to calculate the sum before dividing",)


def test_wrong_numbers_picks_calculation_hints():
    verdict = validate("41", None, SuccessCriteria(required_numbers=[42]))
    feedback = build_feedback(verdict, "41", STAGE)
    assert feedback.status_text == "Wrong Numbers"
    assert feedback.suggested_hints == ("Remember to calculate the sum before dividing",)


def test_code_structure_feedback():
    verdict = validate("6", "total = 6", SuccessCriteria(code_patterns=[r"for\s+\w+\s+in"]))
    feedback = build_feedback(verdict, "6", STAGE)
    assert feedback.status_text == "Code Structure"


def test_pattern_mismatch_includes_truncated_output():
    output = "x" * 50
    verdict = validate(output, None, SuccessCriteria(output_patterns=["^Total"]))
    feedback = build_feedback(verdict, output, STAGE, feedback_config=FeedbackConfig(max_output_preview=10))
    assert feedback.status_text == "Pattern Mismatch"
    assert feedback.message.endswith("Your output: xxxxxxxxxx...")


def test_configuration_problem_is_distinct():
    verdict = validate("anything", None, SuccessCriteria(output_patterns=["(broken"]))
    feedback = build_feedback(verdict, "anything", STAGE)
    assert feedback.status_text == "Configuration Problem"
    assert feedback.suggested_hints == ()


def test_select_hints_limit():
    hints = ["print a", "print b", "print c"]
    assert select_hints(hints, ("print",), 2) == ("print a", "print b")
    assert select_hints(hints, (), 1) == ("print a",)
    assert select_hints(hints, ("loop",), 2) == ()


def test_code_structure_message_is_readable():
    verdict = validate("6", "total = 6", SuccessCriteria(code_patterns=[r"for\s+\w+\s+in"]))
    feedback = build_feedback(verdict, "6", STAGE)
    assert feedback.message.startswith("Your code needs a for loop")
    assert "\\s" not in feedback.message


def test_code_structure_beats_no_output():
    # A setup cell that prints nothing but misses its construct
    verdict = validate("", "ages = list()", SuccessCriteria(code_patterns=[r"ages\s*=\s*\["]))
    feedback = build_feedback(verdict, "", STAGE)
    assert feedback.status_text == "Code Structure"
    assert feedback.message == 'Create or use a variable named "ages"'


def test_output_pattern_message_is_readable():
    verdict = validate("Catalog", None, SuccessCriteria(output_patterns=["Manuscript Catalog.*MS-ALEX-2847"]))
    feedback = build_feedback(verdict, "Catalog", STAGE)
    assert feedback.message.startswith("Expected pattern: Manuscript Catalog (any text) MS-ALEX-2847.")


@pytest.mark.parametrize(
    "pattern, expected",
    [
        (r"for\s+\w+\s+in", "Your code needs a for loop to iterate through the data (e.g., for item in list:)"),
        (r"/for\s+\w+\s+in/i", "Your code needs a for loop to iterate through the data (e.g., for item in list:)"),
        (r"def\s+average\s*\(", 'Define a function named "average" (e.g., def average(...):)'),
        (r"total_characters\s*\+=", "Update the total_characters variable (use += to add to it)"),
        (r"fragment_count\s*=\s*23", 'Create or use a variable named "fragment_count"'),
        (r"\.replace\s*\(", "Use the .replace() method to substitute text"),
        (r"\w+\s*=\s*len\(", "Your code structure needs: word=len(. Review the challenge instructions."),
        (r"print\s*\(.*fragment_count", "Your code structure needs: print(...fragment_count. Review the challenge instructions."),
        (r"while\s+\w+", "Your code structure needs: while word. Review the challenge instructions."),
    ],
)
def test_explain_code_pattern(pattern, expected):
    assert explain_code_pattern(pattern) == expected


@pytest.mark.parametrize(
    "pattern, expected",
    [
        ("Fragments?.*23", "Fragments? (any text) 23"),
        (r"^Total:\s*\d+$", "Total: (number)"),
        ("(cat|dog)", "cat OR dog"),
    ],
)
def test_explain_output_pattern(pattern, expected):
    assert explain_output_pattern(pattern) == (
        f"Expected pattern: {expected}. Check that your print statement includes the right text format."
    )
