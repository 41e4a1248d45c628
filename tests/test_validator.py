"""Tests for layered output validation."""

import pytest

from codepedagogy.core.config import ValidationConfig
from codepedagogy.core.types import (
    DiagnosticCategory,
    StrategyResult,
    StrategyStatus,
    SuccessCriteria,
)
from codepedagogy.core.validator import (
    OutputValidator,
    ValidationStrategy,
    flexible_output_match,
    validate,
)


class TestSubstringStrategy:
    def test_case_insensitive_match(self):
        verdict = validate("The answer is 42", None, SuccessCriteria(required_text=["answer"]))
        assert verdict.passed
        assert verdict.strategy == "substring"

    def test_upper_case_requirement_matches_lower_output(self):
        verdict = validate("the answer is 42", None, SuccessCriteria(required_text=["ANSWER"]))
        assert verdict.passed

    def test_missing_text_fails_with_diagnostic(self):
        verdict = validate("no clue", None, SuccessCriteria(required_text=["Answer"]))
        assert not verdict.passed
        assert verdict.strategy == "none"
        assert verdict.diagnostic.category == DiagnosticCategory.REQUIRED_TEXT
        assert verdict.diagnostic.missing == ("Answer",)

    def test_whitespace_is_not_normalized(self):
        verdict = validate("hello   world", None, SuccessCriteria(required_text=["hello world"]))
        assert not verdict.passed

    def test_every_phrase_is_required(self):
        verdict = validate("alpha beta", None, SuccessCriteria(required_text=["alpha", "gamma"]))
        assert not verdict.passed
        assert verdict.diagnostic.missing == ("gamma",)


class TestNumericStrategy:
    def test_float_formatting_within_tolerance(self):
        verdict = validate("Result: 2.9999999", None, SuccessCriteria(required_numbers=[3]))
        assert verdict.passed
        assert verdict.strategy == "numeric"

    def test_decimal_point_zero(self):
        assert validate("x = 3.0", None, SuccessCriteria(required_numbers=[3])).passed

    def test_no_match_inside_larger_number(self):
        verdict = validate("Result: 142", None, SuccessCriteria(required_numbers=[42]))
        assert not verdict.passed
        assert verdict.diagnostic.category == DiagnosticCategory.REQUIRED_NUMBERS
        assert verdict.diagnostic.missing == ("42",)

    def test_no_match_inside_1420(self):
        assert not validate("1420 items", None, SuccessCriteria(required_numbers=[42])).passed

    def test_negative_numbers(self):
        criteria = SuccessCriteria(required_numbers=[-3.5])
        assert validate("Temperature: -3.5 degrees", None, criteria).passed
        assert not validate("Temperature: 3.5 degrees", None, criteria).passed

    def test_any_candidate_is_enough(self):
        assert validate("Values 10, 20, 30", None, SuccessCriteria(required_numbers=[20])).passed

    def test_no_numbers_in_output_is_unsatisfied(self):
        verdict = validate("nothing numeric", None, SuccessCriteria(required_numbers=[1]))
        assert not verdict.passed
        assert verdict.configuration_errors == ()

    def test_relative_tolerance_for_large_values(self):
        assert validate("1000000000.5", None, SuccessCriteria(required_numbers=[1e9])).passed

    def test_custom_tolerance(self):
        validator = OutputValidator(validation_config=ValidationConfig(abs_tol=0.1, rel_tol=0))
        criteria = SuccessCriteria(required_numbers=[1.0])
        assert validator.validate("1.05", None, criteria).passed
        assert not validator.validate("1.2", None, criteria).passed


class TestOutputPatternStrategy:
    def test_regex_literal_matches_line(self):
        criteria = SuccessCriteria(output_patterns=[r"/^\d{4}-\d{2}-\d{2}$/"])
        verdict = validate("2024-01-15", None, criteria)
        assert verdict.passed
        assert verdict.strategy == "regex"

    def test_anchors_match_inside_multiline_output(self):
        criteria = SuccessCriteria(output_patterns=[r"^\d{4}-\d{2}-\d{2}$"])
        assert validate("Dates found:\n2024-01-15\n", None, criteria).passed

    def test_absent_pattern_reports_output_patterns(self):
        criteria = SuccessCriteria(output_patterns=[r"^\d{4}-\d{2}-\d{2}$"])
        verdict = validate("no date here", None, criteria)
        assert not verdict.passed
        assert verdict.diagnostic.category.value == "outputPatterns"

    def test_unanchored_search(self):
        criteria = SuccessCriteria(output_patterns=["result.*42"])
        assert validate("The Result is 42", None, criteria).passed

    def test_malformed_regex_fails_closed(self):
        criteria = SuccessCriteria(output_patterns=["([unclosed"])
        verdict = validate("anything", None, criteria)
        assert not verdict.passed
        assert verdict.configuration_errors
        assert verdict.diagnostic.configuration_error
        assert verdict.diagnostic.category == DiagnosticCategory.OUTPUT_PATTERNS


class TestCodePatterns:
    CRITERIA = SuccessCriteria(code_patterns=[r"for\s+\w+\s+in"], required_numbers=[42])

    def test_missing_construct_fails_even_when_number_present(self):
        verdict = validate("42", "total = 42\nprint(total)", self.CRITERIA)
        assert not verdict.passed
        assert verdict.diagnostic.category == DiagnosticCategory.CODE_PATTERNS
        assert "numeric" in verdict.matched_strategies

    def test_both_satisfied_passes(self):
        source = "total = 0\nfor n in [40, 2]:\n    total += n\nprint(total)"
        assert validate("42", source, self.CRITERIA).passed

    def test_missing_source_cannot_satisfy_code_patterns(self):
        assert not validate("42", None, self.CRITERIA).passed

    def test_code_pattern_only_stage(self):
        verdict = validate("", "ages = [1, 2]", SuccessCriteria(code_patterns=[r"ages\s*=\s*\["]))
        assert verdict.passed
        assert verdict.strategy == "code_patterns"


class TestVerdict:
    def test_no_criteria_is_vacuous_pass(self):
        verdict = validate("whatever", None, SuccessCriteria())
        assert verdict.passed
        assert verdict.strategy == "vacuous"

    def test_none_criteria_is_vacuous_pass(self):
        assert validate("", None, None).passed

    def test_none_output_is_empty_output(self):
        assert not validate(None, None, SuccessCriteria(required_text=["x"])).passed

    def test_diagnostic_order_text_before_numbers(self):
        criteria = SuccessCriteria(required_text=["label"], required_numbers=[7])
        verdict = validate("nothing", None, criteria)
        assert verdict.diagnostic.category == DiagnosticCategory.REQUIRED_TEXT

    def test_diagnostic_order_code_first(self):
        criteria = SuccessCriteria(output_patterns=["zzz"], code_patterns=["while"])
        verdict = validate("nothing", "pass", criteria)
        assert verdict.diagnostic.category == DiagnosticCategory.CODE_PATTERNS

    def test_configuration_error_reported_even_when_not_first_diagnostic(self):
        criteria = SuccessCriteria(required_text=["label"], output_patterns=["(bad"])
        verdict = validate("nothing", None, criteria)
        assert verdict.diagnostic.category == DiagnosticCategory.REQUIRED_TEXT
        assert not verdict.diagnostic.configuration_error
        assert len(verdict.configuration_errors) == 1

    def test_all_categories_pass_together(self):
        criteria = SuccessCriteria(
            required_numbers=[42, 3.14],
            required_text=["hello", "world"],
            output_patterns=[r"\d+", "hello.*world"],
        )
        verdict = validate("hello world! The answer is 42 and pi is 3.14", None, criteria)
        assert verdict.passed
        assert set(verdict.matched_strategies) == {"substring", "numeric", "regex"}

    def test_wrong_number_fails_multi_category(self):
        criteria = SuccessCriteria(
            required_numbers=[42], required_text=["result"], output_patterns=["result.*42"]
        )
        verdict = validate("The result is 41", None, criteria)
        assert not verdict.passed
        assert verdict.diagnostic.category == DiagnosticCategory.REQUIRED_NUMBERS


class TestFlexibleExpectedOutput:
    def test_whitespace_and_case_normalized_substring(self):
        assert flexible_output_match("AVERAGE   age: 1333.33\n", "Average age: 1333.33")

    def test_numbers_with_context_word(self):
        assert flexible_output_match("The total comes to 42.0", "total: 42")

    def test_numbers_without_context_word_fails(self):
        assert not flexible_output_match("Count 23", "Fragments: 23")

    def test_generalized_pattern_allows_spacing_and_other_digits(self):
        assert flexible_output_match("TOTAL : 43", "Total: 42")

    def test_expected_output_through_validator(self):
        verdict = validate("Average age: 1333.33", None, SuccessCriteria(expected_output="Average age: 1333.33"))
        assert verdict.passed
        assert verdict.strategy == "flexible"

    def test_expected_output_missing(self):
        verdict = validate("", None, SuccessCriteria(expected_output=["Fragments: 23"]))
        assert not verdict.passed
        assert verdict.diagnostic.category == DiagnosticCategory.EXPECTED_OUTPUT


class _AlwaysUnsatisfied(ValidationStrategy):
    name = "always_no"
    category = DiagnosticCategory.OUTPUT_PATTERNS

    def evaluate(self, output, source, criteria):
        return StrategyResult(
            strategy=self.name,
            category=self.category,
            status=StrategyStatus.UNSATISFIED,
            missing=("custom",),
        )


def test_custom_strategy_can_be_added():
    validator = OutputValidator(strategies=[_AlwaysUnsatisfied()])
    verdict = validator.validate("x", None, SuccessCriteria(required_text=["x"]))
    assert not verdict.passed
    assert verdict.diagnostic.missing == ("custom",)


@pytest.mark.parametrize(
    "output, expected",
    [
        ("Answer: 42", True),
        ("answer: 42.0004", True),
        ("answer: 42.01", False),
        ("answer: 4200", False),
    ],
)
def test_numeric_tolerance_boundaries(output, expected):
    assert validate(output, None, SuccessCriteria(required_numbers=[42])).passed is expected
