"""
Output validation with layered, fault-tolerant matching.

Learner output is unpredictable (extra text, varying decimal places), so a
stage's success criteria are checked by an ordered list of independent
strategies. Each strategy owns one criteria category and returns a tri-state
result:

    SATISFIED       every declared item in its category matched
    NOT_APPLICABLE  the category is not declared for this stage
    UNSATISFIED     at least one declared item did not match

A verdict passes iff no strategy is UNSATISFIED. Malformed criteria (a regex
that does not compile) make their category unsatisfiable instead of raising.

Usage:
    from codepedagogy.core.validator import validate
    verdict = validate("Result: 2.9999999", source, SuccessCriteria(required_numbers=[3]))
    verdict.passed  # True
"""

import logging
import re
from typing import Iterable

from codepedagogy.core.config import ValidationConfig, config
from codepedagogy.core.types import (
    DIAGNOSTIC_ORDER,
    Diagnostic,
    DiagnosticCategory,
    StrategyResult,
    StrategyStatus,
    SuccessCriteria,
    Verdict,
)

logger = logging.getLogger(__name__)


# Signed integers, decimals and exponents. A token may not start right after a
# word character or a dot, nor run into a following word character, so `42`
# is never found inside `1420`, `142` or `item42`.
NUMBER_TOKEN = re.compile(
    r"(?<![\w.])[-+]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][-+]?\d+)?(?!\w)"
)

# `/pattern/flags` literals as written in stage content
REGEX_LITERAL = re.compile(r"^/(.*)/([a-z]*)$", re.DOTALL)
_LITERAL_FLAGS = {"i": re.IGNORECASE, "m": re.MULTILINE, "s": re.DOTALL}


# ============= Helpers =============


def extract_numbers(text: str) -> list[float]:
    """Return every numeric token in `text`, in order of appearance."""
    numbers = []
    for match in NUMBER_TOKEN.finditer(text or ""):
        try:
            numbers.append(float(match.group()))
        except ValueError:
            continue
    return numbers


def numbers_match(actual: float, expected: float, abs_tol: float, rel_tol: float) -> bool:
    """Equal within an absolute epsilon OR a fraction of the expected value."""
    diff = abs(float(actual) - float(expected))
    return diff <= abs_tol or diff <= rel_tol * abs(float(expected))


def format_number(value: float) -> str:
    value = float(value)
    return str(int(value)) if value.is_integer() else str(value)


def compile_pattern(pattern: str, flags: int) -> re.Pattern:
    """
    Compile a declared pattern.

    Accepts bare patterns and `/pattern/flags` literals. Literal flags are
    added to `flags`; unknown literal flags (g, u, y) are ignored.

    Raises:
        re.error: If the pattern does not compile
    """
    literal = REGEX_LITERAL.match(pattern)
    if literal:
        pattern = literal.group(1)
        for flag in literal.group(2):
            flags |= _LITERAL_FLAGS.get(flag, 0)
    return re.compile(pattern, flags)


def _normalize_whitespace(text: str) -> str:
    return " ".join(text.lower().split())


def flexible_output_match(
    output: str,
    expected: str,
    abs_tol: float = 1e-3,
    rel_tol: float = 1e-6,
) -> bool:
    """
    Match one expected output string against learner output.

    Tries, in order:
    1. Whitespace-normalized, case-insensitive substring
    2. Every number in `expected` present in `output` (within tolerance),
       plus at least one context word longer than 3 characters
    3. A pattern generalized from `expected` (digit runs match any digits,
       spaces and colons tolerate any whitespace)
    """
    normalized_output = _normalize_whitespace(output)
    normalized_expected = _normalize_whitespace(expected)

    if normalized_expected in normalized_output:
        return True

    expected_numbers = extract_numbers(expected)
    output_numbers = extract_numbers(output)
    if expected_numbers and output_numbers:
        has_all_numbers = all(
            any(numbers_match(actual, number, abs_tol, rel_tol) for actual in output_numbers)
            for number in expected_numbers
        )
        if has_all_numbers:
            context_words = [
                word for word in re.findall(r"[^\W\d_]+", normalized_expected) if len(word) > 3
            ]
            return not context_words or any(word in normalized_output for word in context_words)

    generalized = re.sub(r"\d+", lambda _: r"\d+", re.escape(normalized_expected))
    generalized = generalized.replace("\\ ", r"\s*").replace(":", r"\s*:\s*")
    try:
        return re.search(generalized, normalized_output, re.IGNORECASE) is not None
    except re.error:
        return False


# ============= Strategies =============


class ValidationStrategy:
    """
    One independent check over a shared SuccessCriteria record.

    Subclasses set `name` and `category` and implement `evaluate`.
    """

    name: str = "strategy"
    category: DiagnosticCategory

    def evaluate(
        self, output: str, source: str | None, criteria: SuccessCriteria
    ) -> StrategyResult:
        raise NotImplementedError

    def _result(
        self,
        missing: Iterable[str] = (),
        configuration_error: str | None = None,
        declared: bool = True,
    ) -> StrategyResult:
        missing = tuple(missing)
        if not declared:
            status = StrategyStatus.NOT_APPLICABLE
        elif missing or configuration_error:
            status = StrategyStatus.UNSATISFIED
        else:
            status = StrategyStatus.SATISFIED
        return StrategyResult(
            strategy=self.name,
            category=self.category,
            status=status,
            missing=missing,
            configuration_error=configuration_error,
        )


class SubstringStrategy(ValidationStrategy):
    """Required phrases, case-insensitive containment. No whitespace folding."""

    name = "substring"
    category = DiagnosticCategory.REQUIRED_TEXT

    def evaluate(self, output, source, criteria):
        if not criteria.required_text:
            return self._result(declared=False)
        folded = output.casefold()
        missing = [text for text in criteria.required_text if text.casefold() not in folded]
        return self._result(missing)


class NumericToleranceStrategy(ValidationStrategy):
    """Required numbers, each matched by any numeric token in the output."""

    name = "numeric"
    category = DiagnosticCategory.REQUIRED_NUMBERS

    def __init__(self, abs_tol: float, rel_tol: float):
        self.abs_tol = abs_tol
        self.rel_tol = rel_tol

    def evaluate(self, output, source, criteria):
        if not criteria.required_numbers:
            return self._result(declared=False)
        found = extract_numbers(output)
        missing = [
            format_number(number)
            for number in criteria.required_numbers
            if not any(numbers_match(actual, number, self.abs_tol, self.rel_tol) for actual in found)
        ]
        return self._result(missing)


class _PatternStrategy(ValidationStrategy):
    """Every declared regex must be found in the checked text."""

    def __init__(self, flags: int):
        self.flags = flags

    def _patterns(self, criteria: SuccessCriteria) -> tuple[str, ...]:
        raise NotImplementedError

    def _text(self, output: str, source: str | None) -> str | None:
        raise NotImplementedError

    def evaluate(self, output, source, criteria):
        patterns = self._patterns(criteria)
        if not patterns:
            return self._result(declared=False)

        compiled = []
        errors = []
        for pattern in patterns:
            try:
                compiled.append((pattern, compile_pattern(pattern, self.flags)))
            except re.error as e:
                errors.append(f"invalid {self.category.value} regex {pattern!r}: {e}")

        if errors:
            for error in errors:
                logger.warning(error)
            return self._result(missing=patterns, configuration_error="; ".join(errors))

        text = self._text(output, source)
        if text is None:
            return self._result(missing=patterns)
        missing = [pattern for pattern, regex in compiled if regex.search(text) is None]
        return self._result(missing)


class OutputPatternStrategy(_PatternStrategy):
    name = "regex"
    category = DiagnosticCategory.OUTPUT_PATTERNS

    def _patterns(self, criteria):
        return criteria.output_patterns

    def _text(self, output, source):
        return output


class CodePatternStrategy(_PatternStrategy):
    """Checks the submitted source, not the output."""

    name = "code_patterns"
    category = DiagnosticCategory.CODE_PATTERNS

    def _patterns(self, criteria):
        return criteria.code_patterns

    def _text(self, output, source):
        return source


class FlexibleOutputStrategy(ValidationStrategy):
    """Expected output strings, each through `flexible_output_match`."""

    name = "flexible"
    category = DiagnosticCategory.EXPECTED_OUTPUT

    def __init__(self, abs_tol: float, rel_tol: float):
        self.abs_tol = abs_tol
        self.rel_tol = rel_tol

    def evaluate(self, output, source, criteria):
        if not criteria.expected_output:
            return self._result(declared=False)
        missing = [
            expected
            for expected in criteria.expected_output
            if not flexible_output_match(output, expected, self.abs_tol, self.rel_tol)
        ]
        return self._result(missing)


def default_strategies(validation_config: ValidationConfig | None = None) -> list[ValidationStrategy]:
    cfg = validation_config or config.validation
    return [
        SubstringStrategy(),
        NumericToleranceStrategy(cfg.abs_tol, cfg.rel_tol),
        OutputPatternStrategy(cfg.pattern_flags),
        FlexibleOutputStrategy(cfg.abs_tol, cfg.rel_tol),
        CodePatternStrategy(cfg.pattern_flags),
    ]


# ============= Validator =============


_DIAGNOSTIC_LABELS = {
    DiagnosticCategory.CODE_PATTERNS: "Code is missing required construct",
    DiagnosticCategory.REQUIRED_TEXT: "Missing required text",
    DiagnosticCategory.REQUIRED_NUMBERS: "Missing required number",
    DiagnosticCategory.OUTPUT_PATTERNS: "Output does not match pattern",
    DiagnosticCategory.EXPECTED_OUTPUT: "Missing expected output",
}


def _diagnose(results: list[StrategyResult]) -> Diagnostic | None:
    """Report the first unsatisfied category in the fixed diagnostic order."""
    by_category = {result.category: result for result in results}
    for category in DIAGNOSTIC_ORDER:
        result = by_category.get(category)
        if result is None or not result.unsatisfied:
            continue
        if result.configuration_error:
            return Diagnostic(
                category=category,
                missing=result.missing,
                message=f"Stage configuration problem: {result.configuration_error}",
                configuration_error=True,
            )
        return Diagnostic(
            category=category,
            missing=result.missing,
            message=f"{_DIAGNOSTIC_LABELS[category]}: {', '.join(result.missing)}",
        )
    return None


class OutputValidator:
    """
    Pure function object: output + source + criteria -> Verdict.

    Holds no mutable state, so one instance can be shared freely.
    """

    def __init__(
        self,
        strategies: Iterable[ValidationStrategy] | None = None,
        validation_config: ValidationConfig | None = None,
    ):
        if strategies is None:
            strategies = default_strategies(validation_config)
        self.strategies = tuple(strategies)

    def validate(
        self,
        output: str | None,
        source_text: str | None,
        criteria: SuccessCriteria | None,
    ) -> Verdict:
        """
        Decide whether `output` (and `source_text`) satisfy `criteria`.

        Never raises for learner input or malformed criteria.
        """
        output = output or ""
        if criteria is None or criteria.is_empty():
            return Verdict(passed=True, strategy="vacuous")

        results = [strategy.evaluate(output, source_text, criteria) for strategy in self.strategies]
        matched = tuple(result.strategy for result in results if result.satisfied)
        configuration_errors = tuple(
            result.configuration_error for result in results if result.configuration_error
        )
        passed = not any(result.unsatisfied for result in results)

        if passed:
            return Verdict(
                passed=True,
                strategy=matched[0] if matched else "vacuous",
                matched_strategies=matched,
                results=tuple(results),
            )

        return Verdict(
            passed=False,
            strategy="none",
            matched_strategies=matched,
            diagnostic=_diagnose(results),
            configuration_errors=configuration_errors,
            results=tuple(results),
        )


def validate(
    output: str | None,
    source_text: str | None,
    criteria: SuccessCriteria | None,
) -> Verdict:
    """Validate with the default strategies and global tolerances."""
    return OutputValidator().validate(output, source_text, criteria)


def match_solution_output(output: str | None, solution_output: str | None) -> Verdict:
    """
    Compare learner output with the output of the stage's reference solution.

    For stages that declare no criteria but ship a solution. Outputs are equal
    after trimming, collapsing whitespace and lower-casing. A None
    `solution_output` means the solution itself did not run, which fails as a
    configuration error.
    """
    if solution_output is None:
        result = StrategyResult(
            strategy="solution",
            category=DiagnosticCategory.EXPECTED_OUTPUT,
            status=StrategyStatus.UNSATISFIED,
            configuration_error="Could not execute solution code",
        )
    else:
        expected = _normalize_whitespace(solution_output)
        matched = _normalize_whitespace(output or "") == expected
        result = StrategyResult(
            strategy="solution",
            category=DiagnosticCategory.EXPECTED_OUTPUT,
            status=StrategyStatus.SATISFIED if matched else StrategyStatus.UNSATISFIED,
            missing=() if matched else (solution_output.strip(),),
        )

    if result.satisfied:
        return Verdict(
            passed=True,
            strategy="solution",
            matched_strategies=("solution",),
            results=(result,),
        )
    return Verdict(
        passed=False,
        strategy="none",
        diagnostic=_diagnose([result]),
        configuration_errors=(result.configuration_error,) if result.configuration_error else (),
        results=(result,),
    )
