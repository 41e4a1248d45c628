"""Learner-facing feedback for failed cell runs.

Turns an execution error or a failed Verdict into a short status text, a
message, and the stage hints most likely to help with the unmet criterion.
"""

import re

from codepedagogy.core.config import FeedbackConfig, config
from codepedagogy.core.types import DiagnosticCategory, Feedback, Stage, Verdict
from codepedagogy.core.validator import REGEX_LITERAL

# Keywords used to pick relevant stage hints per failed category
HINT_KEYWORDS: dict[DiagnosticCategory, tuple[str, ...]] = {
    DiagnosticCategory.CODE_PATTERNS: ("variable", "loop", "function", "use"),
    DiagnosticCategory.REQUIRED_TEXT: ("format", "print", "output"),
    DiagnosticCategory.REQUIRED_NUMBERS: ("calculat", "math", "number"),
    DiagnosticCategory.OUTPUT_PATTERNS: ("format", "structure"),
    DiagnosticCategory.EXPECTED_OUTPUT: (),
}

STATUS_TEXT: dict[DiagnosticCategory, str] = {
    DiagnosticCategory.CODE_PATTERNS: "Code Structure",
    DiagnosticCategory.REQUIRED_TEXT: "Missing Text",
    DiagnosticCategory.REQUIRED_NUMBERS: "Wrong Numbers",
    DiagnosticCategory.OUTPUT_PATTERNS: "Pattern Mismatch",
    DiagnosticCategory.EXPECTED_OUTPUT: "Output Mismatch",
}

ADVICE: dict[DiagnosticCategory, str] = {
    DiagnosticCategory.REQUIRED_TEXT: "Check that your print statements include all the required labels.",
    DiagnosticCategory.REQUIRED_NUMBERS: "Double-check your calculations and variable assignments.",
    DiagnosticCategory.EXPECTED_OUTPUT: "Compare your output carefully with what is expected.",
}


# ============= Readable Patterns =============

# A name not preceded by a backslash, so `\w+` is never read as the name "w"
_NAME = r"(?<![\\\w])(\w+)"

_CODE_READABLE = (
    (r"\s+", " "),
    (r"\s*", ""),
    (r"\w+", "word"),
    (r"\(", "("),
    (r"\)", ")"),
    ("\\", ""),
    ("[^", "not "),
    ("]", ""),
    ("[", ""),
    ("|", " or "),
    (".*", "..."),
    (".+", "..."),
)

_OUTPUT_READABLE = (
    ("(", ""),
    (")", ""),
    ("[", ""),
    ("]", ""),
    ("|", " OR "),
    (".*", " (any text) "),
    (r"\s*", " "),
    (r"\s+", " "),
    (r"\d+", " (number) "),
    ("\\", ""),
    ("^", ""),
    ("$", ""),
)


def _pattern_body(pattern: str) -> str:
    literal = REGEX_LITERAL.match(pattern)
    return literal.group(1) if literal else pattern


def _readable(pattern: str, replacements: tuple[tuple[str, str], ...]) -> str:
    for old, new in replacements:
        pattern = pattern.replace(old, new)
    return " ".join(pattern.split())


def explain_code_pattern(pattern: str) -> str:
    """Turn a code-structure regex into an instruction a learner can follow."""
    pattern = _pattern_body(pattern)

    if re.search(r"for\\s\+\\w\+\\s\+in", pattern):
        return "Your code needs a for loop to iterate through the data (e.g., for item in list:)"

    function = re.search(r"def\\s\+" + _NAME + r"\\s\*\\\(", pattern)
    if function:
        name = function.group(1)
        return f"Define a function named \"{name}\" (e.g., def {name}(...):)"

    update = re.search(_NAME + r"\\s\*(?:\\\+=|\[\+=\])", pattern)
    if update:
        return f"Update the {update.group(1)} variable (use += to add to it)"

    variable = re.search(_NAME + r"\\s\*=", pattern)
    if variable:
        return f"Create or use a variable named \"{variable.group(1)}\""

    if ".replace" in pattern:
        return "Use the .replace() method to substitute text"

    return f"Your code structure needs: {_readable(pattern, _CODE_READABLE)}. Review the challenge instructions."


def explain_output_pattern(pattern: str) -> str:
    """Turn an output regex into a description of the expected text."""
    readable = _readable(_pattern_body(pattern), _OUTPUT_READABLE)
    return f"Expected pattern: {readable}. Check that your print statement includes the right text format."


# ============= Feedback =============


def select_hints(
    hints: tuple[str, ...] | list[str],
    keywords: tuple[str, ...],
    limit: int,
) -> tuple[str, ...]:
    """Hints mentioning any keyword; the first hints when no keywords are given."""
    if not keywords:
        return tuple(hints[:limit])
    selected = [hint for hint in hints if any(word in hint.lower() for word in keywords)]
    return tuple(selected[:limit])


def build_feedback(
    verdict: Verdict | None,
    output: str,
    stage: Stage | None = None,
    error: str | None = None,
    feedback_config: FeedbackConfig | None = None,
) -> Feedback | None:
    """
    Build feedback for one run. Returns None when the run passed.

    Args:
        verdict: Validation verdict, None if the interpreter reported an error
        output: Captured output of the run
        stage: Stage providing hints (optional)
        error: Interpreter error text, if any
    """
    cfg = feedback_config or config.feedback
    hints = stage.hints if stage is not None else ()

    if error is not None:
        return Feedback(status_text="Error", message=error)

    if verdict is None or verdict.passed:
        return None

    diagnostic = verdict.diagnostic
    if diagnostic is not None and diagnostic.configuration_error:
        return Feedback(
            status_text="Configuration Problem",
            message=f"This step's checks could not be evaluated. {diagnostic.message}",
        )

    structural = diagnostic is not None and diagnostic.category is DiagnosticCategory.CODE_PATTERNS
    if not output.strip() and not structural:
        return Feedback(
            status_text="No Output",
            message="Your code ran but didn't produce any output. Use print() to display results.",
            suggested_hints=tuple(hints[:1]),
        )

    if diagnostic is None:
        return Feedback(
            status_text="Validation Failed",
            message="Review your code logic and expected output format.",
            suggested_hints=tuple(hints[:1]),
        )

    category = diagnostic.category
    if category is DiagnosticCategory.CODE_PATTERNS:
        message = " ".join(explain_code_pattern(pattern) for pattern in diagnostic.missing)
    elif category is DiagnosticCategory.OUTPUT_PATTERNS:
        message = " ".join(explain_output_pattern(pattern) for pattern in diagnostic.missing)
    else:
        message = f"{diagnostic.message}. {ADVICE[category]}"
    if category is DiagnosticCategory.OUTPUT_PATTERNS or category is DiagnosticCategory.EXPECTED_OUTPUT:
        preview = output[: cfg.max_output_preview]
        if len(output) > cfg.max_output_preview:
            preview += "..."
        message += f" Your output: {preview}"

    return Feedback(
        status_text=STATUS_TEXT[category],
        message=message,
        suggested_hints=select_hints(hints, HINT_KEYWORDS[category], cfg.max_suggested_hints),
    )
