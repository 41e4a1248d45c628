"""
codepedagogy: accumulated execution and output validation for coding lessons.

- Accumulator: which cells ran successfully, and the composite source to run
- Validator: layered matching of learner output against success criteria
- Session: the execute -> record -> validate loop for one learner
"""

from codepedagogy.core.types import (
    # Content
    Stage,
    CellDefinition,
    SuccessCriteria,
    ExecutionMode,
    # Execution
    ExecutionOutcome,
    ExecutionRecord,
    # Validation
    StrategyStatus,
    StrategyResult,
    DiagnosticCategory,
    Diagnostic,
    Verdict,
    # Host-facing
    Feedback,
    CellRunResult,
)
from codepedagogy.core.accumulator import ExecutionAccumulator
from codepedagogy.core.validator import OutputValidator, validate
from codepedagogy.core.session import ExerciseSession
from codepedagogy.core.content import load_stages, get_stage
from codepedagogy.core.hints import HintContext, request_hint
from codepedagogy.core.errors import CodePedagogyError, ContentError, InterpreterError

__version__ = "0.1.0"

__all__ = [
    "Stage",
    "CellDefinition",
    "SuccessCriteria",
    "ExecutionMode",
    "ExecutionOutcome",
    "ExecutionRecord",
    "StrategyStatus",
    "StrategyResult",
    "DiagnosticCategory",
    "Diagnostic",
    "Verdict",
    "Feedback",
    "CellRunResult",
    "ExecutionAccumulator",
    "OutputValidator",
    "validate",
    "ExerciseSession",
    "load_stages",
    "get_stage",
    "HintContext",
    "request_hint",
    "CodePedagogyError",
    "ContentError",
    "InterpreterError",
]
