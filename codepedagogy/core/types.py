"""
Type definitions for codepedagogy.

All shared types in one place:
- Content types (Stage, CellDefinition, SuccessCriteria)
- Execution types (ExecutionOutcome, ExecutionRecord)
- Validation types (StrategyResult, Diagnostic, Verdict)
- Host-facing result types (Feedback, CellRunResult)

Content and result records are frozen: content is owned by the stage files
and results are handed to collaborators (UI, hint system) that must not
mutate them.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


# ============= Enums =============


class ExecutionMode(str, Enum):
    SINGLE = "single"
    MULTI_CELL = "multi-cell"


class StrategyStatus(str, Enum):
    """Tri-state result of one validation strategy."""

    SATISFIED = "satisfied"
    NOT_APPLICABLE = "not_applicable"
    UNSATISFIED = "unsatisfied"


class DiagnosticCategory(str, Enum):
    """Success criteria categories, named as they appear in stage content."""

    CODE_PATTERNS = "codePatterns"
    REQUIRED_TEXT = "requiredText"
    REQUIRED_NUMBERS = "requiredNumbers"
    OUTPUT_PATTERNS = "outputPatterns"
    EXPECTED_OUTPUT = "expectedOutput"


# Order in which failed categories are reported. Diagnostic only.
DIAGNOSTIC_ORDER: tuple[DiagnosticCategory, ...] = (
    DiagnosticCategory.CODE_PATTERNS,
    DiagnosticCategory.REQUIRED_TEXT,
    DiagnosticCategory.REQUIRED_NUMBERS,
    DiagnosticCategory.OUTPUT_PATTERNS,
    DiagnosticCategory.EXPECTED_OUTPUT,
)


# ============= Content Types =============


class SuccessCriteria(BaseModel):
    """Declarative pass conditions for a stage or cell.

    Every category is optional. Undeclared (empty) categories are vacuously
    satisfied. Unknown keys are rejected. Accepts both the camelCase keys
    used in stage files and the snake_case field names.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    required_text: tuple[str, ...] = Field(default=(), alias="requiredText")
    required_numbers: tuple[float, ...] = Field(default=(), alias="requiredNumbers")
    output_patterns: tuple[str, ...] = Field(default=(), alias="outputPatterns")
    code_patterns: tuple[str, ...] = Field(default=(), alias="codePatterns")
    expected_output: tuple[str, ...] = Field(default=(), alias="expectedOutput")

    @field_validator(
        "required_text",
        "required_numbers",
        "output_patterns",
        "code_patterns",
        "expected_output",
        mode="before",
    )
    @classmethod
    def _coerce_sequence(cls, value: Any) -> Any:
        if value is None:
            return ()
        if isinstance(value, (str, int, float)) and not isinstance(value, bool):
            return (value,)
        return value

    def is_empty(self) -> bool:
        return not (
            self.required_text
            or self.required_numbers
            or self.output_patterns
            or self.code_patterns
            or self.expected_output
        )


class CellDefinition(BaseModel):
    """One independently runnable code fragment of a multi-cell stage."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    index: int = Field(ge=0)
    starter_code: str = Field(default="", alias="starterCode")
    instruction: str | None = None
    validation: SuccessCriteria | None = None
    expected_output: tuple[str, ...] = Field(default=(), alias="expectedOutput")

    @field_validator("expected_output", mode="before")
    @classmethod
    def _coerce_expected(cls, value: Any) -> Any:
        if value is None:
            return ()
        if isinstance(value, str):
            return (value,)
        return value

    @property
    def criteria(self) -> SuccessCriteria | None:
        """Explicit validation rules win; bare expected output is the fallback."""
        if self.validation is not None:
            return self.validation
        if self.expected_output:
            return SuccessCriteria(expected_output=self.expected_output)
        return None


class Stage(BaseModel):
    """
    One curriculum unit.

    Cells without an explicit index get their list position. The mode is
    derived from the presence of cells unless the content states it.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: int
    title: str = ""
    mode: ExecutionMode = ExecutionMode.SINGLE
    cells: tuple[CellDefinition, ...] = ()
    validation: SuccessCriteria = Field(default_factory=SuccessCriteria)
    starter_code: str = Field(default="", alias="starterCode")
    solution: str | None = None
    hints: tuple[str, ...] = ()
    story: str | None = None
    challenge: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _fill_cell_indices_and_mode(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        cells = data.get("cells") or []
        filled = []
        for position, cell in enumerate(cells):
            if isinstance(cell, dict) and cell.get("index") is None:
                cell = {**cell, "index": position}
            filled.append(cell)
        data["cells"] = filled
        if data.get("mode") is None:
            data["mode"] = ExecutionMode.MULTI_CELL if filled else ExecutionMode.SINGLE
        if data.get("validation") is None:
            data.pop("validation", None)
        return data

    @model_validator(mode="after")
    def _check_cells(self) -> "Stage":
        indices = [cell.index for cell in self.cells]
        if len(indices) != len(set(indices)):
            raise ValueError(f"Stage {self.id}: duplicate cell indices {indices}")
        if self.mode is ExecutionMode.MULTI_CELL and not self.cells:
            raise ValueError(f"Stage {self.id}: multi-cell stage declares no cells")
        return self

    @property
    def is_multi_cell(self) -> bool:
        return self.mode is ExecutionMode.MULTI_CELL

    @property
    def cell_indices(self) -> list[int]:
        return sorted(cell.index for cell in self.cells)

    def cell(self, index: int) -> CellDefinition:
        for cell in self.cells:
            if cell.index == index:
                return cell
        raise KeyError(f"Stage {self.id} has no cell {index}")

    def criteria_for(self, cell_index: int | None = None) -> SuccessCriteria:
        """Criteria that apply to one cell, falling back to the stage's own."""
        if cell_index is not None:
            cell_criteria = self.cell(cell_index).criteria
            if cell_criteria is not None:
                return cell_criteria
        return self.validation


# ============= Execution Types =============


class ExecutionOutcome(BaseModel):
    """What the interpreter reported: captured output or an error, never both."""

    model_config = ConfigDict(frozen=True)

    output: str | None = None
    error: str | None = None

    @model_validator(mode="after")
    def _exactly_one(self) -> "ExecutionOutcome":
        if (self.output is None) == (self.error is None):
            raise ValueError("ExecutionOutcome needs exactly one of output or error")
        return self

    @classmethod
    def success(cls, output: str = "") -> "ExecutionOutcome":
        return cls(output=output)

    @classmethod
    def failure(cls, error: str) -> "ExecutionOutcome":
        return cls(error=error)

    @property
    def succeeded(self) -> bool:
        return self.error is None


class ExecutionRecord(BaseModel):
    """One cell run. Kept only for the current stage attempt."""

    model_config = ConfigDict(frozen=True)

    stage_id: int
    cell_index: int
    source: str
    outcome: ExecutionOutcome
    sequence: int
    timestamp: datetime = Field(default_factory=datetime.now)

    @property
    def succeeded(self) -> bool:
        return self.outcome.succeeded

    @property
    def output(self) -> str:
        return self.outcome.output or ""

    @property
    def error(self) -> str | None:
        return self.outcome.error


# ============= Validation Types =============


class StrategyResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    strategy: str
    category: DiagnosticCategory
    status: StrategyStatus
    missing: tuple[str, ...] = ()
    configuration_error: str | None = None

    @property
    def satisfied(self) -> bool:
        return self.status is StrategyStatus.SATISFIED

    @property
    def unsatisfied(self) -> bool:
        return self.status is StrategyStatus.UNSATISFIED


class Diagnostic(BaseModel):
    """Which criterion failed, for feedback and hint phrasing."""

    model_config = ConfigDict(frozen=True)

    category: DiagnosticCategory
    missing: tuple[str, ...] = ()
    message: str = ""
    configuration_error: bool = False


class Verdict(BaseModel):
    """Result of one validation call."""

    model_config = ConfigDict(frozen=True)

    passed: bool
    strategy: str = "none"
    matched_strategies: tuple[str, ...] = ()
    diagnostic: Diagnostic | None = None
    configuration_errors: tuple[str, ...] = ()
    results: tuple[StrategyResult, ...] = ()


# ============= Host-facing Types =============


class Feedback(BaseModel):
    model_config = ConfigDict(frozen=True)

    status_text: str
    message: str
    suggested_hints: tuple[str, ...] = ()


class CellRunResult(BaseModel):
    """Everything the host needs to render one cell run."""

    model_config = ConfigDict(frozen=True)

    record: ExecutionRecord
    composite_source: str
    verdict: Verdict | None = None  # None when the interpreter reported an error
    feedback: Feedback | None = None
    cell_completed: bool = False
    stage_completed: bool = False

    @property
    def passed(self) -> bool:
        return self.verdict is not None and self.verdict.passed
