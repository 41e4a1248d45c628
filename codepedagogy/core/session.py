"""
Exercise session: the execution loop for one learner.

Drives the accumulate -> execute -> record -> validate cycle:

    session = ExerciseSession(interpreter)
    session.enter_stage(stage)
    result = await session.run_cell(stage, 0, "fragments = 23")
    result = await session.run_cell(stage, 1, "print(f'Fragments: {fragments}')")
    result.passed, result.stage_completed

Presentation is kept out of this module. Pass a logger to receive events
("stage_entered", "cell_executed", "cell_validated", "stage_completed",
"stage_reset") with details in the record's extra fields; see
codepedagogy.rich_logger for a Rich renderer.

Precondition: calls for the same stage must be serialized by the caller (at
most one in-flight execution per stage). The session does not enforce it.
"""

import inspect
import logging

from codepedagogy.core.accumulator import ExecutionAccumulator
from codepedagogy.core.feedback import build_feedback
from codepedagogy.core.hints import HintContext
from codepedagogy.core.kernel import Interpreter
from codepedagogy.core.types import (
    CellRunResult,
    Diagnostic,
    ExecutionOutcome,
    Stage,
    Verdict,
)
from codepedagogy.core.validator import OutputValidator, match_solution_output

# Cell index used for single-cell stages
SINGLE_CELL_INDEX = 0


class ExerciseSession:
    def __init__(
        self,
        interpreter: Interpreter,
        validator: OutputValidator | None = None,
        accumulator: ExecutionAccumulator | None = None,
        logger: logging.Logger | None = None,
    ):
        """
        Args:
            interpreter: Anything with execute(source) -> ExecutionOutcome,
                sync or async
            validator: Output validator (default strategies if None)
            accumulator: Accumulated state store (new one if None)
            logger: Optional logger for events (None = silent)
        """
        self.interpreter = interpreter
        self.validator = validator or OutputValidator()
        self.accumulator = accumulator or ExecutionAccumulator()
        self.logger = logger

        self._completed_cells: dict[int, set[int]] = {}
        self.completed_stages: list[int] = []
        self._last_context = HintContext()
        # Reference solution outcome per stage id, run at most once
        self._solution_outcomes: dict[int, ExecutionOutcome] = {}

    def _log(self, event: str, **extra) -> None:
        if self.logger:
            self.logger.info(event, extra=extra)

    # ----- Stage lifecycle -----

    def enter_stage(self, stage: Stage) -> None:
        """Start a fresh attempt at `stage`."""
        self.accumulator.reset_stage(stage.id)
        self._completed_cells.pop(stage.id, None)
        self._last_context = HintContext(stage_id=stage.id)
        self._log("stage_entered", stage_id=stage.id, title=stage.title, mode=stage.mode.value)

    def reset_stage(self, stage: Stage) -> None:
        """Learner restarts the stage: forget accumulated cells and completion."""
        self.accumulator.reset_stage(stage.id)
        self._completed_cells.pop(stage.id, None)
        self._last_context = HintContext(stage_id=stage.id)
        self._log("stage_reset", stage_id=stage.id)

    def exit_stage(self, stage: Stage) -> None:
        self.accumulator.exit_stage(stage.id)
        self._completed_cells.pop(stage.id, None)

    # ----- Execution -----

    async def _execute(self, source: str) -> ExecutionOutcome:
        outcome = self.interpreter.execute(source)
        if inspect.isawaitable(outcome):
            outcome = await outcome
        return outcome

    async def run_cell(self, stage: Stage, cell_index: int, source: str) -> CellRunResult:
        """
        Run one cell of a multi-cell stage.

        Earlier cells' last successful sources are replayed ahead of
        `source`. An interpreter error is returned as data (verdict None)
        and leaves the accumulated state as it was.

        Raises:
            KeyError: If the stage has no cell `cell_index`
        """
        stage.cell(cell_index)
        composite = self.accumulator.get_accumulated_code(stage.id, cell_index, source)
        return await self._run(stage, cell_index, source, composite)

    async def run_single(self, stage: Stage, source: str) -> CellRunResult:
        """Run the whole program of a single-cell stage."""
        return await self._run(stage, SINGLE_CELL_INDEX, source, source)

    async def _run(
        self, stage: Stage, cell_index: int, source: str, composite: str
    ) -> CellRunResult:
        outcome = await self._execute(composite)
        record = self.accumulator.record_execution_result(stage.id, cell_index, source, outcome)
        self._log(
            "cell_executed",
            stage_id=stage.id,
            cell_index=cell_index,
            success=outcome.succeeded,
            output=record.output,
            error=outcome.error,
        )

        if not outcome.succeeded:
            self._last_context = HintContext(
                stage_id=stage.id, cell_index=cell_index, error=outcome.error
            )
            return CellRunResult(
                record=record,
                composite_source=composite,
                feedback=build_feedback(None, "", stage, error=outcome.error),
                stage_completed=self.is_stage_complete(stage),
            )

        verdict = await self._verdict(stage, cell_index, source, record.output)
        self._last_context = HintContext(
            stage_id=stage.id,
            cell_index=cell_index,
            diagnostic=verdict.diagnostic,
            output=record.output,
        )
        self._log(
            "cell_validated",
            stage_id=stage.id,
            cell_index=cell_index,
            passed=verdict.passed,
            strategy=verdict.strategy,
            diagnostic=verdict.diagnostic,
        )

        if verdict.passed:
            self._completed_cells.setdefault(stage.id, set()).add(cell_index)
            self._mark_stage_if_complete(stage)

        return CellRunResult(
            record=record,
            composite_source=composite,
            verdict=verdict,
            feedback=build_feedback(verdict, record.output, stage),
            cell_completed=verdict.passed,
            stage_completed=self.is_stage_complete(stage),
        )

    async def _verdict(self, stage: Stage, cell_index: int, source: str, output: str) -> Verdict:
        criteria = stage.criteria_for(cell_index if stage.is_multi_cell else None)
        if criteria.is_empty() and stage.solution and not stage.is_multi_cell:
            solution = await self._solution_outcome(stage)
            return match_solution_output(output, solution.output if solution.succeeded else None)
        return self.validator.validate(output, source, criteria)

    async def _solution_outcome(self, stage: Stage) -> ExecutionOutcome:
        if stage.id not in self._solution_outcomes:
            outcome = await self._execute(stage.solution)
            if not outcome.succeeded and self.logger:
                self.logger.warning(f"Stage {stage.id}: solution failed to run: {outcome.error}")
            self._solution_outcomes[stage.id] = outcome
        return self._solution_outcomes[stage.id]

    # ----- Progress -----

    def completed_cells(self, stage_id: int) -> list[int]:
        return sorted(self._completed_cells.get(stage_id, ()))

    def is_stage_complete(self, stage: Stage) -> bool:
        """Whether every cell passed in the current attempt."""
        done = self._completed_cells.get(stage.id, set())
        if stage.is_multi_cell:
            return all(index in done for index in stage.cell_indices)
        return SINGLE_CELL_INDEX in done

    def _mark_stage_if_complete(self, stage: Stage) -> None:
        if stage.id not in self.completed_stages and self.is_stage_complete(stage):
            self.completed_stages.append(stage.id)
            self._log("stage_completed", stage_id=stage.id, title=stage.title)

    # ----- Collaborator views -----

    def hint_context(self) -> HintContext:
        """Frozen snapshot of the last run for the hint system."""
        return self._last_context

    @property
    def last_verdict_diagnostic(self) -> Diagnostic | None:
        return self._last_context.diagnostic

    def validate(
        self, output: str, source_text: str | None, stage: Stage, cell_index: int | None = None
    ) -> Verdict:
        """Validate without executing, e.g. for replayed output."""
        return self.validator.validate(output, source_text, stage.criteria_for(cell_index))
