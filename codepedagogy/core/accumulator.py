"""
Execution accumulator for multi-cell stages.

A multi-cell stage behaves like a notebook: later cells rely on names
defined by earlier ones. The interpreter runs each attempt from a clean
namespace, so the accumulator replays earlier cells by assembling a
composite source:

    acc = ExecutionAccumulator()
    acc.record_execution_result(1, 0, "x = 2", ExecutionOutcome.success(""))
    acc.get_accumulated_code(1, 1, "print(x * 21)")
    # 'x = 2\\nprint(x * 21)\\n'

Per cell index it keeps the last source that ran without error ("best known
good"). A failing run never removes or replaces a stored success, so one
broken retry cannot break downstream cells.

Callers must serialize executions per stage: at most one in-flight run.
"""

import itertools
import logging
from dataclasses import dataclass, field

from codepedagogy.core.types import ExecutionOutcome, ExecutionRecord

logger = logging.getLogger(__name__)


@dataclass
class StageState:
    """Accumulated state for one stage instance."""

    successful_sources: dict[int, str] = field(default_factory=dict)
    records: list[ExecutionRecord] = field(default_factory=list)


class ExecutionAccumulator:
    """Per-stage cache of each cell's last successful source."""

    def __init__(self):
        self._stages: dict[int, StageState] = {}
        self._sequence = itertools.count(1)

    def _state(self, stage_id: int) -> StageState:
        if stage_id not in self._stages:
            self._stages[stage_id] = StageState()
        return self._stages[stage_id]

    def get_accumulated_code(
        self,
        stage_id: int,
        up_to_cell_index: int,
        current_source: str | None = None,
    ) -> str:
        """
        Build the source to execute for one cell attempt.

        Args:
            stage_id: Stage the cell belongs to
            up_to_cell_index: Index of the cell being attempted
            current_source: Source being attempted for that cell. If None,
                the cell's own last successful source is used (if any).

        Returns:
            Sources of every earlier cell with a successful entry, in
            ascending index order, followed by the attempted source. Earlier
            cells that never succeeded are skipped silently.
        """
        state = self._stages.get(stage_id)
        stored = state.successful_sources if state else {}

        parts = [
            stored[index]
            for index in sorted(stored)
            if index < up_to_cell_index
        ]
        if current_source is None:
            current_source = stored.get(up_to_cell_index, "")
        parts.append(current_source)

        # Blank cells contribute nothing
        return "".join(part + "\n" for part in parts if part.strip())

    def record_execution_result(
        self,
        stage_id: int,
        cell_index: int,
        source: str,
        outcome: ExecutionOutcome,
    ) -> ExecutionRecord:
        """
        Record one execution of a cell.

        On success the cell's entry is replaced with `source` (last success
        wins). On failure nothing in the accumulated state changes.
        """
        state = self._state(stage_id)
        record = ExecutionRecord(
            stage_id=stage_id,
            cell_index=cell_index,
            source=source,
            outcome=outcome,
            sequence=next(self._sequence),
        )
        state.records.append(record)

        if outcome.succeeded:
            state.successful_sources[cell_index] = source
            logger.debug(f"Stage {stage_id}: cell {cell_index} stored as successful")
        elif cell_index in state.successful_sources:
            logger.debug(
                f"Stage {stage_id}: cell {cell_index} failed, keeping previous success"
            )
        return record

    def reset_stage(self, stage_id: int) -> None:
        """Forget everything recorded for a stage."""
        if self._stages.pop(stage_id, None) is not None:
            logger.debug(f"Stage {stage_id}: accumulated state cleared")

    def exit_stage(self, stage_id: int) -> None:
        """Leaving a stage destroys its state, same as a reset."""
        self.reset_stage(stage_id)

    # ----- Read-only views -----

    def successful_cells(self, stage_id: int) -> list[int]:
        state = self._stages.get(stage_id)
        return sorted(state.successful_sources) if state else []

    def last_successful_source(self, stage_id: int, cell_index: int) -> str | None:
        state = self._stages.get(stage_id)
        if state is None:
            return None
        return state.successful_sources.get(cell_index)

    def records(self, stage_id: int) -> list[ExecutionRecord]:
        state = self._stages.get(stage_id)
        return list(state.records) if state else []
