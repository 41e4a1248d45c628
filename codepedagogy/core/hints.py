"""
Boundary to the optional LLM hint system.

The hint system only ever sees a HintContext: a frozen snapshot of the last
run (diagnostic, output, error). It gets no handle on the accumulator or the
stage criteria, so it cannot influence pass/fail.

Hints are best-effort. Any failure of the LLM call is logged and results in
no hint.

Usage:
    context = session.hint_context()
    hint = await request_hint(llm, context, stage)
"""

import logging
from typing import Awaitable, Callable

from pydantic import BaseModel, ConfigDict

from codepedagogy.core.config import HintConfig, config
from codepedagogy.core.types import Diagnostic, Stage

logger = logging.getLogger(__name__)

# Async callable taking a prompt (string or OpenAI-style messages)
LLMCallable = Callable[[str | list[dict]], Awaitable[str]]


class HintContext(BaseModel):
    """Read-only view of the last run for hint generation."""

    model_config = ConfigDict(frozen=True)

    stage_id: int | None = None
    cell_index: int | None = None
    diagnostic: Diagnostic | None = None
    output: str = ""
    error: str | None = None

    @property
    def has_problem(self) -> bool:
        return self.error is not None or self.diagnostic is not None


HINT_SYSTEM_PROMPT = """You are a patient programming mentor inside an educational coding game.
Give ONE short hint (at most 3 sentences) that nudges the learner toward the fix.
Never write the full solution. Refer to the specific problem described below."""

HINT_USER_TEMPLATE = """STAGE: {title}

CHALLENGE:
{challenge}

PROBLEM:
{problem}

LEARNER OUTPUT:
```
{output}
```"""


def describe_problem(context: HintContext) -> str:
    if context.error is not None:
        return f"The code raised an error: {context.error}"
    diagnostic = context.diagnostic
    if diagnostic is None:
        return "No problem detected."
    if diagnostic.configuration_error:
        return "The checks for this step are misconfigured; reassure the learner."
    return diagnostic.message or f"Unmet criterion: {diagnostic.category.value}"


def build_hint_prompt(
    context: HintContext,
    stage: Stage | None = None,
    hint_config: HintConfig | None = None,
) -> list[dict]:
    """Build OpenAI-format messages asking for a hint about `context`."""
    cfg = hint_config or config.hints
    output = context.output
    if len(output) > cfg.max_output_chars:
        output = output[: cfg.max_output_chars] + "\n... (truncated)"

    title = stage.title if stage is not None and stage.title else f"Stage {context.stage_id}"
    if context.cell_index is not None:
        title += f", cell {context.cell_index + 1}"

    user = HINT_USER_TEMPLATE.format(
        title=title,
        challenge=(stage.challenge if stage is not None and stage.challenge else "(not provided)"),
        problem=describe_problem(context),
        output=output or "(no output)",
    )
    return [
        {"role": "system", "content": HINT_SYSTEM_PROMPT},
        {"role": "user", "content": user},
    ]


async def request_hint(
    llm: LLMCallable,
    context: HintContext,
    stage: Stage | None = None,
) -> str | None:
    """Ask the LLM for a hint. Returns None when there is nothing to hint or the call fails."""
    if not context.has_problem:
        return None
    try:
        response = await llm(build_hint_prompt(context, stage))
    except Exception as e:
        logger.warning(f"Hint request failed: {e}")
        return None
    response = (response or "").strip()
    return response or None
