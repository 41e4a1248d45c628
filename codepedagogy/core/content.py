"""Stage content I/O.

Loads curriculum stages from JSON with fail-fast validation. Accepts either
`{"stages": [...]}` (the game content format) or a bare list of stages.
"""

import json
from pathlib import Path

from pydantic import ValidationError

from codepedagogy.core.errors import ContentError
from codepedagogy.core.types import Stage


def parse_stages(data: dict | list) -> list[Stage]:
    """Validate already-decoded content into Stage models.

    Raises:
        ContentError: if the content does not match the stage schema or
            stage ids repeat.
    """
    if isinstance(data, dict):
        if "stages" not in data:
            raise ContentError("Content object has no 'stages' key")
        data = data["stages"]
    if not isinstance(data, list):
        raise ContentError(f"Expected a list of stages, got {type(data).__name__}")

    stages = []
    for position, raw in enumerate(data):
        try:
            stages.append(Stage.model_validate(raw))
        except ValidationError as e:
            stage_id = raw.get("id", f"#{position}") if isinstance(raw, dict) else f"#{position}"
            raise ContentError(f"Invalid stage {stage_id}: {e}") from e

    ids = [stage.id for stage in stages]
    duplicates = sorted({stage_id for stage_id in ids if ids.count(stage_id) > 1})
    if duplicates:
        raise ContentError(f"Duplicate stage ids: {duplicates}")
    return stages


def load_stages(path: str | Path) -> list[Stage]:
    """Load stages from a JSON file.

    Raises:
        ContentError: if the file is missing, not JSON, or not valid content.
    """
    path = Path(path)
    try:
        with open(path) as f:
            data = json.load(f)
    except FileNotFoundError as e:
        raise ContentError(f"Stage file not found: {path}") from e
    except json.JSONDecodeError as e:
        raise ContentError(f"Stage file is not valid JSON: {path}: {e}") from e
    return parse_stages(data)


def get_stage(stages: list[Stage], stage_id: int) -> Stage:
    for stage in stages:
        if stage.id == stage_id:
            return stage
    raise KeyError(f"No stage with id {stage_id}")
