"""
Pydantic nested configuration for codepedagogy.

This module provides focused, single-responsibility config classes:
- ValidationConfig: Numeric tolerance and regex flags for the validator
- ExecutionConfig: Interpreter (Jupyter kernel) settings
- FeedbackConfig: Learner-facing feedback limits
- HintConfig: Hint prompt limits
- Config: Main configuration source of truth for the project.
"""

import re

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# 1. Sub-configs
# =============================================================================


class ValidationConfig(BaseModel):
    """Tolerances for numeric matching and flags for declared regexes.

    Two numbers are equal when |actual - expected| <= abs_tol OR
    |actual - expected| <= rel_tol * |expected|.
    """

    abs_tol: float = Field(default=1e-3, ge=0)
    rel_tol: float = Field(default=1e-6, ge=0)
    pattern_flags: int = re.IGNORECASE | re.MULTILINE


class ExecutionConfig(BaseModel):
    kernel_name: str = "python3"
    timeout: float = Field(default=10.0, gt=0)  # Per execution, seconds
    startup_timeout: float = Field(default=30.0, gt=0)


class FeedbackConfig(BaseModel):
    max_suggested_hints: int = Field(default=2, ge=0)
    max_output_preview: int = Field(default=200, gt=0)


class HintConfig(BaseModel):
    max_output_chars: int = Field(default=2_000, gt=0)


# =============================================================================
# 2. Main Application Configuration (Source of Truth)
# =============================================================================


class Config(BaseModel):
    """
    Main application configuration.
    This class defines the schema and default values for the entire project.
    Values are managed here in Python.
    """

    model_config = ConfigDict(extra="ignore")

    validation: ValidationConfig = Field(default_factory=ValidationConfig)
    execution: ExecutionConfig = Field(default_factory=ExecutionConfig)
    feedback: FeedbackConfig = Field(default_factory=FeedbackConfig)
    hints: HintConfig = Field(default_factory=HintConfig)

    # Content
    stages_path: str = "content/stages.json"


# =============================================================================
# 3. Global Singleton Configuration
# =============================================================================

# This allows 'from codepedagogy.core.config import config'
config = Config()
