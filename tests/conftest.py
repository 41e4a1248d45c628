import pytest

from codepedagogy.core.types import ExecutionOutcome


def pytest_addoption(parser):
    parser.addoption(
        "--run-kernel",
        action="store_true",
        default=False,
        help="Run tests that start a real Jupyter kernel",
    )


def pytest_collection_modifyitems(config, items):
    if config.getoption("--run-kernel"):
        return

    skip_kernel = pytest.mark.skip(reason="need --run-kernel option to run")
    for item in items:
        if "kernel" in item.keywords:
            item.add_marker(skip_kernel)


class FakeLLM:
    """
    Fake LLM for testing hint requests without API calls.

    Yields canned responses in order.
    """

    def __init__(self, responses: list[str]):
        self.responses = responses
        self.call_count = 0
        self.captured_prompts: list = []

    async def __call__(self, prompt: str | list[dict]) -> str:
        self.captured_prompts.append(prompt)
        if self.call_count >= len(self.responses):
            raise RuntimeError(
                f"FakeLLM exhausted: {self.call_count} calls but only {len(self.responses)} responses"
            )
        response = self.responses[self.call_count]
        self.call_count += 1
        return response


class FakeInterpreter:
    """
    Scripted interpreter double.

    `script` maps a substring of the submitted source to an outcome; the first
    matching key wins. Unmatched sources succeed with empty output. Every
    submitted source is captured.
    """

    def __init__(self, script: dict[str, ExecutionOutcome] | None = None):
        self.script = script or {}
        self.sources: list[str] = []

    async def execute(self, source: str) -> ExecutionOutcome:
        self.sources.append(source)
        for marker, outcome in self.script.items():
            if marker in source:
                return outcome
        return ExecutionOutcome.success("")


class SyncFakeInterpreter(FakeInterpreter):
    def execute(self, source: str) -> ExecutionOutcome:
        self.sources.append(source)
        for marker, outcome in self.script.items():
            if marker in source:
                return outcome
        return ExecutionOutcome.success("")


@pytest.fixture
def fake_llm_factory():
    """Factory fixture to create FakeLLM with custom responses."""
    return FakeLLM


@pytest.fixture
def fake_interpreter_factory():
    return FakeInterpreter


@pytest.fixture
def multi_cell_stage():
    from codepedagogy.core.types import Stage

    return Stage.model_validate({
        "id": 7,
        "title": "Counting Scrolls",
        "hints": [
            "Remember to calculate the total before printing",
            "Use print() to format the output",
        ],
        "cells": [
            {"starterCode": "scrolls = 3"},
            {"starterCode": "", "validation": {"requiredNumbers": [6]}},
            {"starterCode": "", "validation": {"requiredText": ["done"]}},
        ],
    })


@pytest.fixture
def sync_interpreter_factory():
    return SyncFakeInterpreter
