"""Helpers for testing event handlers."""

from eventforge.testing.scenarios import (
    RepeatPolicy,
    Scenario,
    ScenarioFailedError,
    ScenarioResult,
    ScenarioStep,
    StepFailure,
    run_scenario,
)

__all__ = [
    "RepeatPolicy",
    "Scenario",
    "ScenarioFailedError",
    "ScenarioResult",
    "ScenarioStep",
    "StepFailure",
    "run_scenario",
]
