"""Shared test fixtures and configuration for tropt tests."""

from collections.abc import Callable

import pytest

from tropt.core.case import Case
from tropt.engine.case_handler import CaseHandler


def evaluate_queued(handler: CaseHandler, objective: Callable[[Case], float]) -> int:
    """Evaluate every queued case in place of a worker pool.

    Exceptions from ``objective`` mark the case as failed, like a worker does.
    Returns the number of cases processed.
    """
    processed = 0
    while (case := handler.next_queued_case()) is not None:
        result = Case.from_dict(case.to_dict())
        try:
            result.mark_evaluated(objective(result))
        except Exception as exc:  # noqa: BLE001 - mirrors worker behaviour
            result.mark_failed(str(exc))
        handler.update_case(result)
        processed += 1
    return processed


@pytest.fixture
def handler() -> CaseHandler:
    return CaseHandler()


@pytest.fixture
def base_case_2d() -> Case:
    """Two real variables, pending."""
    return Case({"x": 2.0, "y": -1.5})


@pytest.fixture
def mixed_case() -> Case:
    """One real and one integer variable, pending."""
    return Case({"rate": 0.5}, {"wells": 3})


@pytest.fixture
def drain() -> Callable[[CaseHandler, Callable[[Case], float]], int]:
    """Synchronous stand-in for the worker pool, see :func:`evaluate_queued`."""
    return evaluate_queued
