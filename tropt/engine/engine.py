"""Master loop of the optimization engine.

The engine runs a single-threaded loop: the search proposes cases into the
case handler, the overseer hands them to idle workers, and the engine blocks
for the next completed case before giving the search another turn. Worker
results may come back in any order; the case handler absorbs that.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field

from tropt.core.case import Case, EvalState
from tropt.core.results import OptimizationResults
from tropt.engine.case_handler import CaseHandler
from tropt.engine.executors.overseer import Overseer
from tropt.engine.interfaces import Search
from tropt.engine.types import TerminationReason
from tropt.errors import SearchStalled

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class EngineConfig:
    """User-facing settings that control an engine run.

    ``method`` is only a descriptive label for logs and tracking. Supply the
    actual search when creating the engine. ``max_iterations`` caps scheduler
    turns (``None`` leaves termination to the search). ``recv_timeout_s``
    bounds each wait for a worker result; expiry halts the run with
    ``TerminationReason.ERROR``.
    """

    max_iterations: int | None = None
    recv_timeout_s: float | None = None
    method: str = "trust-region"
    log_status: bool = True
    extra: Mapping[str, int | float | str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class IterationStats:
    """Numbers tracked for each scheduler iteration."""

    iteration: int
    state: str
    radius: float
    best: float | None
    evaluated: int
    failed: int
    queued: int
    busy_workers: int
    longest_running_s: float
    elapsed_s: float


@dataclass(frozen=True, slots=True)
class EngineResults:
    """Final results emitted by the engine.

    ``best`` is the last tentative best case (``None`` if it was never
    evaluated). ``reason`` says why the run ended; ``summary["error"]`` holds
    the message when it is ``ERROR``.
    """

    best: Case | None
    reason: TerminationReason
    history: list[IterationStats]
    summary: Mapping[str, object]
    evaluated: list[Case] = field(default_factory=list)

    def ranked(self, *, maximize: bool = True) -> OptimizationResults:
        return OptimizationResults.from_cases(self.evaluated, maximize=maximize)


class Engine:
    """Drives the master loop.

    Compose a search, the case handler it writes to, and an overseer for the
    worker pool. The engine repeats ``iterate → dispatch → receive`` until the
    search reports a termination reason, then always shuts the workers down.
    """

    def __init__(
        self,
        *,
        config: EngineConfig,
        search: Search,
        case_handler: CaseHandler,
        overseer: Overseer,
    ) -> None:
        self._config = config
        self._search = search
        self._handler = case_handler
        self._overseer = overseer

    def run(self) -> EngineResults:
        """Execute the loop and return results; never raises for search failures."""

        history: list[IterationStats] = []
        error: str | None = None
        start = time.perf_counter()

        try:
            for stats in self.stream():
                history.append(stats)
        except Exception as exc:
            error = f"{type(exc).__name__}: {exc}"
            _LOGGER.exception("Search halted by an unrecoverable error")
            self._search.abort(error)
        finally:
            self._overseer.shutdown()

        reason = self._search.is_finished()
        best = self._search.tentative_best_case()
        if best.state is not EvalState.EVALUATED:
            best = None

        summary: dict[str, object] = {
            "config": {
                "max_iterations": self._config.max_iterations,
                "recv_timeout_s": self._config.recv_timeout_s,
                "method": self._config.method,
            },
            "reason": reason.value,
            "iterations_completed": len(history),
            "total_evals": self._handler.nr_evaluated,
            "failed_evals": self._handler.nr_failed,
            "final_radius": self._search.radius,
            "elapsed_s": time.perf_counter() - start,
        }
        if best is not None:
            summary["best_score"] = best.objective
            summary["best_case_id"] = str(best.id)
        if error is None:
            error = getattr(self._search, "error", None)
        if error is not None:
            summary["error"] = error

        _LOGGER.info("Search finished: %s after %d evaluation(s)", reason.value, self._handler.nr_evaluated)
        return EngineResults(
            best=best,
            reason=reason,
            history=history,
            summary=summary,
            evaluated=self._handler.evaluated_cases(),
        )

    def stream(self) -> Iterator[IterationStats]:
        """Yield iteration statistics as they are computed."""

        start = time.perf_counter()
        if self._config.log_status:
            _LOGGER.info(self._search.status_header())

        iteration = 0
        while not self._search.is_finished().is_terminal:
            if self._config.max_iterations is not None and iteration >= self._config.max_iterations:
                _LOGGER.warning("Reached max_iterations=%d before the search finished", iteration)
                break

            before = (self._search.state, self._search.radius)
            self._search.iterate()

            if not self._search.is_finished().is_terminal:
                self._dispatch()
                if self._overseer.number_of_busy_workers() > 0:
                    case, _ = self._overseer.recv_evaluated_case(self._config.recv_timeout_s)
                    self._handler.update_case(case)
                elif self._handler.nr_queued == 0 and before == (self._search.state, self._search.radius):
                    raise SearchStalled(
                        f"Search is {self._search.state.value} with no queued or running cases"
                    )

            if self._config.log_status:
                _LOGGER.info(self._search.status_row())

            best = self._search.tentative_best_case()
            yield IterationStats(
                iteration=iteration,
                state=self._search.state.value,
                radius=self._search.radius,
                best=best.objective,
                evaluated=self._handler.nr_evaluated,
                failed=self._handler.nr_failed,
                queued=self._handler.nr_queued,
                busy_workers=self._overseer.number_of_busy_workers(),
                longest_running_s=self._overseer.longest_running_seconds(),
                elapsed_s=time.perf_counter() - start,
            )
            iteration += 1

    def _dispatch(self) -> int:
        """Hand queued cases to idle workers; return how many were sent."""
        sent = 0
        while self._overseer.number_of_free_workers() > 0:
            case = self._handler.next_queued_case()
            if case is None:
                break
            self._overseer.assign_case(case)
            sent += 1
        return sent
