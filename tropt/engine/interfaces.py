"""Engine protocol surfaces (no implementations).

These Protocols define the modular boundaries of the engine. They are
intentionally small and easy to reason about.

- **Evaluator** runs on the worker side: it turns one case into one scalar
  objective (a simulator run plus objective arithmetic in production).
- **Transport** moves messages between the master (rank 0) and workers
  (ranks ``1..N``). Any message-passing fabric with these semantics is
  conformant: threads with queues, processes, or a real MPI world.
- **Search** is the master-side control loop that proposes cases and reads
  back their results through the case handler.
"""

from __future__ import annotations

from typing import Any, Protocol

from tropt.core.case import Case
from tropt.engine.types import SearchState, TerminationReason


class Evaluator(Protocol):
    """Maps a case to a scalar objective value.

    Evaluators must be picklable when used with process transports. Raising
    marks the case as failed; it never stops the master.
    """

    def evaluate(self, case: Case) -> float:
        """Return the objective value of ``case``."""


class Transport(Protocol):
    """Message fabric between the master and its workers."""

    @property
    def num_workers(self) -> int:  # pragma: no cover - surface only
        """Number of worker ranks (the master is not counted)."""

    def broadcast(self, tag: Any, payload: Any) -> None:
        """Send ``payload`` to every worker."""

    def send(self, rank: int, tag: Any, payload: Any) -> None:
        """Send ``payload`` to a single worker rank. Never blocks."""

    def recv(self, timeout_s: float | None = None) -> Any:
        """Block until any worker sends a message and return it."""

    def close(self) -> None:  # pragma: no cover - surface only
        """Release workers and queues."""


class Search(Protocol):
    """Master-side optimizer driven by :class:`~tropt.engine.engine.Engine`."""

    @property
    def state(self) -> SearchState:  # pragma: no cover - surface only
        """Current control state."""

    @property
    def radius(self) -> float:  # pragma: no cover - surface only
        """Current trust radius."""

    def iterate(self) -> None:
        """Advance the control loop by one step, queueing any new cases."""

    def is_finished(self) -> TerminationReason:
        """Return the termination reason (``NOT_FINISHED`` while running)."""

    def tentative_best_case(self) -> Case:
        """Return the running incumbent."""

    def abort(self, message: str) -> None:
        """Record an unrecoverable error; ``is_finished`` reports ``ERROR`` after."""

    def status_header(self) -> str:
        """CSV header matching :meth:`status_row`."""

    def status_row(self) -> str:
        """CSV status line for the current iteration."""
