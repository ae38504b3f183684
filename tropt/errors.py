"""Exception types shared across the engine.

Terminal outcomes of a search (evaluation budget spent, radius below the floor)
are not exceptions; they are reported as
:class:`~tropt.engine.types.TerminationReason` values.
"""

from __future__ import annotations


class TroptError(Exception):
    """Base class for all tropt errors."""


class WorkerPoolExhausted(TroptError, RuntimeError):
    """A case was assigned while no worker was idle.

    Callers must check ``Overseer.number_of_free_workers()`` first; this is a
    precondition violation and is never retried.
    """


class ModelDegenerate(TroptError):
    """The surrogate sample set is not well-poised enough to fit."""


class ModelNotReady(TroptError):
    """Coefficients were requested before every sample was evaluated."""


class CaseStateError(TroptError):
    """A case was moved backwards (or sideways) through its lifecycle."""


class DuplicateCaseError(TroptError, ValueError):
    """A case id was submitted twice to the case handler."""


class SearchStalled(TroptError, RuntimeError):
    """The search is unfinished but produced no work and awaits no results."""
