"""Analytic objectives.

Cheap stand-ins for a simulator plus objective function, useful for examples,
benchmarks and tests. All are plain dataclasses so they pickle for process
transports.
"""

from __future__ import annotations

import time
from collections.abc import Mapping
from dataclasses import dataclass, field

import numpy as np

from tropt.core.case import Case


@dataclass(frozen=True)
class Sphere:
    """``-sum(x**2)``; maximum 0 at the origin."""

    def evaluate(self, case: Case) -> float:
        x = case.vector()
        return -float(x @ x)


@dataclass(frozen=True)
class Rosenbrock:
    """Negated Rosenbrock function; maximum 0 at ``(a, a**2, ...)``."""

    a: float = 1.0
    b: float = 100.0

    def evaluate(self, case: Case) -> float:
        x = case.vector()
        if x.shape[0] < 2:
            raise ValueError("Rosenbrock needs at least two variables")
        value = np.sum(self.b * (x[1:] - x[:-1] ** 2) ** 2 + (self.a - x[:-1]) ** 2)
        return -float(value)


@dataclass(frozen=True)
class Quadratic:
    """Concave paraboloid ``peak - sum(w_i * (x_i - optimum_i)**2)``.

    Variables missing from ``optimum`` have their optimum at zero; missing
    weights default to one.
    """

    optimum: Mapping[str, float] = field(default_factory=dict)
    weights: Mapping[str, float] = field(default_factory=dict)
    peak: float = 0.0

    def evaluate(self, case: Case) -> float:
        total = 0.0
        for name, value in {**case.real_variables, **case.integer_variables}.items():
            diff = value - self.optimum.get(name, 0.0)
            total += self.weights.get(name, 1.0) * diff * diff
        return self.peak - total


@dataclass(frozen=True)
class Constant:
    """Returns ``value`` everywhere; a flat landscape."""

    value: float = 0.0
    delay_s: float = 0.0

    def evaluate(self, case: Case) -> float:
        if self.delay_s:
            time.sleep(self.delay_s)
        return self.value
