"""Variable space definitions.

The variable space is the settings-side collaborator of the engine: it supplies
the base case and the bounds every proposed case is snapped into.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from tropt.core.case import Case, CaseOrigin

Bounds = tuple[float, float]


@dataclass(frozen=True, slots=True)
class VariableSpace:
    """Box bounds for real and integer variables.

    Variables without an entry are unbounded.
    """

    real_bounds: Mapping[str, Bounds] = field(default_factory=dict)
    integer_bounds: Mapping[str, tuple[int, int]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for name, (lo, hi) in {**self.real_bounds, **self.integer_bounds}.items():
            if lo > hi:
                raise ValueError(f"Lower bound exceeds upper bound for {name}: {lo} > {hi}")

    def contains(self, case: Case) -> bool:
        for name, value in case.real_variables.items():
            lo, hi = self.real_bounds.get(name, (float("-inf"), float("inf")))
            if not lo <= value <= hi:
                return False
        for name, value in case.integer_variables.items():
            lo, hi = self.integer_bounds.get(name, (float("-inf"), float("inf")))
            if not lo <= value <= hi:
                return False
        return True

    def snap(self, case: Case) -> Case:
        """Return ``case`` clipped into the bounds.

        The same instance is returned when nothing needs clipping, otherwise a
        new pending case with the same origin.
        """
        if self.contains(case):
            return case
        real = {
            name: _clip(value, self.real_bounds.get(name))
            for name, value in case.real_variables.items()
        }
        integer = {
            name: int(_clip(value, self.integer_bounds.get(name)))
            for name, value in case.integer_variables.items()
        }
        return Case(real, integer, origin=case.origin)

    @classmethod
    def from_config(cls, cfg: Mapping[str, Any]) -> tuple[VariableSpace, Case]:
        """Parse a ``variables`` config section into a space and its base case.

        Expected layout::

            real:
              x: {value: 0.5, bounds: [-2, 2]}
            integer:
              n: {value: 3, bounds: [0, 10]}
        """
        real_values: dict[str, float] = {}
        integer_values: dict[str, int] = {}
        real_bounds: dict[str, Bounds] = {}
        integer_bounds: dict[str, tuple[int, int]] = {}

        for name, entry in (cfg.get("real") or {}).items():
            real_values[name] = float(entry["value"])
            if entry.get("bounds") is not None:
                lo, hi = entry["bounds"]
                real_bounds[name] = (float(lo), float(hi))
        for name, entry in (cfg.get("integer") or {}).items():
            integer_values[name] = int(entry["value"])
            if entry.get("bounds") is not None:
                lo, hi = entry["bounds"]
                integer_bounds[name] = (int(lo), int(hi))

        if not real_values and not integer_values:
            raise ValueError("At least one variable must be defined")

        space = cls(real_bounds=real_bounds, integer_bounds=integer_bounds)
        base = Case(real_values, integer_values, origin=CaseOrigin.INITIAL)
        if not space.contains(base):
            raise ValueError("Base case lies outside the variable bounds")
        return space, base

    def lower_upper(self, case: Case) -> tuple[list[float], list[float]]:
        """Bounds in the vector order of ``case`` (``-inf``/``inf`` when unbounded)."""
        lower: list[float] = []
        upper: list[float] = []
        for name in case.real_variables:
            lo, hi = self.real_bounds.get(name, (float("-inf"), float("inf")))
            lower.append(float(lo))
            upper.append(float(hi))
        for name in case.integer_variables:
            lo, hi = self.integer_bounds.get(name, (float("-inf"), float("inf")))
            lower.append(float(lo))
            upper.append(float(hi))
        return lower, upper


def _clip(value: float, bounds: Bounds | None) -> float:
    if bounds is None:
        return value
    lo, hi = bounds
    return min(max(value, lo), hi)
