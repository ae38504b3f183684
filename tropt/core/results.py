"""Result containers."""

from __future__ import annotations

import csv
import json
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from tropt.core.case import Case, EvalState


@dataclass(slots=True)
class OptimizationResults:
    """Evaluated cases ranked best first."""

    ranked_cases: list[Case]
    maximize: bool = True

    def __post_init__(self) -> None:
        if any(case.state is not EvalState.EVALUATED for case in self.ranked_cases):
            msg = "Only evaluated cases can be ranked"
            raise ValueError(msg)

    @classmethod
    def from_cases(cls, cases: Iterable[Case], *, maximize: bool = True) -> OptimizationResults:
        evaluated = [case for case in cases if case.state is EvalState.EVALUATED]
        evaluated.sort(key=lambda case: case.objective, reverse=maximize)  # type: ignore[arg-type, return-value]
        return cls(ranked_cases=evaluated, maximize=maximize)

    @property
    def scores(self) -> list[float]:
        return [case.objective for case in self.ranked_cases]  # type: ignore[misc]

    def top(self, limit: int = 5) -> list[tuple[Case, float]]:
        return list(zip(self.ranked_cases[:limit], self.scores[:limit]))

    def export_json(self, path: str | Path) -> Path:
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        payload = [case.to_dict() for case in self.ranked_cases]
        target.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        return target

    def export_csv(self, path: str | Path) -> Path:
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        variable_ids = self.ranked_cases[0].variable_ids() if self.ranked_cases else []
        with target.open("w", encoding="utf-8", newline="") as handle:
            writer = csv.writer(handle)
            writer.writerow(["rank", "case_id", "origin", *variable_ids, "objective"])
            for idx, case in enumerate(self.ranked_cases, start=1):
                values = {**case.real_variables, **case.integer_variables}
                writer.writerow(
                    [idx, str(case.id), case.origin.value, *(values[v] for v in variable_ids), case.objective]
                )
        return target
