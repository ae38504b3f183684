#!/usr/bin/env python3
"""
Example run of the trust-region engine on an analytic objective.

This example shows:
1. Declaring variables with bounds
2. Running the trust-region search over a local worker pool
3. Accessing results and iteration statistics
4. Exporting ranked cases
"""

from pathlib import Path

from tropt.core.variables import VariableSpace
from tropt.engine import CaseHandler, Engine, EngineConfig, LocalTransport, Overseer
from tropt.engine.strategies.trust_region import TrustRegionConfig, TrustRegionSearch
from tropt.objectives.analytic import Rosenbrock
from tropt.utils import get_logger


def main() -> None:
    """Run the example optimization."""
    get_logger(level="WARNING")
    output_dir = Path(__file__).parent / "output"
    output_dir.mkdir(exist_ok=True)

    # 1. Variables and bounds
    space, base_case = VariableSpace.from_config(
        {
            "real": {
                "x": {"value": -1.2, "bounds": [-2.0, 2.0]},
                "y": {"value": 1.0, "bounds": [-1.0, 3.0]},
            }
        }
    )

    # 2. Search, worker pool and engine
    handler = CaseHandler()
    search = TrustRegionSearch(
        base_case,
        handler,
        config=TrustRegionConfig(
            initial_radius=0.5, minimum_radius=1e-4, max_evaluations=400, degree="quadratic"
        ),
        space=space,
    )
    overseer = Overseer(LocalTransport(num_workers=4, mode="thread"), model=Rosenbrock())
    engine = Engine(
        config=EngineConfig(recv_timeout_s=60.0, log_status=False),
        search=search,
        case_handler=handler,
        overseer=overseer,
    )

    results = engine.run()

    # 3. Results
    print(f"Stopped: {results.reason.value}")  # noqa: T201
    if results.best is not None:
        print(f"Best case (objective {results.best.objective:.6g}):")  # noqa: T201
        print(f"   {dict(results.best.real_variables)}")  # noqa: T201

    print(f"\n{'Iter':<6} {'Radius':<12} {'Best':<12} {'Evals':<6}")  # noqa: T201
    for stat in results.history[-10:]:
        best = "-" if stat.best is None else f"{stat.best:.4g}"
        print(f"{stat.iteration:<6} {stat.radius:<12.4g} {best:<12} {stat.evaluated:<6}")  # noqa: T201

    # 4. Export
    ranked = results.ranked()
    ranked.export_csv(output_dir / "rosenbrock_cases.csv")
    ranked.export_json(output_dir / "rosenbrock_cases.json")
    print(f"\nWrote {len(ranked.ranked_cases)} cases to {output_dir}")  # noqa: T201


if __name__ == "__main__":
    main()
