"""tropt command-line interface."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any

import yaml

from tropt.core.variables import VariableSpace
from tropt.engine import CaseHandler, Engine, EngineConfig, Overseer, TransportFactory
from tropt.engine.engine import EngineResults
from tropt.engine.strategies import search_from_name
from tropt.objectives import ObjectiveRegistry
from tropt.utils.logging import get_logger


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="tropt CLI")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )
    subparsers = parser.add_subparsers(dest="command")

    run_parser = subparsers.add_parser("run", help="Run an optimization from a config file")
    run_parser.add_argument("config", help="Path to YAML/JSON config file")
    run_parser.add_argument("--workers", type=int, default=None, help="Override transport.num_workers")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    get_logger(level=args.log_level)

    if args.command == "run":
        return _run_from_config(Path(args.config), workers=args.workers)

    parser.print_help()
    return 0


def _run_from_config(path: Path, *, workers: int | None = None) -> int:
    data = _load_config(path)

    space, base_case = VariableSpace.from_config(data.get("variables") or {})
    objective_cfg = data.get("objective")
    if not objective_cfg:
        raise ValueError("objective section is required")
    evaluator = ObjectiveRegistry.create_from_config(objective_cfg)

    handler = CaseHandler()
    search = _build_search(data.get("search", {}), base_case, handler, space)
    search_name = data.get("search", {}).get("name", "")
    engine_cfg = _build_engine_config(data.get("engine", {}), search_name=search_name)

    transport_cfg = dict(data.get("transport") or {})
    if workers is not None:
        transport_cfg["num_workers"] = workers
    transport = TransportFactory.build(transport_cfg)
    overseer = Overseer(transport, model=evaluator)

    engine = Engine(config=engine_cfg, search=search, case_handler=handler, overseer=overseer)

    tracking = data.get("tracking")
    if tracking:
        results = _run_tracked(engine, tracking, engine_cfg, search)
    else:
        results = engine.run()

    _write_outputs(results, data.get("output") or {}, maximize=search.config.maximize)

    if results.best is not None:
        best = results.best
        values = {**best.real_variables, **best.integer_variables}
        print(f"Best case ({best.objective:.6g}): {json.dumps(values)}")
    else:
        print("No evaluated tentative best case.")
    print(json.dumps(results.summary, indent=2, default=str))
    return 1 if results.reason.value == "error" else 0


def _load_config(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    if path.suffix.lower() in {".json"}:
        return json.loads(path.read_text())
    return yaml.safe_load(path.read_text())


def _build_search(cfg: dict[str, Any], base_case: Any, handler: CaseHandler, space: VariableSpace) -> Any:
    name = cfg.get("name", "trust-region")
    params = cfg.get("params", {})
    return search_from_name(name, base_case, handler, space=space, **params)


def _build_engine_config(cfg: dict[str, Any], *, search_name: str) -> EngineConfig:
    return EngineConfig(
        max_iterations=cfg.get("max_iterations"),
        recv_timeout_s=cfg.get("recv_timeout_s"),
        method=cfg.get("method", search_name or "trust-region"),
        log_status=cfg.get("log_status", True),
    )


def _run_tracked(engine: Engine, cfg: dict[str, Any], engine_cfg: EngineConfig, search: Any) -> EngineResults:
    from tropt.logging import MLflowTracker

    tracker = MLflowTracker(
        experiment_name=cfg.get("experiment_name", "tropt-optimization"),
        tracking_uri=cfg.get("tracking_uri"),
    )
    tracker.start_run(cfg.get("run_name"))
    try:
        tracker.log_config(engine_cfg, prefix="engine_")
        tracker.log_config(search.config, prefix="search_")
        results = engine.run()
        for stats in results.history:
            tracker.log_iteration_stats(stats)
        tracker.log_results(results)
    finally:
        tracker.end_run()
    return results


def _write_outputs(results: EngineResults, cfg: dict[str, Any], *, maximize: bool) -> None:
    ranked = results.ranked(maximize=maximize)
    if cfg.get("json"):
        ranked.export_json(cfg["json"])
    if cfg.get("csv"):
        ranked.export_csv(cfg["csv"])


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
