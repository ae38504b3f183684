"""MLflow integration for experiment tracking and reproducibility.

Provides utilities to track optimization runs with MLflow, enabling run
comparison across radii, budgets and objectives.
"""

from __future__ import annotations

import json
import tempfile
from dataclasses import asdict, is_dataclass
from pathlib import Path
from typing import Any

import mlflow

from tropt.engine.engine import EngineResults, IterationStats


class MLflowTracker:
    """Track optimization runs with MLflow.

    Parameters
    ----------
    experiment_name : str
        Name of the MLflow experiment.
    tracking_uri : str | None
        MLflow tracking server URI (default: local filesystem).
    """

    def __init__(
        self,
        experiment_name: str = "tropt-optimization",
        tracking_uri: str | None = None,
    ) -> None:
        self.experiment_name = experiment_name
        self.tracking_uri = tracking_uri or "./mlruns"

        mlflow.set_tracking_uri(self.tracking_uri)

        experiment = mlflow.get_experiment_by_name(experiment_name)
        if experiment is None:
            self.experiment_id = mlflow.create_experiment(experiment_name)
        else:
            self.experiment_id = experiment.experiment_id

    def start_run(self, run_name: str | None = None) -> None:
        mlflow.set_experiment(self.experiment_name)
        mlflow.start_run(run_name=run_name)

    def end_run(self) -> None:
        mlflow.end_run()

    def log_config(self, config: Any, prefix: str = "") -> None:
        """Log a config dataclass (engine, search or transport) as parameters.

        Parameters
        ----------
        config : dataclass instance
            Configuration to log.
        prefix : str
            Prepended to every parameter name, e.g. ``"search_"``.
        """
        if not is_dataclass(config):
            raise TypeError(f"Expected a dataclass config, got {type(config)}")
        params = asdict(config)
        extra = params.pop("extra", {}) or {}
        mlflow.log_params({f"{prefix}{k}": v for k, v in params.items()})
        if extra:
            mlflow.log_params({f"{prefix}extra_{k}": v for k, v in extra.items()})

    def log_iteration_stats(self, stats: IterationStats) -> None:
        """Log per-iteration statistics as metrics at step ``stats.iteration``."""
        metrics = {
            "radius": stats.radius,
            "evaluated": stats.evaluated,
            "failed": stats.failed,
            "queued": stats.queued,
            "busy_workers": stats.busy_workers,
            "longest_running_s": stats.longest_running_s,
        }
        if stats.best is not None:
            metrics["best"] = stats.best
        mlflow.log_metrics(metrics, step=stats.iteration)

    def log_results(self, results: EngineResults) -> None:
        """Log final optimization results."""
        mlflow.log_param("termination_reason", results.reason.value)
        if results.best is not None:
            mlflow.log_metric("final_best_score", results.best.objective)
            mlflow.log_param("best_case_id", str(results.best.id))
            mlflow.log_dict(results.best.to_dict(), "best_case.json")

        summary = results.summary or {}
        for key, value in summary.items():
            if isinstance(value, bool):
                mlflow.log_param(f"summary_{key}", str(value))
            elif isinstance(value, (int, float)):
                mlflow.log_metric(f"summary_{key}", value)
            else:
                mlflow.log_param(f"summary_{key}", str(value)[:500])

    def log_artifact_json(self, data: dict[str, Any], filename: str = "results.json") -> None:
        """Log a dictionary as a JSON artifact."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / filename
            with open(path, "w") as f:
                json.dump(data, f, indent=2)
            mlflow.log_artifact(str(path))

    def log_artifact_file(self, filepath: Path | str) -> None:
        mlflow.log_artifact(str(filepath))

    @staticmethod
    def get_best_run(experiment_name: str) -> dict[str, Any] | None:
        """Get the run with the highest final score in an experiment."""
        experiment = mlflow.get_experiment_by_name(experiment_name)
        if experiment is None:
            return None

        runs = mlflow.search_runs(
            experiment_ids=[experiment.experiment_id],
            order_by=["metrics.final_best_score DESC"],
        )

        if runs.empty:
            return None

        return runs.iloc[0].to_dict()
