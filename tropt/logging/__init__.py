"""Experiment tracking."""

from .mlflow_tracker import MLflowTracker

__all__ = ["MLflowTracker"]
