"""Objective registry."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from tropt.engine.interfaces import Evaluator
from tropt.objectives.analytic import Constant, Quadratic, Rosenbrock, Sphere

Factory = Callable[..., Evaluator]


class ObjectiveRegistry:
    _registry: dict[str, Factory] = {
        "sphere": Sphere,
        "rosenbrock": Rosenbrock,
        "quadratic": Quadratic,
        "constant": Constant,
    }

    @classmethod
    def register(cls, name: str, factory: Factory) -> None:
        cls._registry[name] = factory

    @classmethod
    def create(cls, name: str, **kwargs: Any) -> Evaluator:
        if name not in cls._registry:
            msg = f"Unknown objective: {name}. Available: {sorted(cls._registry)}"
            raise KeyError(msg)
        return cls._registry[name](**kwargs)

    @classmethod
    def create_from_config(cls, config: dict[str, Any]) -> Evaluator:
        """Create an objective from a config dict.

        Example: ``{"name": "quadratic", "params": {"optimum": {"x": 1.0}}}``
        """
        if "name" not in config:
            msg = "Objective config must contain 'name' key"
            raise ValueError(msg)
        return cls.create(config["name"], **(config.get("params") or {}))


def objective_from_name(name: str, **params: Any) -> Evaluator:
    return ObjectiveRegistry.create(name, **params)


__all__ = [
    "Constant",
    "ObjectiveRegistry",
    "Quadratic",
    "Rosenbrock",
    "Sphere",
    "objective_from_name",
]
