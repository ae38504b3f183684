import json

import pytest
import yaml

from tropt.cli import build_parser, main


def _write_config(tmp_path, **overrides):
    config = {
        "variables": {
            "real": {
                "x": {"value": 1.5, "bounds": [-3.0, 3.0]},
                "y": {"value": -1.0},
            }
        },
        "objective": {"name": "quadratic", "params": {"optimum": {"x": 0.5}}},
        "search": {"name": "trust-region", "params": {"max_evaluations": 30, "seed": 1}},
        "transport": {"mode": "thread", "num_workers": 2},
        "engine": {"recv_timeout_s": 30.0},
        "output": {"json": str(tmp_path / "ranked.json"), "csv": str(tmp_path / "ranked.csv")},
    }
    config.update(overrides)
    path = tmp_path / "run.yaml"
    path.write_text(yaml.safe_dump(config))
    return path


def test_parser_defaults():
    args = build_parser().parse_args(["run", "cfg.yaml"])
    assert args.command == "run"
    assert args.workers is None
    assert args.log_level == "INFO"


def test_run_writes_outputs(tmp_path, capsys):
    path = _write_config(tmp_path)

    assert main(["--log-level", "WARNING", "run", str(path), "--workers", "3"]) == 0

    out = capsys.readouterr().out
    assert "Best case" in out
    ranked = json.loads((tmp_path / "ranked.json").read_text())
    assert ranked
    assert ranked[0]["objective"] >= ranked[-1]["objective"]
    assert (tmp_path / "ranked.csv").read_text().startswith("rank,case_id,origin,x,y,objective")


def test_minimizing_run_ranks_ascending(tmp_path):
    params = {"max_evaluations": 20, "seed": 1, "maximize": False}
    search = {"name": "trust-region", "params": params}
    path = _write_config(tmp_path, search=search)

    assert main(["--log-level", "WARNING", "run", str(path)]) == 0

    ranked = json.loads((tmp_path / "ranked.json").read_text())
    objectives = [row["objective"] for row in ranked]
    assert objectives == sorted(objectives)


def test_run_from_json(tmp_path):
    config = yaml.safe_load(_write_config(tmp_path, output={}).read_text())
    path = tmp_path / "run.json"
    path.write_text(json.dumps(config))
    assert main(["run", str(path)]) == 0


def test_missing_objective(tmp_path):
    path = _write_config(tmp_path, objective=None)
    with pytest.raises(ValueError):
        main(["run", str(path)])


def test_missing_config(tmp_path):
    with pytest.raises(FileNotFoundError):
        main(["run", str(tmp_path / "nope.yaml")])


def test_no_command_prints_help(capsys):
    assert main([]) == 0
    assert "usage" in capsys.readouterr().out
