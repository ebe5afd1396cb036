"""Export run results as JSON reports."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path

from drift.models import Experiment, Run


def build_run_report(run: Run, experiment: Experiment) -> dict:
    """Assemble a run, its experiment setup and its statistics into one dictionary."""
    return {
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "experiment": {
            "id": experiment.id,
            "name": experiment.name,
            "description": experiment.description,
            "portfolio": experiment.portfolio.to_dict(),
            "config": experiment.config.to_dict(),
        },
        "run": {
            "id": run.id,
            "status": run.status.value,
            "started_at": run.started_at.isoformat(),
            "finished_at": run.finished_at.isoformat() if run.finished_at else None,
            "error": run.error,
        },
        "stats": {k: round(v, 6) for k, v in run.stats.to_dict().items()},
    }


def export_json(
    data: dict,
    output: str | Path = "output/run_report.json",
) -> Path:
    """Write the report data to a JSON file."""
    path = Path(output)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2))
    return path
