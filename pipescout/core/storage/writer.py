from __future__ import annotations

import json
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, Iterable

from ..models import ProductRecord, RunReport, TargetReport


class JsonlResultSink:
    """Append extracted product records and per-run reports under one root.

    Layout:
    - ``products.jsonl`` holds one flat record per extracted product
    - ``runs/<run_id>.json`` holds the summary of a batch run
    """

    def __init__(self, output_root: Path) -> None:
        self.output_root = output_root
        self.output_root.mkdir(parents=True, exist_ok=True)
        self.products_path = self.output_root / "products.jsonl"
        self.runs_dir = self.output_root / "runs"

    def write_batch(self, records: Iterable[ProductRecord]) -> int:
        written = 0
        with self.products_path.open("a", encoding="utf-8") as fh:
            for record in records:
                fh.write(json.dumps(asdict(record), ensure_ascii=False) + "\n")
                written += 1
        return written

    def write_run_report(self, report: RunReport) -> Path:
        self.runs_dir.mkdir(parents=True, exist_ok=True)
        path = self.runs_dir / f"{report.run_id}.json"
        with path.open("w", encoding="utf-8") as fh:
            json.dump(run_report_dict(report), fh, ensure_ascii=False, indent=2)
        return path


def target_report_dict(target: TargetReport) -> Dict[str, Any]:
    return {
        "entity": target.entity,
        "status": target.status,
        "error": target.error,
        "candidates": list(target.candidates),
        "attempted": target.attempted,
        "succeeded": target.succeeded,
        "products": [asdict(r) for r in target.records],
        "failures": dict(target.failures),
    }


def run_report_dict(report: RunReport) -> Dict[str, Any]:
    return {
        "run_id": report.run_id,
        "aborted": report.aborted,
        "abort_reason": report.abort_reason,
        "targets": [target_report_dict(t) for t in report.targets],
        "skipped": list(report.skipped),
        "quota": report.quota,
    }
