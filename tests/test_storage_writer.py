import json

from pipescout.core.models import (
    ExtractionResponse,
    Product,
    ProductRecord,
    RunReport,
    TargetReport,
)
from pipescout.core.storage.writer import JsonlResultSink


def test_write_batch_appends_flat_records(tmp_path):
    sink = JsonlResultSink(tmp_path / "out")
    record = ProductRecord(
        molecule_name="Sotorasib",
        category="Oncology",
        stage="Approved",
        company_name="Amgen",
        source_url="https://www.amgen.com/science/pipeline",
    )
    assert sink.write_batch([record]) == 1
    assert sink.write_batch([record]) == 1
    lines = (tmp_path / "out" / "products.jsonl").read_text(encoding="utf-8").splitlines()
    assert len(lines) == 2
    assert json.loads(lines[0]) == {
        "molecule_name": "Sotorasib",
        "category": "Oncology",
        "stage": "Approved",
        "company_name": "Amgen",
        "source_url": "https://www.amgen.com/science/pipeline",
    }


def test_target_records_flatten_results():
    target = TargetReport(entity="Amgen")
    target.results.append(
        ExtractionResponse(
            url="https://www.amgen.com/pipeline",
            products=[Product(name="A"), Product(name="B", stage="2")],
        )
    )
    records = target.records
    assert [r.molecule_name for r in records] == ["A", "B"]
    assert all(r.company_name == "Amgen" for r in records)


def test_write_run_report(tmp_path):
    sink = JsonlResultSink(tmp_path)
    run = RunReport(run_id="20240501-120000")
    run.targets.append(TargetReport(entity="Amgen", status="error", error="no candidate URLs"))
    run.skipped = ["Biogen"]
    path = sink.write_run_report(run)
    assert path == tmp_path / "runs" / "20240501-120000.json"
    saved = json.loads(path.read_text(encoding="utf-8"))
    assert saved["targets"][0]["error"] == "no candidate URLs"
    assert saved["targets"][0]["products"] == []
    assert saved["skipped"] == ["Biogen"]
    assert saved["aborted"] is False
