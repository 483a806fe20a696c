import json
from pathlib import Path

from qjsbuild.observability import StructuredLogger


def test_logger_filters_by_stage_and_level(tmp_path: Path) -> None:
    logger = StructuredLogger()
    logger.log(operation="build", stage="resolve", target="wasm32-wasi", message="resolved")
    logger.log(
        operation="bindings",
        stage="bindings",
        target="wasm32-wasi",
        message="no bundled bindings",
        level="warning",
        extra={"mode": "placeholder"},
    )

    assert [record["message"] for record in logger.records_for_stage("resolve")] == ["resolved"]
    assert [record["extra"] for record in logger.warnings()] == [{"mode": "placeholder"}]

    path = logger.to_json_lines(tmp_path / "logs" / "build-log.jsonl")
    lines = [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]
    assert lines == logger.records
