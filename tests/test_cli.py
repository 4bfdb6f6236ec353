import json
import logging

from typer.testing import CliRunner

from content_risk.cli import JsonFormatter, app

runner = CliRunner()


def test_scan_markdown_output():
    result = runner.invoke(app, ["scan", "--text", "Urgent! Click here.", "--format", "markdown"])
    assert result.exit_code == 0
    assert "# Content Risk Summary" in result.output
    assert "Medium Risk" in result.output


def test_scan_json_output():
    result = runner.invoke(app, ["scan", "--url", "https://paypa1-secure.com/login"])
    assert result.exit_code == 0
    payload = json.loads(result.output[result.output.index("{\n") :])
    assert payload["risk_score"] == 36
    assert payload["input_type"] == "url"


def test_scan_without_input_exits_with_usage_error():
    result = runner.invoke(app, ["scan", "--text", "   "])
    assert result.exit_code == 2


def test_validate(tmp_path):
    good = tmp_path / "good.json"
    good.write_text(json.dumps({"risk_score": 50, "verdict": "Medium Risk", "summary": "s", "sub_scores": {}}))
    assert runner.invoke(app, ["validate", "--input", str(good)]).exit_code == 0

    missing = tmp_path / "missing.json"
    missing.write_text(json.dumps({"risk_score": 50}))
    assert runner.invoke(app, ["validate", "--input", str(missing)]).exit_code == 1

    out_of_range = tmp_path / "range.json"
    out_of_range.write_text(json.dumps({"risk_score": 150, "verdict": "x", "summary": "s", "sub_scores": {}}))
    assert runner.invoke(app, ["validate", "--input", str(out_of_range)]).exit_code == 1


def test_json_log_lines_keep_extra_fields():
    record = logging.getLogger("content_risk.test").makeRecord(
        "content_risk.test", logging.WARNING, __file__, 1, "tracker list unavailable", (), None,
        extra={"path": "/tmp/trackers.json", "error": "bad bytes"},
    )
    line = json.loads(JsonFormatter().format(record))
    assert line["message"] == "tracker list unavailable"
    assert line["path"] == "/tmp/trackers.json"
    assert line["error"] == "bad bytes"
    assert "args" not in line
