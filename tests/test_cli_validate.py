import json

from typer.testing import CliRunner

from phase_estimator.cli import app

runner = CliRunner()


def test_cli_validate_ok():
    r = runner.invoke(app, ["validate", "examples/basic-estimate.yaml"])
    assert r.exit_code == 0
    assert "OK: 2 features, 6 suppliers" in r.stdout
    assert "Development man days: 20.0" in r.stdout


def test_cli_validate_json_success():
    r = runner.invoke(app, ["validate", "examples/basic-estimate.yaml", "--format", "json"])
    assert r.exit_code == 0
    payload = json.loads(r.stdout)
    assert payload["command"] == "validate"
    assert payload["ok"] is True
    assert payload["errors"] == []
    assert payload["summary"]["development_man_days"] == 20


def test_cli_validate_json_failure_contains_codes():
    r = runner.invoke(app, ["validate", "examples/invalid-effort-range.yaml", "--format", "json"])
    assert r.exit_code == 2
    payload = json.loads(r.stdout)
    assert payload["ok"] is False
    codes = {e["code"] for e in payload["errors"]}
    assert codes == {"E_NEGATIVE_MAN_DAYS", "E_EFFORT_OUT_OF_RANGE"}


def test_cli_validate_missing_file():
    r = runner.invoke(app, ["validate", "examples/nope.yaml"])
    assert r.exit_code == 1
    assert "E_FILE_NOT_FOUND" in r.output


def test_cli_validate_unknown_format():
    r = runner.invoke(app, ["validate", "examples/basic-estimate.yaml", "--format", "xml"])
    assert r.exit_code == 2
    assert "E_VALIDATE_UNKNOWN_FORMAT" in r.output
