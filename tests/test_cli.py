import json
from pathlib import Path

from typer.testing import CliRunner

from apigraph.cli import app
from apigraph.compiler.fingerprint import compute_fingerprint
from apigraph.definition.loader import load_definition

runner = CliRunner()


GOOD = {
    "name": "orders-api",
    "resources": {"orders": {"pathPart": "orders"}},
    "methods": {"list_orders": {"resourceKey": "orders", "httpMethod": "GET"}},
    "integrations": {"list_orders_mock": {"methodKey": "list_orders", "integrationType": "MOCK"}},
}


def write(p: Path, data: dict) -> Path:
    p.write_text(json.dumps(data), encoding="utf-8")
    return p


def test_validate_ok(tmp_path: Path):
    path = write(tmp_path / "api.json", GOOD)
    result = runner.invoke(app, ["validate", str(path)])
    assert result.exit_code == 0, result.output
    assert "ok" in result.output


def test_validate_reports_violations(tmp_path: Path):
    bad = dict(GOOD, methods={"list_orders": {"resourceKey": "missing", "httpMethod": "FETCH"}})
    path = write(tmp_path / "api.json", bad)

    result = runner.invoke(app, ["validate", str(path)])

    assert result.exit_code == 1
    assert "compilation failed with 2 violations" in result.output


def test_fingerprint_prints_the_digest(tmp_path: Path):
    path = write(tmp_path / "api.json", GOOD)

    result = runner.invoke(app, ["fingerprint", str(path)])

    assert result.exit_code == 0, result.output
    assert result.output.strip() == compute_fingerprint(load_definition(path))


def test_graph_export_dot(tmp_path: Path):
    path = write(tmp_path / "api.json", GOOD)
    out = tmp_path / "out" / "graph.dot"

    result = runner.invoke(app, ["graph", "export", str(path), "--format", "dot", "--out", str(out)])

    assert result.exit_code == 0, result.output
    text = out.read_text(encoding="utf-8")
    assert text.startswith('digraph "orders-api" {')
    assert '"method:list_orders" -> "resource:orders" [label="BINDS"];' in text


def test_deploy_twice_is_idempotent(tmp_path: Path):
    path = write(tmp_path / "api.json", GOOD)
    db = tmp_path / "state" / "deployments.db"

    first = runner.invoke(app, ["deploy", str(path), "--db", str(db)])
    second = runner.invoke(app, ["deploy", str(path), "--db", str(db)])

    assert first.exit_code == 0, first.output
    assert "deployed" in first.output
    assert second.exit_code == 0, second.output
    assert "unchanged" in second.output

    listed = runner.invoke(app, ["deployments", "list", "orders-api", "--db", str(db), "--format", "json"])
    assert listed.exit_code == 0, listed.output
    assert len(json.loads(listed.output)) == 1


def test_compile_json_is_parseable(tmp_path: Path):
    path = write(tmp_path / "api.json", GOOD)
    result = runner.invoke(app, ["compile", str(path), "--format", "json"])
    assert result.exit_code == 0, result.output

    payload = json.loads(result.stdout)
    assert payload["api"] == "orders-api"
    assert payload["creation_order"][0] == "root"
    assert payload["methods"]["list_orders"]["resource_path"] == "/orders"
    assert payload["integrations"]["list_orders_mock"]["integration_type"] == "MOCK"


def test_deployments_list_defaults_to_the_state_dir(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("APIGRAPH_STATE_DIR", str(tmp_path / "state"))
    path = write(tmp_path / "api.json", GOOD)

    deployed = runner.invoke(app, ["deploy", str(path)])
    assert deployed.exit_code == 0, deployed.output
    assert (tmp_path / "state" / "deployments.db").exists()

    listed = runner.invoke(app, ["deployments", "list", "orders-api"])
    assert listed.exit_code == 0, listed.output
    assert "Deployments:" in listed.output
    assert "deployed" in listed.output


def test_unknown_log_level_is_a_usage_error():
    result = runner.invoke(app, ["--log-level", "foo", "ping"])
    assert result.exit_code != 0
    assert isinstance(result.exception, SystemExit)
    assert "pong" not in result.output


def test_fingerprint_exclude_field_overrides_settings(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("APIGRAPH_FINGERPRINT_EXCLUDE_FIELDS", "[]")
    data = {**GOOD, "description": "v1"}
    path = write(tmp_path / "api.json", data)

    result = runner.invoke(app, ["fingerprint", str(path), "--exclude-field", "description"])

    assert result.exit_code == 0, result.output
    expected = compute_fingerprint(load_definition(path), exclude_fields=["description"])
    assert result.output.strip() == expected
