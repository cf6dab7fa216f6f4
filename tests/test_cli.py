import json
from pathlib import Path

from click.testing import CliRunner

from caddyshack import cli, db
from caddyshack.admin_api import CaddyStatus
from caddyshack.history import save_config_history
from caddyshack.validator import ValidationError, ValidationResult, ValidationState

SOURCE = "(common) {\n    encode gzip\n}\nexample.com {\n    import common\n}\n"
CANONICAL = "(common) {\n\tencode gzip\n}\n\nexample.com {\n\timport common\n}\n"


def _reset_db(tmp_path: Path) -> Path:
    db._engine = None  # type: ignore[attr-defined]
    db._SessionLocal = None  # type: ignore[attr-defined]
    db_path = tmp_path / "history.db"
    db.init_db(db_path)
    return db_path


def _caddyfile(tmp_path: Path, text: str = SOURCE) -> Path:
    target = tmp_path / "Caddyfile"
    target.write_text(text)
    return target


class FakeValidator:
    result = ValidationResult(ValidationState.VALID)

    def __init__(self, *args, **kwargs):
        pass

    def validate(self, text, *, cancel=None):
        return self.result


def test_parse_outputs_document_json(tmp_path: Path):
    result = CliRunner().invoke(cli.main, ["parse", str(_caddyfile(tmp_path, SOURCE + "stray\n"))])
    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert payload["status"] == "ok"
    assert payload["document"]["sites"][0]["addresses"] == ["example.com"]
    assert payload["document"]["snippets"][0]["name"] == "common"
    assert payload["skipped"][0]["reason"] == "unrecognised top-level token"
    assert payload["unresolved_imports"] == []


def test_parse_missing_file(tmp_path: Path):
    result = CliRunner().invoke(cli.main, ["parse", str(tmp_path / "Caddyfile")])
    assert result.exit_code == 1
    assert "caddyfile not found" in result.output


def test_sites_and_snippets_tables(tmp_path: Path):
    target = str(_caddyfile(tmp_path))
    sites = CliRunner().invoke(cli.main, ["sites", target])
    assert sites.exit_code == 0, sites.output
    assert "example.com" in sites.output
    snippets = CliRunner().invoke(cli.main, ["snippets", target])
    assert snippets.exit_code == 0, snippets.output
    assert "common" in snippets.output


def test_format_prints_canonical_text(tmp_path: Path):
    target = _caddyfile(tmp_path)
    result = CliRunner().invoke(cli.main, ["format", str(target)])
    assert result.exit_code == 0, result.output
    assert result.output == CANONICAL
    assert target.read_text() == SOURCE


def test_format_write_replaces_file(tmp_path: Path, monkeypatch):
    _reset_db(tmp_path)
    monkeypatch.setattr(cli, "CaddyValidator", FakeValidator)
    target = _caddyfile(tmp_path)
    result = CliRunner().invoke(cli.main, ["format", "--write", str(target)])
    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert payload["validation"] == "valid"
    assert payload["history_id"] is not None
    assert target.read_text() == CANONICAL


def test_format_write_leaves_file_alone_when_invalid(tmp_path: Path, monkeypatch):
    class Invalid(FakeValidator):
        result = ValidationResult(ValidationState.INVALID, [ValidationError(3, "unrecognized subdirective env.UPSTREAM")])

    _reset_db(tmp_path)
    monkeypatch.setattr(cli, "CaddyValidator", Invalid)
    source = "example.com {\n\treverse_proxy {env.UPSTREAM}\n}\n"
    target = _caddyfile(tmp_path, source)
    result = CliRunner().invoke(cli.main, ["format", "--write", str(target)])
    assert result.exit_code == 1
    assert "env.UPSTREAM" in result.output
    assert target.read_text() == source


def test_format_write_refuses_documents_with_skipped_ranges(tmp_path: Path, monkeypatch):
    monkeypatch.setattr(cli, "CaddyValidator", FakeValidator)
    source = SOURCE + "stray\n"
    target = _caddyfile(tmp_path, source)
    result = CliRunner().invoke(cli.main, ["format", "--write", str(target)])
    assert result.exit_code == 1
    assert "could not be parsed" in result.output
    assert target.read_text() == source


def test_default_path_is_located_near_configured_one(tmp_path: Path, monkeypatch):
    _caddyfile(tmp_path)
    monkeypatch.setattr(cli.config, "CADDYFILE_PATH", tmp_path / "caddy.conf")
    result = CliRunner().invoke(cli.main, ["parse"])
    assert result.exit_code == 0, result.output
    assert json.loads(result.output)["source"] == str(tmp_path / "Caddyfile")


def test_permission_error_suggests_command(tmp_path: Path, mocker):
    target = _caddyfile(tmp_path)
    mocker.patch("caddyshack.reader.Path.read_text", side_effect=PermissionError("denied"))
    result = CliRunner().invoke(cli.main, ["parse", str(target)])
    assert result.exit_code == 1
    assert f"sudo caddyshack parse {target}" in result.output


def test_validate_reports_errors(tmp_path: Path, monkeypatch):
    class Invalid(FakeValidator):
        result = ValidationResult(ValidationState.INVALID, [ValidationError(4, "unknown directive")])

    monkeypatch.setattr(cli, "CaddyValidator", Invalid)
    result = CliRunner().invoke(cli.main, ["validate", str(_caddyfile(tmp_path))])
    assert result.exit_code == 1
    payload = json.loads(result.output)
    assert payload["status"] == "invalid"
    assert payload["errors"] == [{"line": 4, "message": "unknown directive"}]


def test_validate_ok(tmp_path: Path, monkeypatch):
    monkeypatch.setattr(cli, "CaddyValidator", FakeValidator)
    result = CliRunner().invoke(cli.main, ["validate", str(_caddyfile(tmp_path))])
    assert result.exit_code == 0, result.output
    assert json.loads(result.output)["state"] == "valid"


def test_apply_without_reload(tmp_path: Path, monkeypatch):
    _reset_db(tmp_path)
    monkeypatch.setattr(cli, "CaddyValidator", FakeValidator)
    target = _caddyfile(tmp_path)
    result = CliRunner().invoke(cli.main, ["apply", "--no-reload", "--comment", "tidy", str(target)])
    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert payload["reloaded"] is False
    assert payload["history_id"] is not None
    assert target.read_text() == CANONICAL


def test_apply_refuses_documents_with_skipped_ranges(tmp_path: Path):
    target = _caddyfile(tmp_path, SOURCE + "}\n")
    result = CliRunner().invoke(cli.main, ["apply", "--no-reload", str(target)])
    assert result.exit_code == 1
    assert "could not be parsed" in result.output


def test_diff(tmp_path: Path):
    result = CliRunner().invoke(cli.main, ["diff", str(_caddyfile(tmp_path))])
    assert result.exit_code == 0, result.output
    assert "would change it" in result.output
    assert "+\tencode gzip" in result.output


def test_status(monkeypatch):
    class FakeClient:
        def __init__(self, base_url, *, timeout=None):
            self.base_url = base_url

        def status(self):
            return CaddyStatus(running=True, version="Caddy")

    monkeypatch.setattr(cli, "AdminClient", FakeClient)
    result = CliRunner().invoke(cli.main, ["status"])
    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert payload["running"] is True
    assert payload["version"] == "Caddy"


def test_history_commands(tmp_path: Path):
    _reset_db(tmp_path)
    entry_id = save_config_history("old {\n}\n", "new {\n}\n", comment="first")
    listing = CliRunner().invoke(cli.main, ["history"])
    assert listing.exit_code == 0, listing.output
    assert "first" in listing.output
    shown = CliRunner().invoke(cli.main, ["history-show", str(entry_id)])
    assert shown.exit_code == 0, shown.output
    assert shown.output == "old {\n}\n"
    missing = CliRunner().invoke(cli.main, ["history-show", "999"])
    assert missing.exit_code == 1
