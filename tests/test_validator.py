import subprocess

import pytest

from caddyshack.admin_api import AdminResponse, AdminUnreachableError
from caddyshack.cancellation import CancelToken, CancelledError
from caddyshack.validator import (
    AdminValidator,
    CaddyValidator,
    ValidationError,
    ValidationResult,
    ValidationState,
    ValidatorUnavailableError,
    parse_validation_errors,
    result_from_failure,
)


class FakeProcess:
    def __init__(self, returncode=0, stdout="", stderr="", timeout_first=False):
        self.returncode = returncode
        self._stdout = stdout
        self._stderr = stderr
        self._timeout_first = timeout_first
        self.inputs = []
        self.killed = False

    def communicate(self, input=None, timeout=None):
        self.inputs.append(input)
        if self._timeout_first:
            self._timeout_first = False
            raise subprocess.TimeoutExpired("caddy", timeout)
        return self._stdout, self._stderr

    def kill(self):
        self.killed = True


def _install(monkeypatch, process, calls=None):
    def fake_popen(cmd, **kwargs):
        if calls is not None:
            calls.append(cmd)
        return process

    monkeypatch.setattr("caddyshack.validator.subprocess.Popen", fake_popen)


def test_caddyfile_line_diagnostic():
    errors = parse_validation_errors("Caddyfile:10 - Error: unrecognized directive")
    assert errors == [ValidationError(line=10, message="Error: unrecognized directive")]


@pytest.mark.parametrize(
    "output, expected",
    [
        ("Caddyfile:4: unknown subdirective", ValidationError(4, "unknown subdirective")),
        ("parsing failed on line 7: unexpected token", ValidationError(7, "unexpected token")),
        ("Error: wrong argument count at Caddyfile:12", ValidationError(12, "wrong argument count")),
        ("adapt: invalid listener address", ValidationError(0, "adapt: invalid listener address")),
    ],
)
def test_diagnostic_patterns(output, expected):
    assert parse_validation_errors(output) == [expected]


def test_noise_lines_are_ignored():
    output = "{\"level\":\"info\",\"msg\":\"using adjacent Caddyfile\"}\n\nCaddyfile:3 - Error: bad\n"
    assert parse_validation_errors(output) == [ValidationError(3, "Error: bad")]


def test_result_from_failure_never_empty():
    result = result_from_failure("", "", "caddy adapt exited with status 1")
    assert result.state is ValidationState.INVALID
    assert result.errors == [ValidationError(0, "caddy adapt exited with status 1")]
    raw = result_from_failure("something odd happened\n")
    assert raw.errors == [ValidationError(0, "something odd happened")]


def test_summary_and_first_error():
    assert ValidationResult().summary() == "Configuration has not been checked"
    assert ValidationResult(ValidationState.VALID).summary() == "Configuration is valid"
    invalid = ValidationResult(ValidationState.INVALID, [ValidationError(10, "bad"), ValidationError(0, "worse")])
    assert invalid.summary() == "Configuration is invalid:\n  Line 10: bad\n  worse\n"
    assert invalid.first_error == "bad"
    assert ValidationResult(ValidationState.VALID).first_error == ""


def test_caddy_validator_accepts(monkeypatch):
    process = FakeProcess(returncode=0)
    calls = []
    _install(monkeypatch, process, calls)
    result = CaddyValidator("/usr/bin/caddy").validate("example.com {\n}\n")
    assert result.valid
    assert result.errors == []
    assert calls == [["/usr/bin/caddy", "adapt", "--config", "-", "--adapter", "caddyfile", "--validate"]]
    assert process.inputs == ["example.com {\n}\n"]


def test_caddy_validator_decodes_stderr(monkeypatch):
    process = FakeProcess(returncode=1, stderr="Error: adapting config using caddyfile: Caddyfile:2 - Error: unrecognized directive: bogus\n")
    _install(monkeypatch, process)
    result = CaddyValidator("caddy").validate("example.com {\n\tbogus\n}\n")
    assert result.state is ValidationState.INVALID
    assert result.errors[0].line == 2
    assert result.errors[0].message == "Error: unrecognized directive: bogus"


def test_caddy_validator_without_binary(monkeypatch):
    monkeypatch.setattr("caddyshack.validator.which", lambda name: None)
    with pytest.raises(ValidatorUnavailableError):
        CaddyValidator().validate("example.com {\n}\n")


def test_caddy_validator_popen_failure(monkeypatch):
    def broken_popen(cmd, **kwargs):
        raise FileNotFoundError(cmd[0])

    monkeypatch.setattr("caddyshack.validator.subprocess.Popen", broken_popen)
    with pytest.raises(ValidatorUnavailableError):
        CaddyValidator("/missing/caddy").validate("")


def test_caddy_validator_timeout_kills_process(monkeypatch):
    process = FakeProcess(timeout_first=True)
    _install(monkeypatch, process)
    with pytest.raises(ValidatorUnavailableError, match="timed out"):
        CaddyValidator("caddy", timeout=0.5).validate("example.com {\n}\n")
    assert process.killed


def test_caddy_validator_honours_cancelled_token(monkeypatch):
    process = FakeProcess()
    calls = []
    _install(monkeypatch, process, calls)
    token = CancelToken()
    token.cancel()
    with pytest.raises(CancelledError):
        CaddyValidator("caddy").validate("", cancel=token)
    assert calls == []


def test_cancel_during_run_kills_process(monkeypatch):
    token = CancelToken()

    class CancellingProcess(FakeProcess):
        def communicate(self, input=None, timeout=None):
            token.cancel()
            return "", "signal: killed"

    process = CancellingProcess(returncode=-9)
    _install(monkeypatch, process)
    with pytest.raises(CancelledError):
        CaddyValidator("caddy").validate("", cancel=token)
    assert process.killed


class FakeAdminClient:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error

    def adapt(self, text, *, cancel=None):
        if self.error is not None:
            raise self.error
        return self.response


def test_admin_validator_valid():
    validator = AdminValidator(FakeAdminClient(AdminResponse(200, {}, b"{}")))
    assert validator.validate("example.com {\n}\n").valid


def test_admin_validator_invalid_uses_error_field():
    body = b'{"error":"adapting config using caddyfile: Caddyfile:3 - Error: unknown directive"}'
    result = AdminValidator(FakeAdminClient(AdminResponse(400, {}, body))).validate("x")
    assert result.state is ValidationState.INVALID
    assert result.errors == [ValidationError(3, "Error: unknown directive")]


def test_admin_validator_unreachable():
    validator = AdminValidator(FakeAdminClient(error=AdminUnreachableError("refused")))
    with pytest.raises(ValidatorUnavailableError):
        validator.validate("x")
