"""Check generated Caddyfile text against Caddy and decode its diagnostics."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from shutil import which
import json
import re
import subprocess

from .admin_api import AdminClient, AdminUnreachableError
from .cancellation import CancelToken, CancelledError
from .logging import get_logger

logger = get_logger("validator")

DEFAULT_TIMEOUT = 30.0

_LINE_FIRST = (
    re.compile(r"caddyfile:(\d+)\s*[-:]\s*(.+)", re.IGNORECASE),
    re.compile(r"line\s+(\d+):\s*(.+)", re.IGNORECASE),
)
_MESSAGE_FIRST = re.compile(r"error:\s*(.+?)\s+at\s+.*?:(\d+)", re.IGNORECASE)
_ERROR_WORDS = ("error", "invalid", "unknown", "unrecognized", "expected")


class ValidationState(Enum):
    UNCHECKED = "unchecked"
    VALID = "valid"
    INVALID = "invalid"


class ValidatorUnavailableError(RuntimeError):
    """Validation could not run: the outcome is unknown, not invalid."""


@dataclass(slots=True)
class ValidationError:
    line: int
    message: str


@dataclass(slots=True)
class ValidationResult:
    state: ValidationState = ValidationState.UNCHECKED
    errors: list[ValidationError] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return self.state is ValidationState.VALID

    @property
    def first_error(self) -> str:
        if self.state is not ValidationState.INVALID or not self.errors:
            return ""
        return self.errors[0].message

    def summary(self) -> str:
        if self.state is ValidationState.VALID:
            return "Configuration is valid"
        if self.state is ValidationState.UNCHECKED:
            return "Configuration has not been checked"
        lines = ["Configuration is invalid:"]
        for error in self.errors:
            if error.line > 0:
                lines.append(f"  Line {error.line}: {error.message}")
            else:
                lines.append(f"  {error.message}")
        return "\n".join(lines) + "\n"


def parse_validation_errors(output: str) -> list[ValidationError]:
    """Extract line-addressed errors from Caddy's free-text output."""
    errors: list[ValidationError] = []
    for raw_line in output.splitlines():
        line = raw_line.strip()
        if not line:
            continue
        error = _match_line(line)
        if error is None and any(word in line.lower() for word in _ERROR_WORDS):
            error = ValidationError(line=0, message=line)
        if error is not None:
            errors.append(error)
    return errors


def _match_line(line: str) -> ValidationError | None:
    for pattern in _LINE_FIRST:
        match = pattern.search(line)
        if match:
            return ValidationError(line=int(match.group(1)), message=match.group(2).strip())
    match = _MESSAGE_FIRST.search(line)
    if match:
        return ValidationError(line=int(match.group(2)), message=match.group(1).strip())
    return None


def result_from_failure(stderr: str, stdout: str = "", fallback: str = "validation failed") -> ValidationResult:
    """Build an INVALID result; never empty, even if nothing could be decoded."""
    errors = parse_validation_errors(stderr)
    if not errors:
        message = stderr.strip() or stdout.strip() or fallback
        errors = [ValidationError(line=0, message=message)]
    return ValidationResult(state=ValidationState.INVALID, errors=errors)


class CaddyValidator:
    """Validate text by piping it to ``caddy adapt --validate``."""

    def __init__(self, caddy_bin: str | None = None, *, timeout: float = DEFAULT_TIMEOUT) -> None:
        self.caddy_bin = caddy_bin
        self.timeout = timeout

    def _resolve_bin(self) -> str:
        candidate = self.caddy_bin or which("caddy")
        if not candidate:
            raise ValidatorUnavailableError("Unable to locate caddy binary. Set CADDYSHACK_CADDY_BIN.")
        return candidate

    def validate(self, text: str, *, cancel: CancelToken | None = None) -> ValidationResult:
        if cancel is not None:
            cancel.raise_if_cancelled()
        cmd = [self._resolve_bin(), "adapt", "--config", "-", "--adapter", "caddyfile", "--validate"]
        try:
            proc = subprocess.Popen(
                cmd,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
            )
        except OSError as exc:
            raise ValidatorUnavailableError(f"Unable to run {cmd[0]}: {exc}") from exc

        unregister = cancel.on_cancel(proc.kill) if cancel is not None else None
        try:
            stdout, stderr = proc.communicate(text, timeout=self.timeout)
        except subprocess.TimeoutExpired as exc:
            proc.kill()
            proc.communicate()
            raise ValidatorUnavailableError(f"validation timed out after {self.timeout:g}s") from exc
        finally:
            if unregister is not None:
                unregister()

        if cancel is not None and cancel.cancelled:
            raise CancelledError("validation cancelled")
        if proc.returncode == 0:
            logger.info("caddy adapt accepted the configuration")
            return ValidationResult(state=ValidationState.VALID)
        logger.info("caddy adapt exited with status %d", proc.returncode)
        return result_from_failure(stderr, stdout, f"caddy adapt exited with status {proc.returncode}")


class AdminValidator:
    """Validate text through the admin API's ``/adapt`` endpoint."""

    def __init__(self, client: AdminClient) -> None:
        self.client = client

    def validate(self, text: str, *, cancel: CancelToken | None = None) -> ValidationResult:
        try:
            response = self.client.adapt(text, cancel=cancel)
        except AdminUnreachableError as exc:
            raise ValidatorUnavailableError(str(exc)) from exc
        if response.status == 200:
            return ValidationResult(state=ValidationState.VALID)
        logger.info("/adapt answered with status %d", response.status)
        return result_from_failure(_admin_error_text(response.text), fallback=f"adapt failed with status {response.status}")


def _admin_error_text(body: str) -> str:
    try:
        data = json.loads(body)
    except json.JSONDecodeError:
        return body
    if isinstance(data, dict) and data.get("error"):
        return str(data["error"])
    return body
