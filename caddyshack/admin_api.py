"""Client for the Caddy admin API (load, adapt, config, PKI, status)."""
from __future__ import annotations

from dataclasses import dataclass
from http.client import HTTPConnection, HTTPException, HTTPSConnection
from typing import Any
from urllib.parse import urlsplit
import json
import socket

from .cancellation import CancelToken, CancelledError
from .logging import get_logger

logger = get_logger("admin")

DEFAULT_TIMEOUT = 30.0


class AdminError(RuntimeError):
    """The admin API answered with a non-success status."""

    def __init__(self, status_code: int, message: str = "") -> None:
        self.status_code = status_code
        self.message = message
        if message:
            text = f"caddy admin api error (status {status_code}): {message}"
        else:
            text = f"caddy admin api error (status {status_code})"
        super().__init__(text)


class AdminUnreachableError(RuntimeError):
    """The admin API could not be reached at all."""


@dataclass(slots=True)
class AdminResponse:
    status: int
    headers: dict[str, str]
    body: bytes

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")


@dataclass(slots=True)
class CaddyStatus:
    running: bool
    version: str | None = None


@dataclass(slots=True)
class CAInfo:
    id: str
    name: str = ""
    root_cn: str = ""
    intermediate_cn: str = ""
    root_cert: str = ""
    intermediate_cert: str = ""
    provisioned: bool = True


class AdminClient:
    """Thin blocking client; every call honours ``timeout`` and an optional cancel token."""

    def __init__(self, base_url: str, *, timeout: float = DEFAULT_TIMEOUT) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        parts = urlsplit(self.base_url)
        if parts.scheme not in ("http", "https") or not parts.hostname:
            raise ValueError(f"Unsupported admin API URL: {base_url}")
        self._scheme = parts.scheme
        self._host = parts.hostname
        self._port = parts.port
        self._prefix = parts.path.rstrip("/")

    def load(self, caddyfile_text: str, *, cancel: CancelToken | None = None) -> None:
        """POST the text to ``/load`` so Caddy replaces its running config."""
        response = self._request(
            "POST",
            "/load",
            body=caddyfile_text.encode("utf-8"),
            headers={"Content-Type": "text/caddyfile"},
            cancel=cancel,
        )
        if response.status != 200:
            raise _error_from(response)
        logger.info("Caddy accepted new configuration via /load")

    def adapt(self, caddyfile_text: str, *, cancel: CancelToken | None = None) -> AdminResponse:
        """POST the text to ``/adapt``; the caller inspects the status."""
        return self._request(
            "POST",
            "/adapt",
            body=caddyfile_text.encode("utf-8"),
            headers={"Content-Type": "text/caddyfile"},
            cancel=cancel,
        )

    def validate(self, caddyfile_text: str, *, cancel: CancelToken | None = None) -> None:
        response = self.adapt(caddyfile_text, cancel=cancel)
        if response.status != 200:
            raise _error_from(response)

    def get_config(self, *, cancel: CancelToken | None = None) -> bytes:
        """Return the running configuration as opaque JSON bytes."""
        response = self._request("GET", "/config/", headers={"Accept": "application/json"}, cancel=cancel)
        if response.status != 200:
            raise _error_from(response)
        return response.body

    def get_pki_ca_info(self, ca_id: str = "local", *, cancel: CancelToken | None = None) -> CAInfo | None:
        """Return CA details, or ``None`` when the PKI app is not configured."""
        response = self._request("GET", f"/pki/ca/{ca_id}", headers={"Accept": "application/json"}, cancel=cancel)
        if response.status == 404:
            return None
        if response.status != 200:
            raise _error_from(response)
        try:
            data: dict[str, Any] = json.loads(response.text)
        except json.JSONDecodeError as exc:
            raise AdminError(response.status, f"invalid PKI response: {exc}") from exc
        return CAInfo(
            id=str(data.get("id", ca_id)),
            name=str(data.get("name", "")),
            root_cn=str(data.get("root_common_name", data.get("root_cn", ""))),
            intermediate_cn=str(data.get("intermediate_common_name", data.get("intermediate_cn", ""))),
            root_cert=str(data.get("root_certificate", data.get("root_cert", ""))),
            intermediate_cert=str(data.get("intermediate_certificate", data.get("intermediate_cert", ""))),
        )

    def status(self, *, cancel: CancelToken | None = None) -> CaddyStatus:
        """Report whether Caddy answers at all; never raises for network failures."""
        try:
            response = self._request("GET", "/config/", cancel=cancel)
        except AdminUnreachableError:
            return CaddyStatus(running=False)
        return CaddyStatus(running=True, version=response.headers.get("server") or None)

    def ping(self, *, cancel: CancelToken | None = None) -> None:
        self._request("GET", "/config/", cancel=cancel)

    def _connection(self) -> HTTPConnection:
        if self._scheme == "https":
            return HTTPSConnection(self._host, self._port, timeout=self.timeout)
        return HTTPConnection(self._host, self._port, timeout=self.timeout)

    def _request(
        self,
        method: str,
        path: str,
        *,
        body: bytes | None = None,
        headers: dict[str, str] | None = None,
        cancel: CancelToken | None = None,
    ) -> AdminResponse:
        if cancel is not None:
            cancel.raise_if_cancelled()
        conn = self._connection()
        unregister = None
        try:
            conn.connect()
            if cancel is not None:
                unregister = cancel.on_cancel(lambda: _abort(conn))
            conn.request(method, self._prefix + path, body=body, headers=headers or {})
            response = conn.getresponse()
            payload = response.read()
            result = AdminResponse(
                status=response.status,
                headers={key.lower(): value for key, value in response.getheaders()},
                body=payload,
            )
        except (OSError, HTTPException) as exc:
            if cancel is not None and cancel.cancelled:
                raise CancelledError(f"{method} {path} cancelled") from exc
            logger.warning("Caddy admin API unreachable at %s: %s", self.base_url, exc)
            raise AdminUnreachableError(f"connecting to caddy admin api: {exc}") from exc
        finally:
            if unregister is not None:
                unregister()
            conn.close()
        logger.debug("%s %s -> %d", method, path, result.status)
        return result


def _abort(conn: HTTPConnection) -> None:
    sock = conn.sock
    if sock is None:
        return
    try:
        sock.shutdown(socket.SHUT_RDWR)
    except OSError:
        pass


def _error_from(response: AdminResponse) -> AdminError:
    text = response.text
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        data = None
    if isinstance(data, dict) and data.get("error"):
        return AdminError(response.status, str(data["error"]))
    return AdminError(response.status, text.strip())
