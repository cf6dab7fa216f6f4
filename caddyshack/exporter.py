"""Write documents to disk and push them to a running Caddy."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Protocol
import os
import stat
import tempfile

from .admin_api import AdminClient, AdminError
from .cancellation import CancelToken
from .config import HISTORY_LIMIT
from .document import Document
from .history import prune_config_history, save_config_history
from .logging import get_logger
from .reader import caddyfile_exists, read_caddyfile
from .validator import ValidationResult, ValidationState
from .writer import ensure_unique_names, write_document

logger = get_logger("exporter")


class ExportError(RuntimeError):
    pass


class ValidationFailedError(ExportError):
    """The generated text was rejected by the validator; nothing was written."""

    def __init__(self, result: ValidationResult) -> None:
        self.result = result
        super().__init__(result.summary().rstrip())


class ReloadRejectedError(AdminError):
    """Caddy refused the new configuration after it was written to disk."""

    def __init__(self, status_code: int, message: str = "", *, target: Path | None = None) -> None:
        super().__init__(status_code, message)
        self.target = target


class Validator(Protocol):
    def validate(self, text: str, *, cancel: CancelToken | None = None) -> ValidationResult: ...


@dataclass(slots=True)
class ApplyResult:
    target: Path
    text: str
    validation: ValidationResult
    history_id: int | None
    reloaded: bool


def write_text_atomic(target: Path, text: str) -> Path:
    """Replace ``target`` with ``text`` so readers never see a partial file."""
    target = Path(target).expanduser()
    mode = None
    if target.exists():
        mode = stat.S_IMODE(target.stat().st_mode)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".tmp", dir=target.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(text)
        if mode is not None:
            os.chmod(tmp_name, mode)
        os.replace(tmp_name, target)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
    logger.info("Wrote %d bytes to %s", len(text), target)
    return target


def render_file_text(document: Document, *, indent: str = "\t") -> str:
    """Rendered text as stored on disk: newline-terminated when non-empty."""
    text = write_document(document, indent=indent)
    if text and not text.endswith("\n"):
        text += "\n"
    return text


def write_caddyfile(document: Document, target: Path, *, indent: str = "\t") -> Path:
    """Render ``document`` and atomically write it to ``target``."""
    ensure_unique_names(document)
    return write_text_atomic(target, render_file_text(document, indent=indent))


def apply_document(
    document: Document,
    target: Path,
    *,
    validator: Validator | None = None,
    client: AdminClient | None = None,
    history_limit: int = HISTORY_LIMIT,
    comment: str | None = None,
    db_path: Path | None = None,
    cancel: CancelToken | None = None,
) -> ApplyResult:
    """Render, validate, archive, write and reload ``document``.

    Without a ``validator`` the text is written unchecked. Without a
    ``client`` nothing is reloaded.

    Raises:
        DuplicateNameError: When snippet names or site addresses repeat.
        MissingAddressError: When a site has no addresses.
        ValidationFailedError: When the validator reports the text invalid.
        ValidatorUnavailableError: When validation could not run at all.
        ReloadRejectedError: When Caddy refuses the written configuration.
    """
    target = Path(target).expanduser()
    ensure_unique_names(document)
    text = render_file_text(document)

    if validator is None:
        validation = ValidationResult(state=ValidationState.UNCHECKED)
    else:
        validation = validator.validate(text, cancel=cancel)
        if validation.state is ValidationState.INVALID:
            logger.warning("Refusing to write %s: %s", target, validation.first_error)
            raise ValidationFailedError(validation)

    previous = read_caddyfile(target) if caddyfile_exists(target) else None
    history_id = save_config_history(
        previous,
        text,
        comment=comment,
        source_path=target,
        db_path=db_path,
    )
    if history_id is not None:
        prune_config_history(history_limit, db_path=db_path)

    write_text_atomic(target, text)

    reloaded = False
    if client is not None:
        try:
            client.load(text, cancel=cancel)
        except AdminError as exc:
            logger.error("Caddy rejected %s: %s", target, exc)
            raise ReloadRejectedError(exc.status_code, exc.message, target=target) from exc
        reloaded = True

    return ApplyResult(
        target=target,
        text=text,
        validation=validation,
        history_id=history_id,
        reloaded=reloaded,
    )
