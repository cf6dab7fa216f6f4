"""Show what a parse-and-rewrite cycle would change in a Caddyfile."""
from __future__ import annotations

from dataclasses import dataclass, field
from hashlib import sha256
from pathlib import Path
import difflib

from .caddyfile_parser import parse_caddyfile
from .directives import DEFAULT_DIRECTIVES, DirectiveTable
from .document import SkippedRange
from .reader import CaddyfileNotFoundError, read_caddyfile
from .writer import write_document

MAX_DIFF_LINES = 200


@dataclass(slots=True)
class DriftReport:
    target_path: Path
    in_sync: bool | None
    source_hash: str | None
    canonical_hash: str | None
    diff: str | None
    error: str | None
    skipped: list[SkippedRange] = field(default_factory=list)


def _digest(text: str) -> str:
    return sha256(text.encode("utf-8")).hexdigest()


def compare_text(text: str, *, label: str = "Caddyfile", directives: DirectiveTable = DEFAULT_DIRECTIVES) -> DriftReport:
    result = parse_caddyfile(text, directives=directives)
    canonical = write_document(result.document)
    source_hash = _digest(text)
    canonical_hash = _digest(canonical)
    # A lone trailing newline difference is not drift.
    if text.rstrip("\n") == canonical.rstrip("\n"):
        return DriftReport(
            target_path=Path(label),
            in_sync=True,
            source_hash=source_hash,
            canonical_hash=canonical_hash,
            diff=None,
            error=None,
            skipped=result.skipped,
        )

    diff_lines = difflib.unified_diff(
        text.splitlines(),
        canonical.splitlines(),
        fromfile=label,
        tofile="canonical",
        lineterm="",
    )
    limited: list[str] = []
    for idx, line in enumerate(diff_lines):
        if idx >= MAX_DIFF_LINES:
            limited.append("... diff truncated ...")
            break
        limited.append(line)

    return DriftReport(
        target_path=Path(label),
        in_sync=False,
        source_hash=source_hash,
        canonical_hash=canonical_hash,
        diff="\n".join(limited),
        error=None,
        skipped=result.skipped,
    )


def compare_caddyfile(target_path: Path, *, directives: DirectiveTable = DEFAULT_DIRECTIVES) -> DriftReport:
    try:
        text = read_caddyfile(target_path)
    except CaddyfileNotFoundError:
        return DriftReport(
            target_path=target_path,
            in_sync=None,
            source_hash=None,
            canonical_hash=None,
            diff=None,
            error=f"No Caddyfile found at {target_path}",
        )
    except OSError as exc:
        return DriftReport(
            target_path=target_path,
            in_sync=None,
            source_hash=None,
            canonical_hash=None,
            diff=None,
            error=str(exc),
        )
    report = compare_text(text, label=str(target_path), directives=directives)
    report.target_path = target_path
    return report


def summarise_drift(report: DriftReport) -> str:
    if report.error:
        return f"Drift: {report.error}"
    if report.in_sync is True:
        summary = f"Drift: {report.target_path} is already in canonical form"
    elif report.in_sync is False:
        summary = f"Drift: rewriting {report.target_path} would change it"
    else:
        return "Drift: status unknown"
    if report.skipped:
        summary += f" ({len(report.skipped)} unparseable range(s) would be dropped)"
    return summary
