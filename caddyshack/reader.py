"""Locate and read Caddyfiles from disk."""
from __future__ import annotations

from pathlib import Path

from .logging import get_logger

logger = get_logger("reader")

DEFAULT_CADDYFILE_PATHS: tuple[Path, ...] = (
    Path("/etc/caddy/Caddyfile"),
    Path("/usr/local/etc/caddy/Caddyfile"),
    Path("/etc/Caddyfile"),
    Path("./Caddyfile"),
)

MAX_PARENT_SEARCH_DEPTH = 5


class CaddyfileNotFoundError(FileNotFoundError):
    """Raised when no Caddyfile exists at the requested location."""

    def __init__(self, path: Path | None = None) -> None:
        self.path = path
        if path is None:
            message = "Unable to locate a Caddyfile"
        else:
            message = f"caddyfile not found: {path}"
        super().__init__(message)


class CaddyfilePermissionError(PermissionError):
    """Raised when the Caddyfile cannot be read due to permissions."""

    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(
            f"Permission denied reading {path}. Re-run with elevated permissions "
            "or copy the file to a readable location."
        )

    @property
    def suggested_command(self) -> str:
        return f"sudo caddyshack parse {self.path}"


def _generate_candidate_paths(explicit: Path) -> list[Path]:
    """Return nearby paths that might contain a Caddyfile, nearest first."""
    path = explicit.expanduser()
    candidates: list[Path] = []
    seen: set[Path] = set()

    def add(candidate: Path) -> None:
        if candidate not in seen:
            seen.add(candidate)
            candidates.append(candidate)

    add(path)
    if path.name and path.name.lower() != "caddyfile":
        add(path.with_name("Caddyfile"))
    add(path / "Caddyfile")

    current = path.parent
    for _ in range(MAX_PARENT_SEARCH_DEPTH):
        if current == current.parent:
            break
        add(current / "Caddyfile")
        current = current.parent
    return candidates


def find_caddyfile(explicit: Path | None = None) -> Path:
    """Locate a Caddyfile, starting near ``explicit`` when one is given.

    Raises:
        CaddyfileNotFoundError: When no candidate exists.
    """
    if explicit:
        for candidate in _generate_candidate_paths(explicit):
            if candidate.is_file():
                logger.debug("Resolved %s to %s", explicit, candidate)
                return candidate
    for candidate in DEFAULT_CADDYFILE_PATHS:
        if candidate.is_file():
            return candidate
    raise CaddyfileNotFoundError(explicit)


def caddyfile_exists(path: Path) -> bool:
    return Path(path).expanduser().is_file()


def read_caddyfile(path: Path) -> str:
    """Return the text of the Caddyfile at ``path``.

    Raises:
        CaddyfileNotFoundError: When the file does not exist.
        CaddyfilePermissionError: When the file exists but cannot be read.
    """
    target = Path(path).expanduser()
    try:
        text = target.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise CaddyfileNotFoundError(target) from exc
    except IsADirectoryError as exc:
        raise CaddyfileNotFoundError(target) from exc
    except PermissionError as exc:
        raise CaddyfilePermissionError(target) from exc
    logger.debug("Read %d bytes from %s", len(text), target)
    return text
