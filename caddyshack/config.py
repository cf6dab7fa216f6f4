"""Application configuration helpers."""
from __future__ import annotations

from pathlib import Path
import os

try:  # pragma: no cover - pwd isn't available on Windows
    import pwd
except ImportError:  # pragma: no cover
    pwd = None


def _determine_home() -> Path:
    sudo_user = os.environ.get("SUDO_USER")
    if sudo_user and pwd:
        try:
            return Path(pwd.getpwnam(sudo_user).pw_dir)
        except KeyError:  # pragma: no cover - only when user missing from passwd
            pass
    return Path.home()


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return value if value > 0 else default


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value > 0 else default


APP_DIR = Path(os.environ.get("CADDYSHACK_HOME", _determine_home() / ".caddyshack"))
DB_PATH = Path(os.environ.get("CADDYSHACK_DB", APP_DIR / "history.db"))
CADDYFILE_PATH = Path(os.environ.get("CADDYSHACK_CADDYFILE", "/etc/caddy/Caddyfile"))
CADDY_ADMIN_API = os.environ.get("CADDYSHACK_ADMIN_API", "http://localhost:2019")
CADDY_BIN = os.environ.get("CADDYSHACK_CADDY_BIN")
VALIDATE_TIMEOUT = _env_float("CADDYSHACK_VALIDATE_TIMEOUT", 30.0)
ADMIN_TIMEOUT = _env_float("CADDYSHACK_ADMIN_TIMEOUT", 30.0)
RELOAD_TIMEOUT = _env_float("CADDYSHACK_RELOAD_TIMEOUT", 10.0)
HISTORY_LIMIT = _env_int("CADDYSHACK_HISTORY_LIMIT", 50)
LOG_LEVEL = os.environ.get("CADDYSHACK_LOG_LEVEL", "WARNING")
LOG_FILE = os.environ.get("CADDYSHACK_LOG_FILE") or None


def ensure_app_dir(path: Path | None = None) -> Path:
    """Ensure the data directory exists and return it."""
    target = path or APP_DIR
    target.mkdir(parents=True, exist_ok=True)
    return target
