from types import SimpleNamespace
from pathlib import Path

from caddyshack import config


def test_determine_home_prefers_sudo_user(monkeypatch, tmp_path):
    monkeypatch.setenv("SUDO_USER", "dummy")
    monkeypatch.setattr(
        config,
        "pwd",
        SimpleNamespace(getpwnam=lambda user: SimpleNamespace(pw_dir=str(tmp_path))),
        raising=False,
    )
    assert config._determine_home() == tmp_path


def test_determine_home_defaults_to_path_home(monkeypatch):
    monkeypatch.delenv("SUDO_USER", raising=False)
    assert config._determine_home() == Path.home()


def test_env_float_falls_back_on_garbage(monkeypatch):
    monkeypatch.setenv("CADDYSHACK_TEST_TIMEOUT", "soon")
    assert config._env_float("CADDYSHACK_TEST_TIMEOUT", 30.0) == 30.0
    monkeypatch.setenv("CADDYSHACK_TEST_TIMEOUT", "-5")
    assert config._env_float("CADDYSHACK_TEST_TIMEOUT", 30.0) == 30.0
    monkeypatch.setenv("CADDYSHACK_TEST_TIMEOUT", "2.5")
    assert config._env_float("CADDYSHACK_TEST_TIMEOUT", 30.0) == 2.5


def test_env_int_reads_positive_values(monkeypatch):
    monkeypatch.delenv("CADDYSHACK_TEST_LIMIT", raising=False)
    assert config._env_int("CADDYSHACK_TEST_LIMIT", 50) == 50
    monkeypatch.setenv("CADDYSHACK_TEST_LIMIT", "7")
    assert config._env_int("CADDYSHACK_TEST_LIMIT", 50) == 7
    monkeypatch.setenv("CADDYSHACK_TEST_LIMIT", "7.5")
    assert config._env_int("CADDYSHACK_TEST_LIMIT", 50) == 50


def test_ensure_app_dir_creates_directory(tmp_path):
    target = tmp_path / "nested" / "data"
    assert config.ensure_app_dir(target) == target
    assert target.is_dir()
