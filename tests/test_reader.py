from pathlib import Path

import pytest

from caddyshack import reader
from caddyshack.reader import (
    CaddyfileNotFoundError,
    CaddyfilePermissionError,
    caddyfile_exists,
    find_caddyfile,
    read_caddyfile,
)


def test_find_caddyfile(tmp_path: Path):
    caddyfile = tmp_path / "Caddyfile"
    caddyfile.write_text("localhost")
    assert find_caddyfile(caddyfile) == caddyfile


def test_find_caddyfile_from_directory(tmp_path: Path):
    caddyfile = tmp_path / "Caddyfile"
    caddyfile.write_text("localhost")
    assert find_caddyfile(tmp_path) == caddyfile


def test_find_caddyfile_from_sibling_name(tmp_path: Path):
    caddyfile = tmp_path / "Caddyfile"
    caddyfile.write_text("localhost")
    assert find_caddyfile(tmp_path / "caddy.conf") == caddyfile


def test_find_caddyfile_searches_parents(tmp_path: Path):
    caddyfile = tmp_path / "Caddyfile"
    caddyfile.write_text("localhost")
    nested = tmp_path / "sites" / "enabled"
    nested.mkdir(parents=True)
    assert find_caddyfile(nested / "example.conf") == caddyfile


def test_find_caddyfile_missing(tmp_path: Path, monkeypatch):
    monkeypatch.setattr(reader, "DEFAULT_CADDYFILE_PATHS", ())
    monkeypatch.setattr(reader, "MAX_PARENT_SEARCH_DEPTH", 0)
    with pytest.raises(CaddyfileNotFoundError) as excinfo:
        find_caddyfile(tmp_path / "nothing")
    assert isinstance(excinfo.value, FileNotFoundError)


def test_read_caddyfile(tmp_path: Path):
    caddyfile = tmp_path / "Caddyfile"
    caddyfile.write_text("example.com {\n}\n")
    assert read_caddyfile(caddyfile) == "example.com {\n}\n"
    assert caddyfile_exists(caddyfile)


def test_read_missing_caddyfile(tmp_path: Path):
    target = tmp_path / "Caddyfile"
    assert not caddyfile_exists(target)
    with pytest.raises(CaddyfileNotFoundError, match="caddyfile not found"):
        read_caddyfile(target)


def test_read_directory_is_not_a_caddyfile(tmp_path: Path):
    assert not caddyfile_exists(tmp_path)
    with pytest.raises(CaddyfileNotFoundError):
        read_caddyfile(tmp_path)


def test_read_permission_error(tmp_path: Path, mocker):
    caddyfile = tmp_path / "Caddyfile"
    caddyfile.write_text("localhost")
    mocker.patch("caddyshack.reader.Path.read_text", side_effect=PermissionError("denied"))
    with pytest.raises(CaddyfilePermissionError) as excinfo:
        read_caddyfile(caddyfile)
    assert excinfo.value.path == caddyfile
    assert str(caddyfile) in excinfo.value.suggested_command
