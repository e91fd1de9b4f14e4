"""
Tests for how the Lockdrop SDK resolves its version string.
"""
import importlib
import re
from importlib import metadata as importlib_metadata
from unittest.mock import mock_open

import pytest

import lockdrop_sdk.version as version_module
from lockdrop_sdk import __version__

FALLBACK_VERSION = "0.3.0"


def _not_installed(name):
    raise importlib_metadata.PackageNotFoundError(name)


def _missing_file(*args, **kwargs):
    raise FileNotFoundError("pyproject.toml")


@pytest.fixture
def reload_version(monkeypatch):
    """Reload the module under patches, then restore the real value"""
    yield lambda: importlib.reload(version_module).__version__
    monkeypatch.undo()
    importlib.reload(version_module)


def test_installed_version_is_semver():
    assert re.match(r"^\d+\.\d+\.\d+", __version__)


def test_metadata_wins_when_installed(monkeypatch, reload_version):
    queried = []

    def fake_version(name):
        queried.append(name)
        return "2.3.4"

    monkeypatch.setattr(importlib_metadata, "version", fake_version)

    assert reload_version() == "2.3.4"
    assert queried == ["lockdrop-sdk"]


def test_source_checkout_reads_pyproject(monkeypatch, reload_version):
    monkeypatch.setattr(importlib_metadata, "version", _not_installed)
    monkeypatch.setattr("pathlib.Path.open", mock_open(read_data=b'[project]\nversion = "1.2.3"\n'))

    assert reload_version() == "1.2.3"


@pytest.mark.parametrize("opener", [
    _missing_file,
    mock_open(read_data=b'[project]\nname = "lockdrop-sdk"\n'),
    mock_open(read_data=b"version = = broken"),
], ids=["no-pyproject", "no-version-key", "bad-toml"])
def test_unreadable_pyproject_uses_fallback(monkeypatch, reload_version, opener):
    monkeypatch.setattr(importlib_metadata, "version", _not_installed)
    monkeypatch.setattr("pathlib.Path.open", opener)

    assert reload_version() == FALLBACK_VERSION
