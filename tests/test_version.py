"""
Tests for the version module.
"""
import importlib
import re
from importlib import metadata as importlib_metadata
from unittest.mock import patch, mock_open

import pytest
import tomli

import disperse_collect.version as vmod


def _package_not_found(name):
    raise importlib_metadata.PackageNotFoundError(name)


@pytest.fixture(autouse=True)
def _reload_version_afterwards():
    yield
    importlib.reload(vmod)


def test_version_format():
    """The version string follows semantic versioning"""
    assert re.match(r'^\d+\.\d+\.\d+$', vmod.__version__), "Version should follow semantic versioning"


@patch('importlib.metadata.version')
def test_version_from_metadata(mock_metadata_version):
    """When metadata lookup succeeds, version comes from metadata"""
    mock_metadata_version.return_value = "2.3.4"
    importlib.reload(vmod)
    assert vmod.__version__ == "2.3.4"
    mock_metadata_version.assert_called_with("disperse-collect-api")


@patch('importlib.metadata.version', side_effect=_package_not_found)
@patch('pathlib.Path.open', new_callable=mock_open, read_data=b'[project]\nversion = "1.2.3"\n')
def test_version_from_file(mock_open_file, mock_metadata_version):
    """When metadata lookup fails, pyproject.toml is read"""
    importlib.reload(vmod)
    assert vmod.__version__ == "1.2.3"


def test_version_file_not_found(monkeypatch):
    """If pyproject.toml is missing, fall back to the default"""
    monkeypatch.setattr(importlib_metadata, 'version', _package_not_found)
    monkeypatch.setattr('pathlib.Path.open', lambda *args, **kwargs: (_ for _ in ()).throw(FileNotFoundError()))
    importlib.reload(vmod)
    assert vmod.__version__ == "0.1.0"


def test_version_key_error(monkeypatch):
    """A pyproject.toml without a version key falls back to the default"""
    monkeypatch.setattr(importlib_metadata, 'version', _package_not_found)
    monkeypatch.setattr('pathlib.Path.open', mock_open(read_data=b'[project]\nname = "disperse-collect-api"\n'))
    importlib.reload(vmod)
    assert vmod.__version__ == "0.1.0"


def test_version_toml_decode_error(monkeypatch):
    """An unparseable pyproject.toml falls back to the default"""
    monkeypatch.setattr(importlib_metadata, 'version', _package_not_found)
    monkeypatch.setattr('pathlib.Path.open', mock_open(read_data=b'invalid toml content'))
    importlib.reload(vmod)
    assert vmod.__version__ == "0.1.0"
