"""Pytest configuration and fixtures."""

import json

import pytest


@pytest.fixture
def sample_package_json():
    """Sample package.json content for testing."""
    return """{
  "name": "test-project",
  "version": "1.0.0",
  "scripts": {
    "test": "jest"
  },
  "dependencies": {
    "express": "^4.18.0",
    "lodash": "~4.17.21"
  },
  "devDependencies": {
    "jest": "^29.0.0"
  }
}
"""


@pytest.fixture
def write_manifest(tmp_path):
    """Write a package.json with the given sections and return its path."""

    def _write(dependencies=None, dev_dependencies=None, **extra):
        document = {"name": "test-project", **extra}
        if dependencies is not None:
            document["dependencies"] = dependencies
        if dev_dependencies is not None:
            document["devDependencies"] = dev_dependencies
        path = tmp_path / "package.json"
        path.write_text(json.dumps(document, indent=2) + "\n")
        return path

    return _write
