"""Ecosystem and package manager detection."""

import re

from .models import Manifest

NPM = "npm"
YARN = "yarn"
PACKAGE_MANAGERS = (NPM, YARN)


def identify(content: str, filename: str | None = None) -> str:
    """Detect ecosystem from content and filename hints.

    Args:
        content: The manifest file content
        filename: Optional filename for additional context

    Returns:
        Detected ecosystem: 'node' or 'unknown'
    """
    # Filename-based detection (takes precedence)
    if filename and filename.endswith("package.json"):
        return "node"

    if re.search(r'"(?:dev)?[dD]ependencies"\s*:', content):
        return "node"

    return "unknown"


def detect_package_manager(manifest: Manifest | None) -> str | None:
    """Pick the package manager a project uses.

    A ``yarn`` entry in either dependency section means yarn; anything else
    means npm.

    Args:
        manifest: Parsed manifest, or None when it could not be read

    Returns:
        'yarn', 'npm', or None without a manifest
    """
    if manifest is None:
        return None
    if YARN in manifest.dependencies or YARN in manifest.dev_dependencies:
        return YARN
    return NPM
