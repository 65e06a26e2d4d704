"""Node.js package.json reading and writing."""

import json
import logging
import re
from pathlib import Path

from .errors import ManifestNotFoundError, ManifestParseError, ManifestReadError, ManifestWriteError
from .models import DEPENDENCIES, DEV_DEPENDENCIES, Manifest

logger = logging.getLogger(__name__)

_INDENT = re.compile(r"^([ \t]+)\S", re.MULTILINE)


def _detect_indent(content: str) -> int | str:
    match = _INDENT.search(content)
    if not match:
        return 2
    whitespace = match.group(1)
    return len(whitespace) if set(whitespace) == {" "} else whitespace


def _section(document: dict, key: str) -> dict[str, str]:
    section = document.get(key) or {}
    if not isinstance(section, dict):
        raise ManifestParseError(f"'{key}' must be an object, got {type(section).__name__}")

    for name, spec in section.items():
        if not isinstance(spec, str):
            raise ManifestParseError(
                f"Version range for '{name}' in '{key}' must be a string, got {spec!r}"
            )
    return dict(section)


def parse_package_json(content: str) -> Manifest:
    """Parse package.json content into Manifest.

    Args:
        content: The package.json file content

    Returns:
        Parsed Manifest object

    Raises:
        ManifestParseError: If the content is not a package.json document
    """
    try:
        document = json.loads(content)
    except json.JSONDecodeError as e:
        raise ManifestParseError(f"Invalid JSON: {e}") from e

    if not isinstance(document, dict):
        raise ManifestParseError("package.json root must be an object")

    return Manifest(
        dependencies=_section(document, DEPENDENCIES),
        dev_dependencies=_section(document, DEV_DEPENDENCIES),
    )


def merge_dependencies(manifest: Manifest) -> tuple[dict[str, str], dict[str, str]]:
    """Flatten runtime and development dependencies into one namespace.

    A name declared in both sections keeps its devDependencies range.

    Returns:
        Tuple of (name -> specifier, name -> section it was taken from)
    """
    merged: dict[str, str] = {}
    sections: dict[str, str] = {}

    for section, deps in manifest.sections().items():
        for name, spec in deps.items():
            if name in merged and merged[name] != spec:
                logger.warning(
                    "%s declared as %r in %s and %r in %s; using %r",
                    name, merged[name], sections[name], spec, section, spec,
                )
            merged[name] = spec
            sections[name] = section

    return merged, sections


class PackageJsonManifest:
    """Reads and updates one package.json on disk."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def _load(self) -> tuple[str, dict]:
        try:
            content = self.path.read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise ManifestNotFoundError(f"{self.path} not found") from e
        except UnicodeDecodeError as e:
            raise ManifestParseError(f"{self.path} is not valid UTF-8: {e}") from e
        except OSError as e:
            raise ManifestReadError(f"Cannot read {self.path}: {e}") from e

        try:
            document = json.loads(content)
        except json.JSONDecodeError as e:
            raise ManifestParseError(f"Invalid JSON in {self.path}: {e}") from e
        return content, document

    def read(self) -> Manifest:
        """Read runtime and development dependency ranges.

        Raises:
            ManifestNotFoundError: If the file is missing
            ManifestParseError: If the file is not a usable package.json
            ManifestReadError: If the file exists but cannot be read
        """
        content, _ = self._load()
        return parse_package_json(content)

    def write(self, edits: dict[str, str]) -> None:
        """Set new version values for the named packages.

        The file is re-read first so concurrent edits to other fields are kept.
        Every field other than the edited version values is preserved, along
        with key order, indentation and the trailing newline.

        Raises:
            ManifestWriteError: If the manifest cannot be read back or written
        """
        try:
            content, document = self._load()
        except ManifestReadError as e:
            raise ManifestWriteError(str(e)) from e
        if not isinstance(document, dict):
            raise ManifestWriteError(f"{self.path} root must be an object")

        for name, version in edits.items():
            updated = False
            for key in (DEPENDENCIES, DEV_DEPENDENCIES):
                section = document.get(key)
                if isinstance(section, dict) and name in section:
                    section[name] = version
                    updated = True
            if updated:
                logger.info("Updated %s to version %s", name, version)
            else:
                logger.warning("%s is not declared in %s; skipping", name, self.path)

        text = json.dumps(document, indent=_detect_indent(content), ensure_ascii=False)
        if content.endswith("\n"):
            text += "\n"

        try:
            self.path.write_text(text, encoding="utf-8")
        except OSError as e:
            raise ManifestWriteError(f"Cannot write {self.path}: {e}") from e
