"""npm version-range algebra.

Specifiers are read two ways: as a range (``^1.2.0`` admits ``1.x >= 1.2.0``)
and as a literal version (the lowest version the range admits). Two
specifiers are compatible when either one's literal falls inside the other's
range.
"""

import re
from collections.abc import Iterable

import semantic_version

from .errors import MalformedVersionError

_VERSION_TOKEN = re.compile(
    r"(?<![\d.])(\d+)(?:\.(\d+))?(?:\.(\d+))?(?:-([0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?"
)

_ZERO = semantic_version.Version("0.0.0")


def parse_range(spec: str) -> semantic_version.NpmSpec:
    """Parse an npm range expression.

    Args:
        spec: Range expression such as ``^1.2.0``, ``~1.2``, ``>=1 <2`` or ``1.x``

    Returns:
        Parsed NpmSpec

    Raises:
        MalformedVersionError: If the expression is empty or not valid npm syntax
    """
    if not isinstance(spec, str) or not spec.strip():
        raise MalformedVersionError(str(spec), "empty specifier")

    try:
        return semantic_version.NpmSpec(spec.strip())
    except ValueError as e:
        raise MalformedVersionError(spec, str(e)) from e


def parse_version(candidate: str) -> semantic_version.Version | None:
    """Parse a concrete version, accepting npm's optional ``v``/``=`` prefix.

    Returns None for anything that is not a single concrete version.
    """
    text = candidate.strip() if isinstance(candidate, str) else ""
    if text[:1] in ("v", "="):
        text = text[1:].strip()
    try:
        return semantic_version.Version(text)
    except ValueError:
        return None


def _mentioned_versions(spec: str) -> list[semantic_version.Version]:
    versions = []
    for match in _VERSION_TOKEN.finditer(spec):
        major, minor, patch, prerelease = match.groups()
        text = f"{major}.{minor or 0}.{patch or 0}"
        if prerelease and patch is not None:
            text += f"-{prerelease}"
        try:
            version = semantic_version.Version(text)
        except ValueError:
            continue
        versions.append(version)
        versions.append(version.next_patch())
    return versions


def literal(spec: str) -> semantic_version.Version | None:
    """Read a specifier as a concrete version: the lowest version its range admits.

    Args:
        spec: Range expression

    Returns:
        Lowest admitted version, or None when the range admits nothing

    Raises:
        MalformedVersionError: If the expression cannot be parsed
    """
    npm_spec = parse_range(spec)

    for candidate in sorted({_ZERO, *_mentioned_versions(spec)}):
        if npm_spec.match(candidate):
            return candidate
    return None


def satisfies(version: semantic_version.Version | None, spec: str) -> bool:
    """Check whether a concrete version falls inside a range."""
    npm_spec = parse_range(spec)
    if version is None:
        return False
    return npm_spec.match(version)


def satisfiable(a: str, b: str) -> bool:
    """Check whether two specifiers can be declared side by side.

    True when ``a`` read as a version satisfies range ``b``, or ``b`` read as
    a version satisfies range ``a``. The check is symmetric in its arguments.

    Raises:
        MalformedVersionError: If either specifier cannot be parsed
    """
    literal_a = literal(a)
    literal_b = literal(b)
    return satisfies(literal_a, b) or satisfies(literal_b, a)


def select_maximum(candidates: Iterable[str], constraint: str) -> str | None:
    """Pick the highest candidate that is a concrete version inside ``constraint``.

    Range-shaped candidates (``^2.0.0``) are not versions and never qualify.

    Args:
        candidates: Candidate specifiers
        constraint: Range the winner must satisfy

    Returns:
        The winning candidate exactly as given, or None

    Raises:
        MalformedVersionError: If the constraint cannot be parsed
    """
    npm_spec = parse_range(constraint)

    best: tuple[semantic_version.Version, str] | None = None
    for candidate in candidates:
        version = parse_version(candidate)
        if version is None or not npm_spec.match(version):
            continue
        if best is None or version > best[0]:
            best = (version, candidate)

    return best[1] if best else None


def compatible_with(spec: str) -> str:
    """Caret-widen a specifier: ``^<literal>``.

    Raises:
        MalformedVersionError: If the specifier cannot be parsed or admits no version
    """
    version = literal(spec)
    if version is None:
        raise MalformedVersionError(spec, "range admits no version")
    return f"^{version}"
