"""Pairwise compatibility checking over a flat dependency set."""

from itertools import combinations

from .errors import MalformedVersionError
from .models import ConflictPair, ConflictReason, Dependency
from .ranges import parse_range, satisfiable


def malformed_names(deps: dict[str, str]) -> list[str]:
    """Return names whose specifier cannot be parsed, in declaration order."""
    names = []
    for name, spec in deps.items():
        try:
            parse_range(spec)
        except MalformedVersionError:
            names.append(name)
    return names


def _as_dependency(name: str, spec: str, sections: dict[str, str] | None) -> Dependency:
    if sections and name in sections:
        return Dependency(name=name, spec=spec, section=sections[name])
    return Dependency(name=name, spec=spec)


def find_conflicts(
    deps: dict[str, str],
    sections: dict[str, str] | None = None,
) -> list[ConflictPair]:
    """Find every pair of declared ranges that cannot be satisfied together.

    Each unordered pair of distinct names is checked once, in declaration
    order, so ``(a, b)`` and ``(b, a)`` never both appear. A specifier that
    fails to parse makes each of its pairs a ``malformed`` conflict naming it
    as the culprit; pairs that do not involve it are checked normally.

    Args:
        deps: Flat mapping of package name to range specifier
        sections: Optional mapping of package name to manifest section

    Returns:
        Conflict pairs in deterministic order
    """
    broken = set(malformed_names(deps))
    conflicts: list[ConflictPair] = []

    for (name_a, spec_a), (name_b, spec_b) in combinations(deps.items(), 2):
        first = _as_dependency(name_a, spec_a, sections)
        second = _as_dependency(name_b, spec_b, sections)

        if name_a in broken or name_b in broken:
            culprit = name_a if name_a in broken else name_b
            conflicts.append(
                ConflictPair(first, second, ConflictReason.MALFORMED, culprit)
            )
            continue

        try:
            compatible = satisfiable(spec_a, spec_b)
        except MalformedVersionError:
            compatible = False
        if not compatible:
            conflicts.append(ConflictPair(first, second))

    return conflicts
