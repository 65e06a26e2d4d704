"""Resolution policy for conflicting dependency pairs."""

import logging

from .errors import MalformedVersionError
from .models import ConflictPair, ConflictReason, PairResolution, ResolutionOutcome
from .ranges import compatible_with, select_maximum

logger = logging.getLogger(__name__)


def _unresolved(pair: ConflictPair, reason: str) -> PairResolution:
    return PairResolution(
        pair=pair,
        outcomes=(
            ResolutionOutcome(pair.first.name),
            ResolutionOutcome(pair.second.name),
        ),
        reason=reason,
    )


def resolve_pair(pair: ConflictPair) -> PairResolution:
    """Choose one replacement version for both members of a conflict.

    The winner is the highest of the two specifiers that is a concrete
    version compatible with a caret widening of the first specifier. When
    there is no winner both packages stay unchanged.

    Args:
        pair: Conflict to resolve

    Returns:
        Outcomes for both names and a human-readable reason
    """
    if pair.reason is ConflictReason.MALFORMED:
        return _unresolved(pair, f"Malformed specifier for {pair.culprit}")

    spec_a, spec_b = pair.first.spec, pair.second.spec
    try:
        constraint = compatible_with(spec_a)
        chosen = select_maximum([spec_a, spec_b], constraint)
    except MalformedVersionError as e:
        logger.debug("Cannot resolve %s/%s: %s", pair.first.name, pair.second.name, e)
        return _unresolved(pair, str(e))

    if chosen is None:
        return _unresolved(pair, f"No candidate satisfies {constraint}")

    return PairResolution(
        pair=pair,
        outcomes=(
            ResolutionOutcome(pair.first.name, chosen),
            ResolutionOutcome(pair.second.name, chosen),
        ),
        reason=f"Highest version satisfying {constraint}",
    )


def resolve_conflicts(pairs: list[ConflictPair]) -> list[PairResolution]:
    """Resolve every pair; an unresolvable pair never stops the batch."""
    return [resolve_pair(pair) for pair in pairs]


def plan_edits(resolutions: list[PairResolution], deps: dict[str, str]) -> dict[str, str]:
    """Collapse resolutions into manifest edits.

    Later resolutions overwrite earlier ones for the same name. Edits that
    would leave a specifier as it already is are dropped.
    """
    staged: dict[str, str] = {}
    for resolution in resolutions:
        for outcome in resolution.outcomes:
            if outcome.updated:
                staged[outcome.name] = outcome.version

    return {name: version for name, version in staged.items() if deps.get(name) != version}
