"""Core data models for depmend."""

import json
from dataclasses import dataclass, field
from enum import Enum

from .errors import (
    InstallError,
    LoopBoundExceededError,
    ManifestReadError,
    ManifestWriteError,
    ResolutionTimeoutError,
)

DEPENDENCIES = "dependencies"
DEV_DEPENDENCIES = "devDependencies"


@dataclass(frozen=True)
class Dependency:
    """A single declared dependency: a name and its version-range specifier."""

    name: str
    spec: str
    section: str = DEPENDENCIES  # dependencies, devDependencies


@dataclass
class Manifest:
    """A parsed package.json."""

    dependencies: dict[str, str]
    dev_dependencies: dict[str, str]

    def sections(self) -> dict[str, dict[str, str]]:
        return {
            DEPENDENCIES: self.dependencies,
            DEV_DEPENDENCIES: self.dev_dependencies,
        }


class ConflictReason(str, Enum):
    INCOMPATIBLE = "incompatible"
    MALFORMED = "malformed"


@dataclass(frozen=True)
class ConflictPair:
    """Two dependencies whose ranges cannot both be satisfied.

    Pairs are unordered; ``first`` is always the entry declared earlier.
    """

    first: Dependency
    second: Dependency
    reason: ConflictReason = ConflictReason.INCOMPATIBLE
    culprit: str | None = None  # offending name when reason is malformed

    @property
    def names(self) -> frozenset[str]:
        return frozenset((self.first.name, self.second.name))

    def to_dict(self) -> dict:
        return {
            "packages": [
                {"name": self.first.name, "spec": self.first.spec},
                {"name": self.second.name, "spec": self.second.spec},
            ],
            "reason": self.reason.value,
            "culprit": self.culprit,
        }


@dataclass(frozen=True)
class ResolutionOutcome:
    """Per-package result of resolving a conflict."""

    name: str
    version: str | None = None  # None means unchanged

    @property
    def updated(self) -> bool:
        return self.version is not None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "status": "updated" if self.updated else "unchanged",
            "version": self.version,
        }


@dataclass
class PairResolution:
    """Outcomes for both members of one conflict pair."""

    pair: ConflictPair
    outcomes: tuple[ResolutionOutcome, ResolutionOutcome]
    reason: str

    @property
    def resolved(self) -> bool:
        return all(outcome.updated for outcome in self.outcomes)

    def to_dict(self) -> dict:
        return {
            "conflict": self.pair.to_dict(),
            "resolved": self.resolved,
            "outcomes": [outcome.to_dict() for outcome in self.outcomes],
            "reason": self.reason,
        }


class SessionOutcome(str, Enum):
    NO_CONFLICTS = "no_conflicts"
    RESOLVED = "resolved"
    CONFLICTS_REMAIN = "conflicts_remain"
    RESOLUTION_PLANNED = "resolution_planned"
    INSTALL_FAILED = "install_failed"
    INSTALL_TIMED_OUT = "install_timed_out"
    MANIFEST_READ_FAILED = "manifest_read_failed"
    MANIFEST_WRITE_FAILED = "manifest_write_failed"

    @property
    def ok(self) -> bool:
        return self in (SessionOutcome.NO_CONFLICTS, SessionOutcome.RESOLVED)


@dataclass
class Analysis:
    """Result of one scan plus the policy's proposals, without side effects."""

    dependencies: dict[str, str]
    conflicts: list[ConflictPair]
    resolutions: list[PairResolution]
    edits: dict[str, str]
    malformed: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "dependency_count": len(self.dependencies),
            "conflicts": [pair.to_dict() for pair in self.conflicts],
            "resolutions": [resolution.to_dict() for resolution in self.resolutions],
            "edits": dict(self.edits),
            "malformed": list(self.malformed),
        }


@dataclass
class SessionEvent:
    """One reportable step of a resolution session."""

    kind: str  # conflict, resolution, edit, install, outcome
    cycle: int
    data: dict

    def to_dict(self) -> dict:
        return {"kind": self.kind, "cycle": self.cycle, **self.data}


@dataclass
class SessionReport:
    """Terminal report of one orchestrator session."""

    outcome: SessionOutcome
    cycles: int = 0
    package_manager: str | None = None
    conflicts: list[ConflictPair] = field(default_factory=list)
    edits: dict[str, str] = field(default_factory=dict)
    events: list[SessionEvent] = field(default_factory=list)
    detail: str | None = None
    exit_code: int | None = None
    timeout: float | None = None

    def to_dict(self) -> dict:
        return {
            "outcome": self.outcome.value,
            "ok": self.outcome.ok,
            "cycles": self.cycles,
            "package_manager": self.package_manager,
            "remaining_conflicts": [pair.to_dict() for pair in self.conflicts],
            "edits": dict(self.edits),
            "events": [event.to_dict() for event in self.events],
            "detail": self.detail,
            "exit_code": self.exit_code,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)

    def raise_for_outcome(self) -> None:
        """Raise the error matching a failed outcome; return for success."""
        outcome = self.outcome
        if outcome.ok or outcome is SessionOutcome.RESOLUTION_PLANNED:
            return
        if outcome is SessionOutcome.CONFLICTS_REMAIN:
            raise LoopBoundExceededError(self.cycles, len(self.conflicts))
        if outcome is SessionOutcome.INSTALL_FAILED:
            raise InstallError(self.exit_code if self.exit_code is not None else -1, self.detail or "")
        if outcome is SessionOutcome.INSTALL_TIMED_OUT:
            raise ResolutionTimeoutError(self.timeout or 0.0)
        if outcome is SessionOutcome.MANIFEST_READ_FAILED:
            raise ManifestReadError(self.detail or "Manifest could not be read")
        if outcome is SessionOutcome.MANIFEST_WRITE_FAILED:
            raise ManifestWriteError(self.detail or "Manifest could not be written")
