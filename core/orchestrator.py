"""Resolution session control flow.

A session moves through SCANNING -> RESOLVING -> ESCALATING and back to
SCANNING after each package manager run, until it reaches DONE. The number
of escalations is capped by ``SessionConfig.max_cycles``.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol

from .compat import find_conflicts, malformed_names
from .config import SessionConfig
from .detect import detect_package_manager
from .errors import InstallError, ManifestReadError, ManifestWriteError, ResolutionTimeoutError
from .install import Installer
from .models import (
    Analysis,
    ConflictPair,
    Manifest,
    PairResolution,
    SessionEvent,
    SessionOutcome,
    SessionReport,
)
from .parse_node import PackageJsonManifest, merge_dependencies
from .policy import plan_edits, resolve_conflicts

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    SCANNING = "scanning"
    RESOLVING = "resolving"
    ESCALATING = "escalating"
    DONE = "done"


class ManifestStore(Protocol):
    def read(self) -> Manifest: ...

    def write(self, edits: dict[str, str]) -> None: ...


def analyze(deps: dict[str, str], sections: dict[str, str] | None = None) -> Analysis:
    """Find conflicts and the edits the policy would make, without side effects."""
    conflicts = find_conflicts(deps, sections)
    resolutions = resolve_conflicts(conflicts)
    return Analysis(
        dependencies=dict(deps),
        conflicts=conflicts,
        resolutions=resolutions,
        edits=plan_edits(resolutions, deps),
        malformed=malformed_names(deps),
    )


@dataclass
class _Session:
    report: SessionReport
    cycle: int = 0
    manifest: Manifest | None = None
    deps: dict[str, str] = field(default_factory=dict)
    conflicts: list[ConflictPair] = field(default_factory=list)
    edits: dict[str, str] = field(default_factory=dict)

    def record(self, kind: str, **data) -> None:
        self.report.events.append(SessionEvent(kind=kind, cycle=self.cycle, data=data))


class Orchestrator:
    """Runs one resolution session against one manifest."""

    def __init__(
        self,
        config: SessionConfig,
        manifest: ManifestStore | None = None,
        installer: Installer | None = None,
    ):
        self.config = config
        self.manifest = manifest or PackageJsonManifest(config.manifest_path)
        self.installer = installer or Installer(
            timeout=config.timeout,
            cwd=config.project_dir,
            clean_install=config.clean_install,
        )

    async def run(self) -> SessionReport:
        """Run the session to completion.

        Returns:
            Terminal report; failures are reported through its outcome
        """
        session = _Session(report=SessionReport(outcome=SessionOutcome.NO_CONFLICTS))
        state = SessionState.SCANNING

        while state is not SessionState.DONE:
            logger.debug("Cycle %d: %s", session.cycle, state.value)
            if state is SessionState.SCANNING:
                state = self._scan(session)
            elif state is SessionState.RESOLVING:
                state = self._resolve(session)
            else:
                state = await self._escalate(session)

        return session.report

    def _finish(
        self,
        session: _Session,
        outcome: SessionOutcome,
        detail: str | None = None,
    ) -> SessionState:
        report = session.report
        report.outcome = outcome
        report.detail = detail
        report.cycles = session.cycle
        session.record("outcome", outcome=outcome.value, detail=detail)

        if outcome.ok:
            logger.info("Session finished: %s", outcome.value)
        else:
            logger.warning("Session finished: %s%s", outcome.value, f" ({detail})" if detail else "")
        return SessionState.DONE

    def _scan(self, session: _Session) -> SessionState:
        try:
            session.manifest = self.manifest.read()
        except ManifestReadError as e:
            return self._finish(session, SessionOutcome.MANIFEST_READ_FAILED, str(e))

        session.deps, sections = merge_dependencies(session.manifest)
        session.conflicts = find_conflicts(session.deps, sections)
        session.report.conflicts = session.conflicts

        for pair in session.conflicts:
            logger.warning(
                "Conflict (%s): %s@%s and %s@%s",
                pair.reason.value, pair.first.name, pair.first.spec, pair.second.name, pair.second.spec,
            )
            session.record("conflict", **pair.to_dict())

        if not session.conflicts:
            outcome = SessionOutcome.RESOLVED if session.cycle else SessionOutcome.NO_CONFLICTS
            return self._finish(session, outcome)

        if not self.config.dry_run and session.cycle >= self.config.max_cycles:
            return self._finish(
                session,
                SessionOutcome.CONFLICTS_REMAIN,
                f"{len(session.conflicts)} conflict(s) remain after {session.cycle} cycle(s)",
            )

        return SessionState.RESOLVING

    def _resolve(self, session: _Session) -> SessionState:
        resolutions: list[PairResolution] = resolve_conflicts(session.conflicts)
        for resolution in resolutions:
            names = "/".join(sorted(resolution.pair.names))
            if resolution.resolved:
                logger.info("Resolved %s: %s", names, resolution.reason)
            else:
                logger.warning("Unresolved %s: %s", names, resolution.reason)
            session.record("resolution", **resolution.to_dict())

        session.edits = plan_edits(resolutions, session.deps)
        for name, version in session.edits.items():
            session.record("edit", name=name, previous=session.deps.get(name), version=version)

        if not session.edits:
            return self._finish(
                session,
                SessionOutcome.CONFLICTS_REMAIN,
                f"No resolution found for {len(session.conflicts)} conflict(s)",
            )

        session.report.edits.update(session.edits)
        if self.config.dry_run:
            return self._finish(session, SessionOutcome.RESOLUTION_PLANNED)
        return SessionState.ESCALATING

    async def _escalate(self, session: _Session) -> SessionState:
        report = session.report
        try:
            self.manifest.write(session.edits)
        except ManifestWriteError as e:
            return self._finish(session, SessionOutcome.MANIFEST_WRITE_FAILED, str(e))

        package_manager = self.config.package_manager or detect_package_manager(session.manifest)
        report.package_manager = package_manager
        names = list(session.edits)

        try:
            result = await self.installer.run(package_manager, names)
        except ResolutionTimeoutError as e:
            report.timeout = e.timeout
            return self._finish(session, SessionOutcome.INSTALL_TIMED_OUT, str(e))
        except InstallError as e:
            report.exit_code = e.exit_code
            return self._finish(session, SessionOutcome.INSTALL_FAILED, e.stderr.strip() or str(e))

        session.record("install", package_manager=package_manager, packages=names, exit_code=result.exit_code)
        session.cycle += 1
        return SessionState.SCANNING
