"""Tests for the resolution session state machine."""

import json
from unittest.mock import AsyncMock

import pytest

from core.config import SessionConfig
from core.errors import (
    InstallError,
    LoopBoundExceededError,
    ManifestNotFoundError,
    ManifestWriteError,
    ResolutionTimeoutError,
)
from core.install import ProcessResult
from core.models import Manifest, SessionOutcome
from core.orchestrator import Orchestrator, analyze


class FakeManifest:
    """In-memory manifest store."""

    def __init__(self, dependencies=None, dev_dependencies=None, apply_writes=True):
        self.dependencies = dict(dependencies or {})
        self.dev_dependencies = dict(dev_dependencies or {})
        self.apply_writes = apply_writes
        self.reads = 0
        self.writes = []

    def read(self):
        self.reads += 1
        return Manifest(dict(self.dependencies), dict(self.dev_dependencies))

    def write(self, edits):
        self.writes.append(dict(edits))
        if not self.apply_writes:
            return
        for name, version in edits.items():
            for section in (self.dependencies, self.dev_dependencies):
                if name in section:
                    section[name] = version


def make_installer():
    installer = AsyncMock()
    installer.run.return_value = ProcessResult(exit_code=0)
    return installer


def make_orchestrator(manifest, installer=None, **config):
    config = SessionConfig(manifest_path="package.json", **config)
    return Orchestrator(config, manifest=manifest, installer=installer or make_installer())


class TestScanning:
    """Sessions that end at the first scan."""

    @pytest.mark.asyncio
    async def test_no_conflicts_skips_installer(self):
        installer = make_installer()
        manifest = FakeManifest({"a": "^1.2.0", "b": "^1.3.0"})

        report = await make_orchestrator(manifest, installer).run()

        assert report.outcome is SessionOutcome.NO_CONFLICTS
        assert report.edits == {}
        installer.run.assert_not_called()
        assert manifest.writes == []

    @pytest.mark.asyncio
    async def test_second_run_is_noop(self):
        installer = make_installer()
        manifest = FakeManifest({"a": "1.0.0", "b": "1.5.0"})

        first = await make_orchestrator(manifest, installer).run()
        assert first.outcome is SessionOutcome.RESOLVED

        installer.run.reset_mock()
        manifest.writes.clear()
        second = await make_orchestrator(manifest, installer).run()

        assert second.outcome is SessionOutcome.NO_CONFLICTS
        assert second.edits == {}
        installer.run.assert_not_called()
        assert manifest.writes == []

    @pytest.mark.asyncio
    async def test_read_failure_is_reported(self):
        manifest = FakeManifest()

        def missing():
            raise ManifestNotFoundError("package.json not found")

        manifest.read = missing

        report = await make_orchestrator(manifest).run()

        assert report.outcome is SessionOutcome.MANIFEST_READ_FAILED
        assert "not found" in report.detail


class TestResolving:
    """Sessions that resolve and escalate."""

    @pytest.mark.asyncio
    async def test_unresolvable_carets_report_conflicts_remain(self):
        installer = make_installer()
        manifest = FakeManifest({"a": "^1.0.0", "b": "^2.0.0"})

        report = await make_orchestrator(manifest, installer).run()

        assert report.outcome is SessionOutcome.CONFLICTS_REMAIN
        assert len(report.conflicts) == 1
        installer.run.assert_not_called()
        resolution_events = [e for e in report.events if e.kind == "resolution"]
        assert resolution_events[0].data["resolved"] is False

    @pytest.mark.asyncio
    async def test_pinned_conflict_converges(self):
        installer = make_installer()
        manifest = FakeManifest({"a": "1.0.0"}, {"b": "1.5.0"})

        report = await make_orchestrator(manifest, installer).run()

        assert report.outcome is SessionOutcome.RESOLVED
        assert report.cycles == 1
        assert report.edits == {"a": "1.5.0"}
        assert report.package_manager == "npm"
        assert manifest.dependencies["a"] == "1.5.0"
        installer.run.assert_awaited_once_with("npm", ["a"])
        assert manifest.reads == 2

    @pytest.mark.asyncio
    async def test_yarn_detected_from_manifest(self):
        installer = make_installer()
        manifest = FakeManifest({"a": "1.0.0", "b": "1.5.0"}, {"yarn": "^1.0.0"})

        report = await make_orchestrator(manifest, installer).run()

        assert report.package_manager == "yarn"
        installer.run.assert_awaited_once_with("yarn", ["a"])

    @pytest.mark.asyncio
    async def test_package_manager_override(self):
        installer = make_installer()
        manifest = FakeManifest({"a": "1.0.0", "b": "1.5.0"})

        await make_orchestrator(manifest, installer, package_manager="yarn").run()

        installer.run.assert_awaited_once_with("yarn", ["a"])

    @pytest.mark.asyncio
    async def test_dry_run_plans_without_side_effects(self):
        installer = make_installer()
        manifest = FakeManifest({"a": "1.0.0", "b": "1.5.0"})

        report = await make_orchestrator(manifest, installer, dry_run=True).run()

        assert report.outcome is SessionOutcome.RESOLUTION_PLANNED
        assert report.edits == {"a": "1.5.0"}
        assert manifest.writes == []
        installer.run.assert_not_called()

    @pytest.mark.asyncio
    async def test_malformed_entry_does_not_block_others(self):
        installer = make_installer()
        manifest = FakeManifest({"a": "1.0.0", "b": "1.5.0", "bad": "latest"})

        report = await make_orchestrator(manifest, installer).run()

        assert report.outcome is SessionOutcome.CONFLICTS_REMAIN
        assert manifest.dependencies == {"a": "1.5.0", "b": "1.5.0", "bad": "latest"}
        assert all("bad" in pair.names for pair in report.conflicts)


class TestLoopBound:
    """The install/re-check loop always terminates."""

    @pytest.mark.asyncio
    async def test_three_exclusive_pins_stop_at_bound(self):
        installer = make_installer()
        manifest = FakeManifest({"a": "1.0.0", "b": "1.5.0", "c": "2.0.0"})

        report = await make_orchestrator(manifest, installer, max_cycles=1).run()

        assert report.outcome is SessionOutcome.CONFLICTS_REMAIN
        assert report.cycles == 1
        assert installer.run.await_count == 1
        with pytest.raises(LoopBoundExceededError):
            report.raise_for_outcome()

    @pytest.mark.asyncio
    async def test_edits_that_never_stick_stop_at_bound(self):
        installer = make_installer()
        manifest = FakeManifest({"a": "1.0.0", "b": "1.5.0"}, apply_writes=False)

        report = await make_orchestrator(manifest, installer, max_cycles=3).run()

        assert report.outcome is SessionOutcome.CONFLICTS_REMAIN
        assert report.cycles == 3
        assert installer.run.await_count == 3
        assert len(manifest.writes) == 3

    @pytest.mark.asyncio
    async def test_zero_cycles_never_installs(self):
        installer = make_installer()
        manifest = FakeManifest({"a": "1.0.0", "b": "1.5.0"})

        report = await make_orchestrator(manifest, installer, max_cycles=0).run()

        assert report.outcome is SessionOutcome.CONFLICTS_REMAIN
        installer.run.assert_not_called()


class TestEscalationFailures:
    """External failures end the session with a reason."""

    @pytest.mark.asyncio
    async def test_install_failure(self):
        installer = make_installer()
        installer.run.side_effect = InstallError(1, "npm ERR! code ERESOLVE")
        manifest = FakeManifest({"a": "1.0.0", "b": "1.5.0"})

        report = await make_orchestrator(manifest, installer).run()

        assert report.outcome is SessionOutcome.INSTALL_FAILED
        assert report.exit_code == 1
        assert "ERESOLVE" in report.detail
        assert installer.run.await_count == 1

    @pytest.mark.asyncio
    async def test_install_timeout(self):
        installer = make_installer()
        installer.run.side_effect = ResolutionTimeoutError(5.0, ["npm", "update", "a"])
        manifest = FakeManifest({"a": "1.0.0", "b": "1.5.0"})

        report = await make_orchestrator(manifest, installer, timeout=5.0).run()

        assert report.outcome is SessionOutcome.INSTALL_TIMED_OUT
        assert report.timeout == 5.0
        with pytest.raises(ResolutionTimeoutError):
            report.raise_for_outcome()

    @pytest.mark.asyncio
    async def test_write_failure(self):
        installer = make_installer()
        manifest = FakeManifest({"a": "1.0.0", "b": "1.5.0"})

        def broken_write(edits):
            raise ManifestWriteError("read-only file system")

        manifest.write = broken_write

        report = await make_orchestrator(manifest, installer).run()

        assert report.outcome is SessionOutcome.MANIFEST_WRITE_FAILED
        installer.run.assert_not_called()


class TestReport:
    """Stable, parseable session output."""

    @pytest.mark.asyncio
    async def test_report_serializes(self):
        manifest = FakeManifest({"a": "1.0.0", "b": "1.5.0"})

        report = await make_orchestrator(manifest).run()
        data = json.loads(report.to_json())

        assert data["outcome"] == "resolved"
        assert data["ok"] is True
        assert data["edits"] == {"a": "1.5.0"}
        kinds = [event["kind"] for event in data["events"]]
        assert kinds == ["conflict", "resolution", "edit", "install", "outcome"]


class TestEndToEnd:
    """Sessions against a real package.json on disk."""

    @pytest.mark.asyncio
    async def test_updates_file_and_keeps_other_fields(self, write_manifest):
        path = write_manifest(
            dependencies={"a": "1.0.0"},
            dev_dependencies={"b": "1.5.0"},
            scripts={"test": "jest"},
        )
        installer = make_installer()
        config = SessionConfig(manifest_path=path)

        report = await Orchestrator(config, installer=installer).run()

        assert report.outcome is SessionOutcome.RESOLVED
        document = json.loads(path.read_text())
        assert document["dependencies"] == {"a": "1.5.0"}
        assert document["devDependencies"] == {"b": "1.5.0"}
        assert document["scripts"] == {"test": "jest"}

    @pytest.mark.asyncio
    async def test_missing_file(self, tmp_path):
        config = SessionConfig(manifest_path=tmp_path / "package.json")

        report = await Orchestrator(config, installer=make_installer()).run()

        assert report.outcome is SessionOutcome.MANIFEST_READ_FAILED

    @pytest.mark.asyncio
    async def test_invalid_utf8_file(self, tmp_path):
        path = tmp_path / "package.json"
        path.write_bytes(b'{"dependencies": {"a": "\xff1.0.0"}}')
        installer = make_installer()

        report = await Orchestrator(SessionConfig(manifest_path=path), installer=installer).run()

        assert report.outcome is SessionOutcome.MANIFEST_READ_FAILED
        assert "UTF-8" in report.detail
        installer.run.assert_not_called()


def test_analyze_is_side_effect_free():
    analysis = analyze({"a": "1.0.0", "b": "1.5.0", "c": "^1.0.0"})

    assert analysis.edits == {"a": "1.5.0"}
    assert len(analysis.conflicts) == 1
    assert analysis.malformed == []
