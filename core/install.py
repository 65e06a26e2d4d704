"""Package manager invocation."""

import asyncio
import contextlib
import logging
from dataclasses import dataclass, field
from pathlib import Path

from .detect import NPM, YARN
from .errors import InstallError, ResolutionTimeoutError

logger = logging.getLogger(__name__)


@dataclass
class ProcessRequest:
    """A command line to execute."""

    command: str
    args: list[str] = field(default_factory=list)
    timeout: float = 300.0
    cwd: Path | None = None

    @property
    def argv(self) -> list[str]:
        return [self.command, *self.args]


@dataclass
class ProcessResult:
    """Exit status and captured output of a finished process."""

    exit_code: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class ProcessRunner:
    """Runs external commands with a hard timeout."""

    async def run(self, request: ProcessRequest) -> ProcessResult:
        """Execute a command and wait for it to finish.

        Args:
            request: Command, arguments, timeout and working directory

        Returns:
            Exit code with captured stdout and stderr

        Raises:
            ResolutionTimeoutError: If the process outlives its timeout; it is killed
            FileNotFoundError: If the command does not exist
        """
        logger.debug("Running %s", " ".join(request.argv))
        process = await asyncio.create_subprocess_exec(
            *request.argv,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=request.cwd,
        )

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), request.timeout)
        except asyncio.TimeoutError:
            raise ResolutionTimeoutError(request.timeout, request.argv)
        finally:
            # also reached on cancellation
            if process.returncode is None:
                with contextlib.suppress(ProcessLookupError):
                    process.kill()
                await process.wait()

        return ProcessResult(
            exit_code=process.returncode,
            stdout=stdout.decode(errors="replace"),
            stderr=stderr.decode(errors="replace"),
        )


def build_command(
    package_manager: str, names: list[str], clean_install: bool = False
) -> list[str]:
    """Build the install/upgrade command line for a package manager.

    Args:
        package_manager: 'npm' or 'yarn'
        names: Packages to upgrade
        clean_install: Force a full reinstall instead of a targeted upgrade

    Returns:
        Command line as a list of arguments
    """
    if package_manager not in (NPM, YARN):
        raise ValueError(f"Unsupported package manager: {package_manager}")

    if clean_install:
        return [package_manager, "install", "--force"]
    if package_manager == YARN:
        return [YARN, "upgrade", *names]
    return [NPM, "update", *names]


class Installer:
    """Delegates installation of updated packages to npm or yarn."""

    def __init__(
        self,
        runner: ProcessRunner | None = None,
        timeout: float = 300.0,
        cwd: Path | None = None,
        clean_install: bool = False,
    ):
        self.runner = runner or ProcessRunner()
        self.timeout = timeout
        self.cwd = cwd
        self.clean_install = clean_install

    async def run(self, package_manager: str, names: list[str]) -> ProcessResult:
        """Upgrade the named packages.

        Raises:
            InstallError: If the package manager is missing or exits non-zero
            ResolutionTimeoutError: If the package manager exceeds the timeout
        """
        command, *args = build_command(package_manager, names, self.clean_install)
        request = ProcessRequest(command=command, args=args, timeout=self.timeout, cwd=self.cwd)

        try:
            result = await self.runner.run(request)
        except FileNotFoundError as e:
            raise InstallError(127, f"{command}: {e}") from e

        if not result.ok:
            raise InstallError(result.exit_code, result.stderr)

        logger.info("%s finished for %s", " ".join(request.argv[:2]), ", ".join(names))
        return result
