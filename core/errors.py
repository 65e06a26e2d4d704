"""Error taxonomy for depmend."""


class DepmendError(Exception):
    """Base class for all depmend errors."""


class ManifestReadError(DepmendError):
    """The manifest could not be read."""


class ManifestNotFoundError(ManifestReadError):
    """The manifest file does not exist."""


class ManifestParseError(ManifestReadError):
    """The manifest exists but its content is not a usable package.json."""


class ManifestWriteError(DepmendError):
    """Updated versions could not be written back to the manifest."""


class MalformedVersionError(DepmendError):
    """A version-range specifier could not be parsed."""

    def __init__(self, spec: str, detail: str | None = None):
        self.spec = spec
        message = f"Malformed version specifier {spec!r}"
        if detail:
            message += f": {detail}"
        super().__init__(message)


class InstallError(DepmendError):
    """The package manager exited unsuccessfully."""

    def __init__(self, exit_code: int, stderr: str = ""):
        self.exit_code = exit_code
        self.stderr = stderr
        super().__init__(f"Package manager exited with code {exit_code}: {stderr.strip()}")


class ResolutionTimeoutError(DepmendError):
    """An external process did not finish within its timeout."""

    def __init__(self, timeout: float, command: list[str] | None = None):
        self.timeout = timeout
        self.command = command or []
        super().__init__(f"Installation timed out after {timeout:g}s")


class LoopBoundExceededError(DepmendError):
    """Conflicts remained after the maximum number of resolution cycles."""

    def __init__(self, cycles: int, remaining: int):
        self.cycles = cycles
        self.remaining = remaining
        super().__init__(
            f"{remaining} conflict(s) remain after {cycles} resolution cycle(s)"
        )
