"""Session configuration."""

from dataclasses import dataclass
from pathlib import Path

from .detect import PACKAGE_MANAGERS

DEFAULT_TIMEOUT = 300.0
DEFAULT_MAX_CYCLES = 1


@dataclass
class SessionConfig:
    """Settings for one resolution session against one manifest."""

    manifest_path: Path
    timeout: float = DEFAULT_TIMEOUT  # seconds allowed for each package manager run
    max_cycles: int = DEFAULT_MAX_CYCLES  # install + re-check passes
    package_manager: str | None = None  # overrides detection
    clean_install: bool = False
    dry_run: bool = False

    def __post_init__(self):
        self.manifest_path = Path(self.manifest_path)
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")
        if self.max_cycles < 0:
            raise ValueError("max_cycles cannot be negative")
        if self.package_manager is not None and self.package_manager not in PACKAGE_MANAGERS:
            raise ValueError(
                f"package_manager must be one of {', '.join(PACKAGE_MANAGERS)}"
            )

    @property
    def project_dir(self) -> Path:
        return self.manifest_path.parent
