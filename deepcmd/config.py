"""Configuration, constants, and path helpers for deepcmd."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import dotenv

dotenv.load_dotenv()

logger = logging.getLogger(__name__)

# Extension of command definition files
COMMAND_FILE_EXTENSION = ".md"

# Maximum size for command files (100KB)
MAX_COMMAND_FILE_SIZE = 100 * 1024

# Quiet period before the watcher reloads the registry
DEFAULT_DEBOUNCE_MS = 300

# Environment variables templates may see via env.*
DEFAULT_ENV_ALLOWLIST: tuple[str, ...] = (
    "USER",
    "HOME",
    "SHELL",
    "LANG",
    "LC_ALL",
    "DEEPCMD_HOME",
    "DEEPCMD_MODEL",
)

_TRUTHY = {"1", "true", "yes", "on"}


def _find_project_root(start_path: Path | None = None) -> Path | None:
    """Find the project root by looking for .git directory.

    Args:
        start_path: Directory to start searching from. Defaults to current working directory.

    Returns:
        Path to the project root if found, None otherwise.
    """
    current = Path(start_path or Path.cwd()).resolve()

    for parent in [current, *list(current.parents)]:
        if (parent / ".git").exists():
            return parent

    return None


def _parse_debounce(raw: str | None) -> int:
    if raw is None or not raw.strip():
        return DEFAULT_DEBOUNCE_MS
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Invalid DEEPCMD_DEBOUNCE_MS=%r, using %d", raw, DEFAULT_DEBOUNCE_MS)
        return DEFAULT_DEBOUNCE_MS
    if value < 0:
        logger.warning("Negative DEEPCMD_DEBOUNCE_MS=%r, using %d", raw, DEFAULT_DEBOUNCE_MS)
        return DEFAULT_DEBOUNCE_MS
    return value


def _parse_timeout(raw: str | None) -> float | None:
    if raw is None or not raw.strip():
        return None
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Invalid DEEPCMD_AGENT_TIMEOUT=%r, ignoring", raw)
        return None
    return value if value > 0 else None


def _parse_allowlist(raw: str | None) -> tuple[str, ...]:
    names = list(DEFAULT_ENV_ALLOWLIST)
    if raw:
        for name in raw.split(","):
            name = name.strip()
            if name and name not in names:
                names.append(name)
    return tuple(names)


@dataclass
class Settings:
    """Settings and environment detection for the command system.

    Attributes:
        project_root: Current project root directory (if in a git project).
        workspace_root: Directory commands and agents operate in.
        commands_dir: Directory scanned for command definition files.
        recursive_scan: Whether subdirectories of commands_dir are scanned too.
        debounce_ms: Quiet period for the directory watcher, in milliseconds.
        env_allowlist: Environment variable names exposed to templates.
        agent_timeout: Wall-clock limit for one agent execution, in seconds.
        log_level: Level name for the ``deepcmd`` logger.
    """

    project_root: Path | None
    workspace_root: Path
    commands_dir: Path
    recursive_scan: bool = False
    debounce_ms: int = DEFAULT_DEBOUNCE_MS
    env_allowlist: tuple[str, ...] = field(default=DEFAULT_ENV_ALLOWLIST)
    agent_timeout: float | None = None
    log_level: str = "WARNING"

    @classmethod
    def from_environment(cls, *, start_path: Path | None = None) -> Settings:
        """Create settings by detecting the current environment.

        Args:
            start_path: Directory to start project detection from (defaults to cwd)

        Returns:
            Settings instance with detected configuration
        """
        project_root = _find_project_root(start_path)
        workspace_root = project_root or Path(start_path or Path.cwd()).resolve()

        commands_override = os.environ.get("DEEPCMD_COMMANDS_DIR")
        if commands_override:
            commands_dir = Path(commands_override).expanduser()
        elif project_root is not None:
            commands_dir = project_root / ".deepcmd" / "commands"
        else:
            commands_dir = Path.home() / ".deepcmd" / "commands"

        return cls(
            project_root=project_root,
            workspace_root=workspace_root,
            commands_dir=commands_dir,
            recursive_scan=os.environ.get("DEEPCMD_RECURSIVE_SCAN", "").strip().lower() in _TRUTHY,
            debounce_ms=_parse_debounce(os.environ.get("DEEPCMD_DEBOUNCE_MS")),
            env_allowlist=_parse_allowlist(os.environ.get("DEEPCMD_ENV_ALLOWLIST")),
            agent_timeout=_parse_timeout(os.environ.get("DEEPCMD_AGENT_TIMEOUT")),
            log_level=os.environ.get("DEEPCMD_LOG_LEVEL", "WARNING").upper(),
        )

    @property
    def has_project(self) -> bool:
        """Check if currently in a git project."""
        return self.project_root is not None

    @property
    def debounce_seconds(self) -> float:
        """Watcher quiet period in seconds."""
        return self.debounce_ms / 1000.0

    def get_global_commands_dir(self) -> Path:
        """Get global commands directory path.

        Returns:
            Path to ~/.deepcmd/commands/
        """
        return Path.home() / ".deepcmd" / "commands"

    def get_project_commands_dir(self) -> Path | None:
        """Get project-level commands directory path.

        Returns:
            Path to {project_root}/.deepcmd/commands/, or None if not in a project
        """
        if not self.project_root:
            return None
        return self.project_root / ".deepcmd" / "commands"

    def ensure_commands_dir(self) -> Path:
        """Ensure the configured commands directory exists and return its path."""
        self.commands_dir.mkdir(parents=True, exist_ok=True)
        return self.commands_dir


def configure_logging(level: str | int = "WARNING") -> logging.Logger:
    """Attach a stream handler to the ``deepcmd`` logger.

    Calling this more than once only updates the level.

    Args:
        level: Logging level name or number.

    Returns:
        The configured package logger.
    """
    package_logger = logging.getLogger("deepcmd")
    package_logger.setLevel(level)
    if not any(getattr(h, "_deepcmd_handler", False) for h in package_logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
        handler._deepcmd_handler = True  # type: ignore[attr-defined]
        package_logger.addHandler(handler)
    return package_logger
