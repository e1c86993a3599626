"""Command loader for reading command definitions from a directory.

Each command is a markdown file in the commands directory containing:
- YAML front-matter (name, description, category required; args, permissions,
  agent, agent_id, activation_hints, aliases optional)
- Markdown content that serves as the prompt template

Layout:
```
commands/
├── greet.md
├── review-security.md
└── team/              # only scanned when recursive scanning is enabled
    └── deploy-notes.md
```

One bad file never blocks the others: per-file failures are collected and
logged, only a failure to read the directory itself is raised.
"""

from __future__ import annotations

import logging
from pathlib import Path

from deepcmd.commands.parser import parse_command
from deepcmd.commands.types import CommandDescriptor
from deepcmd.config import COMMAND_FILE_EXTENSION, MAX_COMMAND_FILE_SIZE
from deepcmd.errors import DefinitionError, RegistryError

logger = logging.getLogger(__name__)


def _is_safe_path(path: Path, base_dir: Path) -> bool:
    """Check if a path is safely contained within base_dir.

    Both paths are resolved (following symlinks) so a symlink pointing outside
    the commands directory is rejected.

    Args:
        path: The path to validate
        base_dir: The base directory that should contain the path

    Returns:
        True if the path is safely within base_dir, False otherwise
    """
    try:
        path.resolve().relative_to(base_dir.resolve())
        return True
    except (ValueError, OSError, RuntimeError):
        return False


def is_command_file(path: str | Path) -> bool:
    """Check whether a path has the command definition extension."""
    return Path(path).suffix.lower() == COMMAND_FILE_EXTENSION


def read_command_file(command_md_path: Path) -> CommandDescriptor:
    """Read and parse a single command definition file.

    Args:
        command_md_path: Path to the command .md file.

    Returns:
        The parsed CommandDescriptor.

    Raises:
        DefinitionError: If the file is too large, unreadable, or invalid.
    """
    try:
        file_size = command_md_path.stat().st_size
        if file_size > MAX_COMMAND_FILE_SIZE:
            raise DefinitionError(
                f"File is {file_size} bytes, larger than the {MAX_COMMAND_FILE_SIZE} byte limit",
                path=command_md_path,
            )
        content = command_md_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise DefinitionError(f"Could not read definition: {exc}", path=command_md_path) from exc

    return parse_command(content, path=command_md_path)


def list_command_files(commands_dir: Path, *, recursive: bool = False) -> list[Path]:
    """List definition files in a commands directory, sorted by path.

    Args:
        commands_dir: Directory to scan.
        recursive: Whether to descend into subdirectories.

    Returns:
        Sorted list of definition file paths contained in the directory.

    Raises:
        RegistryError: If the directory cannot be read.
    """
    commands_dir = commands_dir.expanduser()
    if not commands_dir.is_dir():
        raise RegistryError(f"Commands directory does not exist: {commands_dir}", directory=commands_dir)

    try:
        resolved_base = commands_dir.resolve()
        candidates = commands_dir.rglob("*") if recursive else commands_dir.iterdir()
        files = [
            candidate
            for candidate in candidates
            if is_command_file(candidate) and candidate.is_file() and _is_safe_path(candidate, resolved_base)
        ]
    except OSError as exc:
        raise RegistryError(f"Failed to scan {commands_dir}: {exc}", directory=commands_dir) from exc

    return sorted(files)


def load_commands_from_dir(
    commands_dir: Path, *, recursive: bool = False
) -> tuple[list[CommandDescriptor], list[DefinitionError]]:
    """Parse every definition file in a commands directory.

    Args:
        commands_dir: Directory to scan.
        recursive: Whether to descend into subdirectories.

    Returns:
        Tuple of (descriptors in sorted path order, per-file errors).

    Raises:
        RegistryError: If the directory itself cannot be read.
    """
    descriptors: list[CommandDescriptor] = []
    errors: list[DefinitionError] = []

    for command_file in list_command_files(commands_dir, recursive=recursive):
        try:
            descriptors.append(read_command_file(command_file))
        except DefinitionError as exc:
            logger.warning("Skipping command definition %s: %s", command_file, exc.reason)
            errors.append(exc)

    logger.debug(
        "Loaded %d command definitions from %s (%d skipped)", len(descriptors), commands_dir, len(errors)
    )
    return descriptors, errors
