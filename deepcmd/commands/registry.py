"""Command registry for managing and resolving slash commands.

The registry holds an immutable snapshot of every known command: the
built-in commands, any programmatically registered ones, and the commands
loaded from the commands directory. A reload builds a complete new snapshot
and installs it with a single reference assignment, so readers never lock
and never observe a half-built map.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType

from deepcmd.commands.builtin import builtin_commands
from deepcmd.commands.load import load_commands_from_dir
from deepcmd.commands.types import CommandCategory, CommandDescriptor, CommandSource
from deepcmd.errors import DefinitionError, RegistryError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegistrySnapshot:
    """One consistent view of the registry."""

    commands: Mapping[str, CommandDescriptor] = field(default_factory=lambda: MappingProxyType({}))
    """Read-only mapping from command name to descriptor."""

    aliases: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    """Read-only mapping from alias to command name."""

    generation: int = 0
    """Number of successful swaps before this snapshot was installed."""

    skipped: tuple[DefinitionError, ...] = ()
    """Definition files rejected while building this snapshot."""

    def resolve(self, name: str) -> CommandDescriptor | None:
        descriptor = self.commands.get(name)
        if descriptor is None and name in self.aliases:
            descriptor = self.commands.get(self.aliases[name])
        return descriptor


def _build_snapshot(
    builtins: Iterable[CommandDescriptor],
    registered: Iterable[CommandDescriptor],
    loaded: Iterable[CommandDescriptor],
    errors: Iterable[DefinitionError],
    generation: int,
) -> RegistrySnapshot:
    commands: dict[str, CommandDescriptor] = {}
    for descriptor in builtins:
        commands[descriptor.name] = descriptor
    for descriptor in registered:
        commands[descriptor.name] = descriptor

    skipped = list(errors)
    user_defined: dict[str, CommandDescriptor] = {}
    for descriptor in loaded:
        first = user_defined.get(descriptor.name)
        if first is not None:
            error = DefinitionError(
                f"Duplicate command name '{descriptor.name}' (already defined in {first.path})",
                path=descriptor.path,
            )
            logger.warning("Skipping command definition %s: %s", descriptor.path, error.reason)
            skipped.append(error)
            continue
        replaced = commands.get(descriptor.name)
        if replaced is not None and replaced.source is CommandSource.BUILTIN:
            logger.info("Command /%s from %s overrides the built-in command", descriptor.name, descriptor.path)
        user_defined[descriptor.name] = descriptor
        commands[descriptor.name] = descriptor

    aliases: dict[str, str] = {}
    for descriptor in commands.values():
        for alias in descriptor.aliases:
            if alias in commands:
                logger.debug("Ignoring alias '%s' of /%s: a command has that name", alias, descriptor.name)
                continue
            aliases.setdefault(alias, descriptor.name)

    return RegistrySnapshot(
        commands=MappingProxyType(commands),
        aliases=MappingProxyType(aliases),
        generation=generation,
        skipped=tuple(skipped),
    )


class CommandRegistry:
    """Central registry for all slash commands.

    Readers (``get``, ``resolve``, ``list``) take the current snapshot without
    locking. Writers (``reload``, ``register``) are serialized by a lock and
    publish a new snapshot in one assignment.

    Attributes:
        commands_dir: Directory definitions are loaded from, if any.
        recursive: Whether subdirectories are scanned.
    """

    def __init__(
        self,
        commands_dir: Path | None = None,
        *,
        recursive: bool = False,
        include_builtins: bool = True,
    ) -> None:
        """Initialize an empty registry holding only the built-in commands.

        Args:
            commands_dir: Directory definitions are loaded from on reload.
            recursive: Whether subdirectories are scanned.
            include_builtins: Whether the built-in commands are part of every snapshot.
        """
        self.commands_dir = commands_dir
        self.recursive = recursive
        self._builtins: tuple[CommandDescriptor, ...] = builtin_commands() if include_builtins else ()
        self._registered: dict[str, CommandDescriptor] = {}
        self._loaded: tuple[CommandDescriptor, ...] = ()
        self._loaded_errors: tuple[DefinitionError, ...] = ()
        self._write_lock = threading.Lock()
        self._snapshot = _build_snapshot(self._builtins, (), (), (), generation=0)

    @classmethod
    def load(
        cls,
        directory: Path,
        *,
        recursive: bool = False,
        include_builtins: bool = True,
    ) -> CommandRegistry:
        """Create a registry and load every definition in ``directory``.

        The directory is created if it does not exist yet.

        Args:
            directory: Commands directory.
            recursive: Whether subdirectories are scanned.
            include_builtins: Whether the built-in commands are included.

        Returns:
            The loaded registry.

        Raises:
            RegistryError: If the directory cannot be created or read.
        """
        directory = Path(directory).expanduser()
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise RegistryError(f"Cannot create commands directory {directory}: {exc}", directory=directory) from exc

        registry = cls(directory, recursive=recursive, include_builtins=include_builtins)
        registry.reload()
        return registry

    @property
    def snapshot(self) -> RegistrySnapshot:
        """The snapshot currently being served."""
        return self._snapshot

    @property
    def generation(self) -> int:
        return self._snapshot.generation

    @property
    def skipped(self) -> list[DefinitionError]:
        """Definition errors from the build that produced the current snapshot."""
        return list(self._snapshot.skipped)

    def reload(self, directory: Path | None = None) -> RegistrySnapshot:
        """Rebuild the command map from disk and swap it in.

        Per-file definition errors are logged and skipped. If the directory
        itself cannot be read, nothing is swapped and the previous snapshot
        keeps serving.

        Args:
            directory: New commands directory; defaults to the configured one.

        Returns:
            The newly installed snapshot.

        Raises:
            RegistryError: If the directory cannot be read.
        """
        with self._write_lock:
            target = Path(directory).expanduser() if directory is not None else self.commands_dir
            logger.debug("Reloading commands from %s", target)

            if target is None:
                loaded, errors = [], []
            else:
                loaded, errors = load_commands_from_dir(target, recursive=self.recursive)

            snapshot = _build_snapshot(
                self._builtins,
                self._registered.values(),
                loaded,
                errors,
                generation=self._snapshot.generation + 1,
            )
            self.commands_dir = target
            self._loaded = tuple(loaded)
            self._loaded_errors = tuple(errors)
            self._snapshot = snapshot

        logger.info(
            "Command registry reloaded: %d commands, %d skipped (generation %d)",
            len(snapshot.commands),
            len(snapshot.skipped),
            snapshot.generation,
        )
        return snapshot

    def register(self, descriptor: CommandDescriptor) -> None:
        """Register a command programmatically.

        Registered commands survive reloads; a definition file with the same
        name takes precedence.

        Args:
            descriptor: Command to add or replace.
        """
        with self._write_lock:
            self._registered[descriptor.name] = descriptor
            self._snapshot = _build_snapshot(
                self._builtins,
                self._registered.values(),
                self._loaded,
                self._loaded_errors,
                generation=self._snapshot.generation + 1,
            )

    def get(self, name: str) -> CommandDescriptor | None:
        """Look up a command by its exact name."""
        return self._snapshot.commands.get(name)

    def resolve(self, name: str) -> CommandDescriptor | None:
        """Look up a command by name or alias.

        Args:
            name: Command name or alias to look up.

        Returns:
            The descriptor if found, None otherwise.
        """
        return self._snapshot.resolve(name)

    def list(self) -> list[CommandDescriptor]:
        """Return every command, sorted by name."""
        snapshot = self._snapshot
        return [snapshot.commands[name] for name in sorted(snapshot.commands)]

    def names(self) -> list[str]:
        return sorted(self._snapshot.commands)

    def filter_by_category(self, category: CommandCategory | str) -> list[CommandDescriptor]:
        """Return the commands in one category, sorted by name.

        Args:
            category: Category member or its string value.

        Returns:
            Matching descriptors.
        """
        wanted = category if isinstance(category, CommandCategory) else CommandCategory.normalize(category)
        return [descriptor for descriptor in self.list() if descriptor.category is wanted]

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self._snapshot.resolve(name) is not None

    def __len__(self) -> int:
        return len(self._snapshot.commands)
