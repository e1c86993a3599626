"""Permission-checked access to side effects for agents.

Every operation checks the agent's permissions before doing anything, then
spends one unit of the ``max_iterations`` budget. A denied operation raises
``ToolkitPermissionError``; it is never silently skipped.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path

from deepcmd.agents.permissions import AgentPermissions, FileAccess
from deepcmd.errors import AgentExecutionError, IterationLimitExceeded, ToolkitPermissionError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandOutput:
    """Captured result of a command run through the toolkit."""

    stdout: str
    stderr: str
    exit_code: int | None


class AgentToolkit:
    """Mediator through which an agent reads files, writes files and runs commands.

    Paths are interpreted relative to the workspace root; anything resolving
    outside it is denied.

    Attributes:
        agent_id: Agent the toolkit was issued to.
        permissions: Effective permissions for this execution.
        workspace_root: Directory all operations are confined to.
    """

    def __init__(self, agent_id: str, permissions: AgentPermissions, workspace_root: Path) -> None:
        self.agent_id = agent_id
        self.permissions = permissions
        self.workspace_root = Path(workspace_root).resolve()
        self._iterations = 0

    @property
    def iterations_used(self) -> int:
        return self._iterations

    @property
    def remaining_iterations(self) -> int:
        return max(0, self.permissions.max_iterations - self._iterations)

    def _deny(self, operation: str, detail: str) -> ToolkitPermissionError:
        logger.warning("Denied %s for agent '%s': %s", operation, self.agent_id, detail)
        return ToolkitPermissionError(operation, detail, agent_id=self.agent_id)

    def _consume(self) -> None:
        if self._iterations >= self.permissions.max_iterations:
            raise IterationLimitExceeded(self.permissions.max_iterations, agent_id=self.agent_id)
        self._iterations += 1

    def _resolve(self, operation: str, path: str | Path) -> tuple[Path, str]:
        candidate = Path(path)
        if not candidate.is_absolute():
            candidate = self.workspace_root / candidate
        resolved = candidate.resolve()
        try:
            relative = resolved.relative_to(self.workspace_root)
        except ValueError:
            raise self._deny(operation, f"{path} is outside the workspace") from None
        return resolved, relative.as_posix()

    def relative_path(self, path: str | Path) -> str:
        """Return ``path`` relative to the workspace, or unchanged if it lies outside."""
        resolved = (self.workspace_root / path).resolve()
        try:
            return resolved.relative_to(self.workspace_root).as_posix()
        except ValueError:
            return str(path)

    async def read_file(self, path: str | Path) -> str:
        """Read a text file.

        Args:
            path: File path, relative to the workspace or absolute inside it.

        Returns:
            File content, decoded as UTF-8 (undecodable bytes replaced).

        Raises:
            ToolkitPermissionError: If reading is not permitted.
            IterationLimitExceeded: If the operation budget is spent.
            AgentExecutionError: If the file cannot be read.
        """
        resolved, relative = self._resolve("read_file", path)
        if not self.permissions.can_read_file(relative):
            raise self._deny("read_file", f"cannot read {relative}")
        self._consume()
        try:
            data = await asyncio.to_thread(resolved.read_bytes)
        except OSError as exc:
            raise AgentExecutionError(f"Failed to read {relative}: {exc}", agent_id=self.agent_id) from exc
        return data.decode("utf-8", errors="replace")

    async def write_file(self, path: str | Path, content: str) -> None:
        """Write a text file, creating parent directories.

        Raises:
            ToolkitPermissionError: If writing is not permitted.
            IterationLimitExceeded: If the operation budget is spent.
            AgentExecutionError: If the file cannot be written.
        """
        resolved, relative = self._resolve("write_file", path)
        if not self.permissions.can_write_file(relative):
            raise self._deny("write_file", f"cannot write {relative}")
        self._consume()

        def _write() -> None:
            resolved.parent.mkdir(parents=True, exist_ok=True)
            resolved.write_text(content, encoding="utf-8")

        try:
            await asyncio.to_thread(_write)
        except OSError as exc:
            raise AgentExecutionError(f"Failed to write {relative}: {exc}", agent_id=self.agent_id) from exc

    async def list_files(self, directory: str | Path = ".", *, recursive: bool = False) -> list[str]:
        """List readable files under a directory.

        Returns:
            Sorted workspace-relative POSIX paths; denied paths are left out.

        Raises:
            ToolkitPermissionError: If the agent has no file access.
            IterationLimitExceeded: If the operation budget is spent.
        """
        resolved, relative = self._resolve("list_files", directory)
        if self.permissions.file_access is FileAccess.NONE:
            raise self._deny("list_files", f"cannot list {relative}")
        self._consume()

        def _list() -> list[str]:
            entries = resolved.rglob("*") if recursive else resolved.iterdir()
            found = []
            for entry in entries:
                if not entry.is_file():
                    continue
                entry_relative = entry.relative_to(self.workspace_root).as_posix()
                if self.permissions.can_read_file(entry_relative):
                    found.append(entry_relative)
            return sorted(found)

        try:
            return await asyncio.to_thread(_list)
        except OSError as exc:
            raise AgentExecutionError(f"Failed to list {relative}: {exc}", agent_id=self.agent_id) from exc

    async def run_command(self, command: str, *args: str, timeout: float | None = None) -> CommandOutput:
        """Run a program in the workspace root.

        Args:
            command: Program to execute (no shell interpretation).
            *args: Program arguments.
            timeout: Seconds before the process is killed.

        Returns:
            Captured output and exit code.

        Raises:
            ToolkitPermissionError: If shell execution is not permitted.
            IterationLimitExceeded: If the operation budget is spent.
            AgentExecutionError: If the program cannot be started or times out.
        """
        if not self.permissions.shell_execution:
            raise self._deny("run_command", "shell execution not allowed")
        self._consume()

        try:
            process = await asyncio.create_subprocess_exec(
                command,
                *args,
                cwd=str(self.workspace_root),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise AgentExecutionError(f"Failed to start '{command}': {exc}", agent_id=self.agent_id) from exc

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout)
        except asyncio.TimeoutError as exc:
            process.kill()
            await process.wait()
            raise AgentExecutionError(
                f"Command '{command}' timed out after {timeout:g}s", agent_id=self.agent_id
            ) from exc

        return CommandOutput(
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
            exit_code=process.returncode,
        )

    def require_network(self, purpose: str = "network access") -> None:
        """Assert that the agent may use the network before it does so.

        Raises:
            ToolkitPermissionError: If network access is not permitted.
            IterationLimitExceeded: If the operation budget is spent.
        """
        if not self.permissions.network_access:
            raise self._deny("network", f"{purpose} not allowed")
        self._consume()
