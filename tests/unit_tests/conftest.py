"""Shared fixtures for deepcmd unit tests."""

from __future__ import annotations

import textwrap
from collections.abc import Callable
from pathlib import Path

import pytest

from deepcmd.commands.context import ExecutionContext


@pytest.fixture
def commands_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "commands"
    directory.mkdir()
    return directory


@pytest.fixture
def write_command(commands_dir: Path) -> Callable[..., Path]:
    """Write a definition file into the commands directory."""

    def _write(filename: str, content: str, directory: Path | None = None) -> Path:
        target = (directory or commands_dir) / filename
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(textwrap.dedent(content).lstrip(), encoding="utf-8")
        return target

    return _write


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    root = tmp_path / "workspace"
    root.mkdir()
    return root


@pytest.fixture
def context(workspace: Path) -> ExecutionContext:
    return ExecutionContext(workspace_root=workspace, environment_variables={"USER": "alice"}, env_allowlist=("USER",))


@pytest.fixture
def greet_command(write_command: Callable[..., Path]) -> Path:
    return write_command(
        "greet.md",
        """
        ---
        name: greet
        description: Greet someone by name
        category: custom
        args:
          - name: who
            required: true
        ---

        Hello {{ args.who }}!
        """,
    )
