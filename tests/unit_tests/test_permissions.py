"""Tests for deepcmd.agents.permissions."""

from __future__ import annotations

import pytest

from deepcmd.agents.permissions import AgentPermissions, FileAccess, matches_pattern
from deepcmd.commands.types import CommandPermissions


class TestMatchesPattern:
    """Test glob matching of workspace-relative paths."""

    @pytest.mark.parametrize(
        ("path", "pattern", "expected"),
        [
            ("a.py", "*.py", True),
            ("pkg/a.py", "*.py", True),
            ("a.py", "**/*.py", True),
            ("pkg/sub/a.py", "**/*.py", True),
            ("src/a.py", "src/*", True),
            ("tests/a.py", "src/*", False),
            (".env", ".env*", True),
            ("a.txt", "*.py", False),
        ],
    )
    def test_patterns(self, path, pattern, expected):
        """Test glob matching of workspace paths."""
        assert matches_pattern(path, pattern) is expected


class TestAgentPermissions:
    """Test capability checks."""

    def test_defaults_are_restrictive(self):
        """Test defaults are restrictive."""
        permissions = AgentPermissions()
        assert permissions.file_access is FileAccess.NONE
        assert not permissions.shell_execution
        assert not permissions.network_access
        assert permissions.max_iterations == 5
        assert not permissions.can_read_file("a.py")

    def test_read_only(self):
        """Test read only."""
        permissions = AgentPermissions.read_only(max_iterations=10)
        assert permissions.file_access is FileAccess.READ_ONLY
        assert permissions.max_iterations == 10
        assert permissions.can_read_file("a.py")
        assert not permissions.can_write_file("a.py")

    def test_write_requires_allow_match(self):
        """Test write requires allow match."""
        permissions = AgentPermissions(file_access=FileAccess.READ_WRITE, allow_patterns=("src/*",))
        assert permissions.can_write_file("src/a.py")
        assert not permissions.can_write_file("docs/a.md")

    def test_deny_blocks_read_and_write(self):
        """Test deny blocks read and write."""
        permissions = AgentPermissions(file_access=FileAccess.READ_WRITE, deny_patterns=(".env*", "**/secrets/*"))
        assert not permissions.can_read_file(".env")
        assert not permissions.can_write_file(".env.local")
        assert not permissions.can_read_file("config/secrets/key.pem")
        assert permissions.can_read_file("config/settings.toml")

    def test_negative_iterations_rejected(self):
        """Test negative iterations rejected."""
        with pytest.raises(ValueError, match="max_iterations"):
            AgentPermissions(max_iterations=-1)

    def test_file_access_rank(self):
        """Test file access rank."""
        assert FileAccess.NONE.rank < FileAccess.READ_ONLY.rank < FileAccess.READ_WRITE.rank


class TestNarrow:
    """Test intersection with command permissions."""

    def test_command_without_permissions_removes_everything(self):
        """Test command without permissions removes everything."""
        agent = AgentPermissions(
            file_access=FileAccess.READ_WRITE, shell_execution=True, network_access=True, max_iterations=7
        )
        narrowed = agent.narrow(CommandPermissions())
        assert narrowed.file_access is FileAccess.NONE
        assert not narrowed.shell_execution
        assert not narrowed.network_access
        assert narrowed.max_iterations == 7

    def test_command_cannot_widen_agent(self):
        """Test command cannot widen agent."""
        agent = AgentPermissions.read_only()
        narrowed = agent.narrow(
            CommandPermissions(read_files=True, write_files=True, execute_shell=True, network=True)
        )
        assert narrowed.file_access is FileAccess.READ_ONLY
        assert not narrowed.shell_execution
        assert not narrowed.network_access

    def test_write_agent_narrowed_to_read(self):
        """Test write agent narrowed to read."""
        agent = AgentPermissions(file_access=FileAccess.READ_WRITE, shell_execution=True)
        narrowed = agent.narrow(CommandPermissions(read_files=True, execute_shell=True))
        assert narrowed.file_access is FileAccess.READ_ONLY
        assert narrowed.shell_execution
