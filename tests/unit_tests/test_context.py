"""Tests for deepcmd.commands.context."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from deepcmd.commands.context import (
    ConversationSnapshot,
    ExecutionContext,
    MessageSummary,
    collect_safe_env_vars,
    get_git_diff,
)
from deepcmd.config import Settings


class TestCollectSafeEnvVars:
    """Test environment filtering."""

    def test_only_allowlisted_names(self):
        """Test only allowlisted names."""
        environ = {"USER": "alice", "HOME": "/home/alice", "AWS_SECRET_ACCESS_KEY": "hunter2"}
        assert collect_safe_env_vars(["USER", "HOME", "LANG"], environ) == {"USER": "alice", "HOME": "/home/alice"}

    def test_reads_process_environment_by_default(self, monkeypatch):
        """Test reads process environment by default."""
        monkeypatch.setenv("DEEPCMD_MODEL", "test-model")
        assert collect_safe_env_vars(["DEEPCMD_MODEL"]) == {"DEEPCMD_MODEL": "test-model"}


class TestExecutionContext:
    """Test context construction."""

    def test_environment_is_filtered_on_construction(self, tmp_path):
        """Test environment is filtered on construction."""
        context = ExecutionContext(
            workspace_root=tmp_path,
            environment_variables={"USER": "alice", "SECRET": "x"},
            env_allowlist=("USER",),
        )
        assert dict(context.environment_variables) == {"USER": "alice"}

    def test_environment_is_read_only(self, tmp_path):
        """Test environment is read only."""
        context = ExecutionContext(workspace_root=tmp_path)
        with pytest.raises(TypeError):
            context.environment_variables["USER"] = "mallory"  # type: ignore[index]

    def test_from_environment_uses_settings(self, tmp_path):
        """Test from environment uses settings."""
        settings = Settings(
            project_root=None,
            workspace_root=tmp_path,
            commands_dir=tmp_path / "commands",
            env_allowlist=("USER",),
        )
        context = ExecutionContext.from_environment(settings=settings, environ={"USER": "bob", "HOME": "/h"})
        assert context.workspace_root == tmp_path
        assert dict(context.environment_variables) == {"USER": "bob"}
        assert context.env_allowlist == ("USER",)

    def test_with_env_keeps_allowlist(self, tmp_path):
        """Test with env keeps allowlist."""
        context = ExecutionContext(workspace_root=tmp_path, env_allowlist=("USER",))
        updated = context.with_env({"USER": "carol", "PATH": "/bin"})
        assert dict(updated.environment_variables) == {"USER": "carol"}

    def test_builders_return_copies(self, tmp_path):
        """Test builders return copies."""
        context = ExecutionContext(workspace_root=tmp_path)
        updated = context.with_files([Path("a.py"), "b.py"]).with_git_diff("diff")
        assert context.current_files == ()
        assert context.git_diff is None
        assert updated.current_files == ("a.py", "b.py")
        assert updated.git_diff == "diff"

    def test_template_namespace(self, tmp_path):
        """Test template namespace."""
        conversation = ConversationSnapshot.from_messages(
            [MessageSummary(role="user", content="hi")], conversation_id="c1"
        )
        context = (
            ExecutionContext(workspace_root=tmp_path, environment_variables={"USER": "alice"}, env_allowlist=("USER",))
            .with_files(["a.py"])
            .with_conversation(conversation)
        )

        namespace = context.template_namespace({"file": "a.py"})

        assert namespace["args"] == {"file": "a.py"}
        assert namespace["env"] == {"USER": "alice"}
        assert namespace["git_diff"] is None
        assert namespace["workspace_root"] == str(tmp_path)
        assert namespace["files"] == ["a.py"]
        assert namespace["conversation"]["conversation_id"] == "c1"
        assert namespace["conversation"]["messages"][0]["content"] == "hi"

    def test_namespace_omits_absent_conversation(self, tmp_path):
        """Test namespace omits absent conversation."""
        namespace = ExecutionContext(workspace_root=tmp_path).template_namespace({})
        assert "conversation" not in namespace


class TestGetGitDiff:
    """Test git diff collection."""

    @pytest.mark.asyncio
    async def test_git_not_installed(self, tmp_path):
        """Test git not installed."""
        with patch("deepcmd.commands.context._run_git", AsyncMock(side_effect=FileNotFoundError("git"))):
            assert await get_git_diff(tmp_path) == (False, "")

    @pytest.mark.asyncio
    async def test_not_a_repository(self, tmp_path):
        """Test not a repository."""
        with patch("deepcmd.commands.context._run_git", AsyncMock(return_value=(128, ""))):
            assert await get_git_diff(tmp_path) == (False, "")

    @pytest.mark.asyncio
    async def test_returns_diff(self, tmp_path):
        """Test that git diff output is returned as text."""
        run_git = AsyncMock(side_effect=[(0, "true\n"), (0, "diff --git a/x b/x\n")])
        with patch("deepcmd.commands.context._run_git", run_git):
            assert await get_git_diff(tmp_path) == (True, "diff --git a/x b/x\n")
        assert run_git.await_args_list[1].args == (tmp_path, "diff")

    @pytest.mark.asyncio
    async def test_unexpected_failure_raises(self, tmp_path):
        """Test unexpected failure raises."""
        run_git = AsyncMock(side_effect=[(0, "true\n"), (129, "")])
        with patch("deepcmd.commands.context._run_git", run_git), pytest.raises(OSError, match="129"):
            await get_git_diff(tmp_path)
