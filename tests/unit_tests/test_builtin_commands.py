"""Tests for deepcmd.commands.builtin."""

from __future__ import annotations

import pytest

from deepcmd.commands.builtin import builtin_commands
from deepcmd.commands.expander import TemplateExpander
from deepcmd.commands.types import CommandCategory, CommandKind, CommandSource

DIFF = "diff --git a/x.py b/x.py\n+x = 2\n"


@pytest.fixture
def commands():
    return {descriptor.name: descriptor for descriptor in builtin_commands()}


@pytest.fixture
def expander():
    return TemplateExpander()


class TestBuiltinDescriptors:
    """Test the shape of the built-in command set."""

    def test_names_and_categories(self, commands):
        """Test that explain, review and test are provided with their categories."""
        assert list(commands) == ["explain", "review", "test"]
        assert commands["explain"].category is CommandCategory.ANALYSIS
        assert commands["review"].category is CommandCategory.ANALYSIS
        assert commands["test"].category is CommandCategory.TESTING

    def test_all_template_backed_and_read_only(self, commands):
        """Test built-ins expand templates and only request file reads."""
        for descriptor in commands.values():
            assert descriptor.source is CommandSource.BUILTIN
            assert descriptor.kind is CommandKind.TEMPLATE
            assert descriptor.permissions.read_files
            assert not descriptor.permissions.write_files
            assert not descriptor.permissions.execute_shell

    def test_arguments_are_optional(self, commands):
        """Test every built-in argument defaults to an empty string."""
        for descriptor in commands.values():
            for spec in descriptor.arguments:
                assert not spec.required
                assert spec.default == ""


class TestBuiltinTemplates:
    """Test rendering of the built-in prompts."""

    def test_review_prefers_diff_over_files(self, commands, expander, context):
        """Test that review embeds the diff and omits the file list when a diff exists."""
        body = commands["review"].template_body
        output = expander.expand(body, context.with_git_diff(DIFF).with_files(["a.py"]), {"file": ""})
        assert "Changes to review:" in output
        assert DIFF.strip() in output
        assert "Files to review:" not in output

    def test_review_lists_files_without_diff(self, commands, expander, context):
        """Test review falls back to listing the current files."""
        output = expander.expand(commands["review"].template_body, context.with_files(["a.py", "b.py"]), {"file": ""})
        assert "Files to review:\n- a.py\n- b.py" in output
        assert "File: " not in output

    def test_test_command_focuses_function(self, commands, expander, context):
        """Test that the test prompt names the file and function."""
        output = expander.expand(
            commands["test"].template_body, context, {"file": "src/app.py", "function": "parse", "code": ""}
        )
        assert "File: src/app.py" in output
        assert "Function: parse" in output
        assert "1. **Happy Path**" in output
