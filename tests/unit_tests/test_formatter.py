"""Tests for deepcmd.commands.formatter."""

from __future__ import annotations

import json

import pytest

from deepcmd.agents.types import Analysis, CodeReview, Finding, Severity, Suggestion, Suggestions
from deepcmd.commands.formatter import (
    OutputFormat,
    escape_markdown,
    format_result,
    parse_result,
    result_from_dict,
    result_to_dict,
)

REVIEW = CodeReview(
    findings=(
        Finding(Severity.WARNING, "Long function", file="src/app.py", line=12, category="Code Quality"),
        Finding(Severity.ERROR, "Hardcoded secret", file="src/config.py", line=3, category="Security"),
        Finding(Severity.INFO, "Consider a constant"),
    )
)


class TestMarkdown:
    """Test Markdown output."""

    def test_empty_review(self):
        """Test empty review."""
        output = format_result(CodeReview())
        assert output.startswith("# Code Review")
        assert "✅ No issues found." in output

    def test_findings_grouped_by_severity(self):
        """Test findings grouped by severity."""
        output = format_result(REVIEW, OutputFormat.MARKDOWN)

        assert "Found 3 issue(s):" in output
        errors = output.index("## ❌ Errors (1)")
        warnings = output.index("## ⚠️  Warnings (1)")
        info = output.index("## ℹ️  Info (1)")
        assert errors < warnings < info
        assert "📍 Location: `src/config.py:3`" in output
        assert "**Security**: Hardcoded secret" in output
        assert "**Info**: Consider a constant" in output

    def test_user_text_is_escaped(self):
        """Test user text is escaped."""
        review = CodeReview(findings=(Finding(Severity.INFO, "use `eval` in *{{ x }}*"),))
        output = format_result(review)
        assert "use \\`eval\\` in \\*\\{\\{ x \\}\\}\\*" in output

    def test_analysis(self):
        """Test markdown rendering of an analysis."""
        output = format_result(Analysis(summary="All good", details={"files": "3"}))
        assert output.startswith("# Agent Analysis")
        assert "- **files**: 3" in output

    def test_suggestions_fence_outgrows_backticks(self):
        """Test suggestions fence outgrows backticks."""
        snippet = "print('```')"
        output = format_result(Suggestions(items=(Suggestion("Fix", "Because", code_snippet=snippet),)))
        assert "## 1. Fix" in output
        assert f"\n````\n{snippet}\n````\n" in output

    def test_empty_suggestions(self):
        """Test empty suggestions."""
        assert "💡 No suggestions available." in format_result(Suggestions())

    def test_escape_markdown(self):
        """Test escape markdown."""
        assert escape_markdown("a_b#c|d") == "a\\_b\\#c\\|d"

    def test_multiline_message_cannot_add_blocks(self):
        """Test that line-start markers in a message are escaped."""
        message = "first line\n---\n- injected item\n  + nested\n1. numbered"
        review = CodeReview(findings=(Finding(Severity.ERROR, message),))
        output = format_result(review)
        assert "**Error**: first line\n\\---\n\\- injected item\n  \\+ nested\n1\\. numbered\n" in output
        assert "\n---" not in output
        assert "\n- injected" not in output

    def test_multiline_summary_is_not_a_heading(self):
        """Test that a summary cannot underline itself into a heading."""
        output = format_result(Analysis(summary="ok\n===", details={"note": "a\n2) b"}))
        assert "ok\n\\===\n" in output
        assert "- **note**: a\n2\\) b\n" in output


class TestPlainText:
    """Test plain-text output."""

    def test_empty_review(self):
        """Test empty review."""
        output = format_result(CodeReview(), OutputFormat.PLAIN_TEXT)
        assert "No issues found." in output
        assert "✅" not in output

    def test_findings(self):
        """Test plain text rendering of findings."""
        output = format_result(REVIEW, "plain_text")
        assert "1. [WARNING] Code Quality: Long function" in output
        assert "   Location: src/app.py:12" in output
        assert "3. [INFO] Consider a constant" in output
        assert "**" not in output

    def test_suggestions_are_indented(self):
        """Test suggestions are indented."""
        output = format_result(
            Suggestions(items=(Suggestion("Rename", "Clarity", code_snippet="a = 1\nb = 2"),)), OutputFormat.PLAIN_TEXT
        )
        assert "   Code change:\n   a = 1\n   b = 2" in output


class TestJson:
    """Test JSON output."""

    def test_empty_review(self):
        """Test empty review."""
        assert json.loads(format_result(CodeReview(), OutputFormat.JSON)) == {
            "type": "code_review",
            "findings": [],
            "count": 0,
        }

    def test_finding_shape(self):
        """Test finding shape."""
        data = json.loads(format_result(REVIEW, OutputFormat.JSON))
        assert data["count"] == 3
        assert data["findings"][0] == {
            "severity": "warning",
            "message": "Long function",
            "file": "src/app.py",
            "line": 12,
            "category": "Code Quality",
        }

    def test_non_ascii_is_preserved(self):
        """Test non ascii is preserved."""
        output = format_result(Analysis(summary="café"), OutputFormat.JSON)
        assert "café" in output

    @pytest.mark.parametrize(
        "result",
        [
            REVIEW,
            Analysis(summary="s", details={"k": "v"}),
            Suggestions(items=(Suggestion("t", "r"), Suggestion("t2", "r2", code_snippet="x"))),
        ],
    )
    def test_round_trip(self, result):
        """Test that JSON output parses back into the same result."""
        assert parse_result(format_result(result, OutputFormat.JSON)) == result
        assert result_from_dict(result_to_dict(result)) == result

    @pytest.mark.parametrize(
        "data",
        [
            {"type": "unknown"},
            {"type": "code_review", "findings": [{"message": "no severity"}]},
            {"type": "code_review", "findings": [{"severity": "fatal", "message": "m"}]},
            ["not", "a", "mapping"],
        ],
    )
    def test_malformed_input(self, data):
        """Test malformed input."""
        with pytest.raises(ValueError):
            result_from_dict(data)

    def test_invalid_json_text(self):
        """Test invalid json text."""
        with pytest.raises(ValueError):
            parse_result("{not json")

    def test_unknown_format(self):
        """Test unknown format."""
        with pytest.raises(ValueError):
            format_result(CodeReview(), "yaml")
