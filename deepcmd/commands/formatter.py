"""Agent result formatting for different output formats.

Three presentations are supported:
- Markdown: grouped by severity, for interactive display
- JSON: round-trippable structure for programmatic consumers
- PlainText: bracketed severity labels and no markup, for piped output
"""

from __future__ import annotations

import json
import re
from enum import Enum
from typing import Any

from typing_extensions import TypedDict

from deepcmd.agents.types import AgentResult, Analysis, CodeReview, Finding, Severity, Suggestion, Suggestions


class OutputFormat(str, Enum):
    """Presentation format for agent results."""

    MARKDOWN = "markdown"
    JSON = "json"
    PLAIN_TEXT = "plain_text"


_MARKDOWN_SPECIAL = re.compile(r"([\\`*_{}\[\]<>#|!])")
_LINE_START_MARKER = re.compile(r"^([ \t]*)([-+=~])", re.MULTILINE)
_LINE_START_ORDINAL = re.compile(r"^([ \t]*\d+)([.)])", re.MULTILINE)
_BACKTICK_RUN = re.compile(r"`+")

_SEVERITY_HEADINGS = {
    Severity.ERROR: "❌ Errors",
    Severity.WARNING: "⚠️  Warnings",
    Severity.INFO: "ℹ️  Info",
}

_SEVERITY_LABELS = {
    Severity.ERROR: "ERROR",
    Severity.WARNING: "WARNING",
    Severity.INFO: "INFO",
}


class FindingDict(TypedDict):
    """JSON shape of a finding."""

    severity: str
    message: str
    file: str | None
    line: int | None
    category: str | None


class SuggestionDict(TypedDict):
    """JSON shape of a suggestion."""

    title: str
    rationale: str
    code_snippet: str | None


def escape_markdown(text: str) -> str:
    """Backslash-escape markdown control characters and template delimiters.

    Block markers at the start of a line are escaped too, so multi-line text
    cannot open a list, a rule or a setext heading.
    """
    escaped = _MARKDOWN_SPECIAL.sub(r"\\\1", text)
    escaped = _LINE_START_MARKER.sub(r"\1\\\2", escaped)
    return _LINE_START_ORDINAL.sub(r"\1\\\2", escaped)


def _fence_for(text: str) -> str:
    longest = max((len(run) for run in _BACKTICK_RUN.findall(text)), default=0)
    return "`" * max(3, longest + 1)


def _inline_code(text: str) -> str:
    longest = max((len(run) for run in _BACKTICK_RUN.findall(text)), default=0)
    ticks = "`" * (longest + 1)
    if longest:
        return f"{ticks} {text} {ticks}"
    return f"{ticks}{text}{ticks}"


def _location(finding: Finding) -> str | None:
    if finding.file is None:
        return None
    line = "?" if finding.line is None else str(finding.line)
    return f"{finding.file}:{line}"


# Markdown


def _markdown_finding(finding: Finding) -> str:
    label = escape_markdown(finding.category) if finding.category else _SEVERITY_LABELS[finding.severity].title()
    output = f"**{label}**: {escape_markdown(finding.message)}\n"
    location = _location(finding)
    if location is not None:
        output += f"  📍 Location: {_inline_code(location)}\n"
    return output + "\n"


def _format_markdown(result: AgentResult) -> str:
    if isinstance(result, Analysis):
        output = f"# Agent Analysis\n\n{escape_markdown(result.summary)}\n"
        if result.details:
            output += "\n## Details\n\n"
            for key, value in result.details.items():
                output += f"- **{escape_markdown(key)}**: {escape_markdown(value)}\n"
        return output

    if isinstance(result, CodeReview):
        output = "# Code Review\n\n"
        if not result.findings:
            return output + "✅ No issues found.\n"
        output += f"Found {len(result.findings)} issue(s):\n\n"
        for severity in (Severity.ERROR, Severity.WARNING, Severity.INFO):
            group = [finding for finding in result.findings if finding.severity is severity]
            if group:
                output += f"## {_SEVERITY_HEADINGS[severity]} ({len(group)})\n\n"
                output += "".join(_markdown_finding(finding) for finding in group)
        return output

    output = "# Suggestions\n\n"
    if not result.items:
        return output + "💡 No suggestions available.\n"
    for number, suggestion in enumerate(result.items, start=1):
        output += f"## {number}. {escape_markdown(suggestion.title)}\n\n"
        output += f"{escape_markdown(suggestion.rationale)}\n"
        if suggestion.code_snippet is not None:
            fence = _fence_for(suggestion.code_snippet)
            output += f"\n{fence}\n{suggestion.code_snippet}\n{fence}\n"
        output += "\n"
    return output


# JSON


def _finding_to_dict(finding: Finding) -> FindingDict:
    return {
        "severity": finding.severity.value,
        "message": finding.message,
        "file": finding.file,
        "line": finding.line,
        "category": finding.category,
    }


def _suggestion_to_dict(suggestion: Suggestion) -> SuggestionDict:
    return {
        "title": suggestion.title,
        "rationale": suggestion.rationale,
        "code_snippet": suggestion.code_snippet,
    }


def result_to_dict(result: AgentResult) -> dict[str, Any]:
    """Convert a result into a JSON-compatible mapping tagged with its ``type``."""
    if isinstance(result, Analysis):
        return {"type": result.type, "summary": result.summary, "details": dict(result.details)}
    if isinstance(result, CodeReview):
        return {
            "type": result.type,
            "findings": [_finding_to_dict(finding) for finding in result.findings],
            "count": len(result.findings),
        }
    return {
        "type": result.type,
        "items": [_suggestion_to_dict(item) for item in result.items],
        "count": len(result.items),
    }


def result_from_dict(data: dict[str, Any]) -> AgentResult:
    """Rebuild a result from the mapping produced by ``result_to_dict``.

    Raises:
        ValueError: If the mapping has an unknown type or a malformed entry.
    """
    if not isinstance(data, dict):
        raise ValueError("Agent result must be a JSON object")
    kind = data.get("type")
    try:
        if kind == Analysis.type:
            return Analysis(
                summary=str(data["summary"]),
                details={str(key): str(value) for key, value in (data.get("details") or {}).items()},
            )
        if kind == CodeReview.type:
            return CodeReview(
                findings=tuple(
                    Finding(
                        severity=Severity(item["severity"]),
                        message=str(item["message"]),
                        file=item.get("file"),
                        line=item.get("line"),
                        category=item.get("category"),
                    )
                    for item in data.get("findings") or []
                )
            )
        if kind == Suggestions.type:
            return Suggestions(
                items=tuple(
                    Suggestion(
                        title=str(item["title"]),
                        rationale=str(item["rationale"]),
                        code_snippet=item.get("code_snippet"),
                    )
                    for item in data.get("items") or []
                )
            )
    except (KeyError, TypeError, AttributeError) as exc:
        raise ValueError(f"Malformed {kind} result: {exc}") from exc
    raise ValueError(f"Unknown agent result type: {kind!r}")


def parse_result(text: str) -> AgentResult:
    """Parse JSON produced by ``format_result(..., OutputFormat.JSON)``.

    Raises:
        ValueError: If the text is not valid JSON or not a known result shape.
    """
    return result_from_dict(json.loads(text))


# Plain text


def _format_plain(result: AgentResult) -> str:
    if isinstance(result, Analysis):
        output = f"Agent Analysis\n{'=' * 14}\n\n{result.summary}\n"
        if result.details:
            output += "\nDetails:\n\n"
            for key, value in result.details.items():
                output += f"- {key}: {value}\n"
        return output

    if isinstance(result, CodeReview):
        output = "Code Review\n===========\n\n"
        if not result.findings:
            return output + "No issues found.\n"
        output += f"Found {len(result.findings)} issue(s):\n\n"
        for number, finding in enumerate(result.findings, start=1):
            prefix = f"{finding.category}: " if finding.category else ""
            output += f"{number}. [{_SEVERITY_LABELS[finding.severity]}] {prefix}{finding.message}\n"
            location = _location(finding)
            if location is not None:
                output += f"   Location: {location}\n"
            output += "\n"
        return output

    output = "Suggestions\n===========\n\n"
    if not result.items:
        return output + "No suggestions available.\n"
    for number, suggestion in enumerate(result.items, start=1):
        output += f"{number}. {suggestion.title}\n\n"
        output += f"   {suggestion.rationale}\n"
        if suggestion.code_snippet is not None:
            indented = suggestion.code_snippet.replace("\n", "\n   ")
            output += f"\n   Code change:\n   {indented}\n"
        output += "\n"
    return output


def format_result(result: AgentResult, fmt: OutputFormat | str = OutputFormat.MARKDOWN) -> str:
    """Render an agent result in the requested format.

    Args:
        result: Result to render.
        fmt: Output format, as a member or its string value.

    Returns:
        The rendered text.
    """
    fmt = OutputFormat(fmt)
    if fmt is OutputFormat.JSON:
        return json.dumps(result_to_dict(result), ensure_ascii=False, indent=2)
    if fmt is OutputFormat.PLAIN_TEXT:
        return _format_plain(result)
    return _format_markdown(result)
