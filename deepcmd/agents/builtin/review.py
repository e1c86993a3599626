"""Code review agent for quality and best-practice heuristics."""

from __future__ import annotations

import re
from pathlib import PurePath

from deepcmd.agents.builtin.base import FileScanningAgent
from deepcmd.agents.permissions import AgentPermissions
from deepcmd.agents.types import Finding, Severity

BINARY_EXTENSIONS = frozenset(
    {"exe", "dll", "so", "dylib", "bin", "jpg", "jpeg", "png", "gif", "pdf", "zip", "tar", "gz", "whl", "pyc"}
)

MAX_FUNCTION_LINES = 50

_COMMENT_PREFIXES = ("#", "//", "*", "/*")
_PY_DEF = re.compile(r"^(\s*)(?:async\s+)?def\s+\w+")
_BRACE_DEF = re.compile(r"^\s*(?:pub\s+)?(?:async\s+)?(?:fn|func|function)\s+\w+")
_MAGIC_NUMBER = re.compile(r"(?:==|!=|<=|>=|<|>|=)\s*-?(?:[2-9]|\d{2,})(?:\.\d+)?\b")
_CONSTANT_ASSIGNMENT = re.compile(r"^\s*[A-Z][A-Z0-9_]*\s*(?::[^=]*)?=")
_SINGLE_LETTER = re.compile(r"^\s*(?:let\s+(?:mut\s+)?)?([A-Za-z])\s*(?::[^=]*)?=(?!=)")
_ALLOWED_SINGLE_LETTERS = {"i", "j", "k", "x", "y", "n", "_"}


def _is_comment(stripped: str) -> bool:
    return stripped.startswith(_COMMENT_PREFIXES)


class ReviewAgent(FileScanningAgent):
    """Heuristic reviewer for readability, error handling and duplication."""

    agent_id = "review"
    agent_name = "Code Review Agent"
    agent_description = (
        "Performs comprehensive code review focusing on quality, maintainability, and best practices"
    )
    keywords = ("review", "check", "analyze", "quality", "lint")
    keyword_weight = 0.25
    default_permissions = AgentPermissions.read_only(max_iterations=5)

    def wants_file(self, path: PurePath) -> bool:
        return path.suffix.lower().lstrip(".") not in BINARY_EXTENSIONS

    def scan(self, content: str, path: str) -> list[Finding]:
        lines = content.splitlines()
        findings: list[Finding] = []
        findings.extend(self._check_long_functions(lines, path))
        findings.extend(self._check_magic_numbers(lines, path))
        findings.extend(self._check_error_handling(lines, path))
        findings.extend(self._check_naming(lines, path))
        findings.extend(self._check_duplication(lines, path))
        return findings

    def _long_function(self, length: int, start: int, path: str) -> Finding:
        return Finding(
            severity=Severity.WARNING,
            message=f"Function is {length} lines long. Consider breaking it into smaller functions",
            file=path,
            line=start + 1,
            category="Code Quality",
        )

    def _check_long_functions(self, lines: list[str], path: str) -> list[Finding]:
        findings = []

        # Indentation-delimited definitions
        index = 0
        while index < len(lines):
            match = _PY_DEF.match(lines[index])
            if match is None:
                index += 1
                continue
            indent = len(match.group(1))
            end = index + 1
            last_body = index
            while end < len(lines):
                line = lines[end]
                if line.strip():
                    if len(line) - len(line.lstrip()) <= indent:
                        break
                    last_body = end
                end += 1
            length = last_body - index + 1
            if length > MAX_FUNCTION_LINES:
                findings.append(self._long_function(length, index, path))
            index += 1

        # Brace-delimited definitions
        start = None
        depth = 0
        for index, line in enumerate(lines):
            if start is None and _BRACE_DEF.match(line):
                start, depth = index, 0
            if start is not None:
                depth += line.count("{") - line.count("}")
                if depth <= 0 and "}" in line:
                    length = index - start + 1
                    if length > MAX_FUNCTION_LINES:
                        findings.append(self._long_function(length, start, path))
                    start = None

        return findings

    def _check_magic_numbers(self, lines: list[str], path: str) -> list[Finding]:
        findings = []
        for index, line in enumerate(lines):
            stripped = line.strip()
            if _is_comment(stripped) or _CONSTANT_ASSIGNMENT.match(line):
                continue
            if "const " in line or "static " in line:
                continue
            if _MAGIC_NUMBER.search(line):
                findings.append(
                    Finding(
                        severity=Severity.INFO,
                        message="Consider extracting magic number into a named constant",
                        file=path,
                        line=index + 1,
                        category="Maintainability",
                    )
                )
        return findings

    def _check_error_handling(self, lines: list[str], path: str) -> list[Finding]:
        findings = []
        for index, line in enumerate(lines):
            stripped = line.strip()
            if _is_comment(stripped):
                continue
            if stripped.startswith("except:"):
                findings.append(
                    Finding(
                        severity=Severity.WARNING,
                        message="Avoid bare 'except:'. Catch the specific exceptions you expect",
                        file=path,
                        line=index + 1,
                        category="Error Handling",
                    )
                )
            if stripped.startswith("except") and index + 1 < len(lines) and lines[index + 1].strip() == "pass":
                findings.append(
                    Finding(
                        severity=Severity.WARNING,
                        message="Exception is silently swallowed. Log it or handle it explicitly",
                        file=path,
                        line=index + 1,
                        category="Error Handling",
                    )
                )
            if ".unwrap()" in stripped:
                findings.append(
                    Finding(
                        severity=Severity.WARNING,
                        message="Avoid using .unwrap(). Consider using proper error handling with ?",
                        file=path,
                        line=index + 1,
                        category="Error Handling",
                    )
                )
            if "panic!(" in stripped:
                findings.append(
                    Finding(
                        severity=Severity.ERROR,
                        message="Avoid using panic!() in library code. Return Result instead",
                        file=path,
                        line=index + 1,
                        category="Error Handling",
                    )
                )
        return findings

    def _check_naming(self, lines: list[str], path: str) -> list[Finding]:
        findings = []
        for index, line in enumerate(lines):
            if _is_comment(line.strip()):
                continue
            match = _SINGLE_LETTER.match(line)
            if match and match.group(1) not in _ALLOWED_SINGLE_LETTERS:
                findings.append(
                    Finding(
                        severity=Severity.INFO,
                        message=f"Variable '{match.group(1)}' has a single-letter name. "
                        "Consider a more descriptive name",
                        file=path,
                        line=index + 1,
                        category="Naming",
                    )
                )
        return findings

    def _check_duplication(self, lines: list[str], path: str) -> list[Finding]:
        occurrences: dict[str, list[int]] = {}
        for index, line in enumerate(lines):
            stripped = line.strip()
            if not stripped or _is_comment(stripped):
                continue
            occurrences.setdefault(stripped, []).append(index + 1)

        return [
            Finding(
                severity=Severity.INFO,
                message=f"Line appears {len(line_numbers)} times. "
                "Consider extracting into a function or constant",
                file=path,
                line=line_numbers[0],
                category="Duplication",
            )
            for text, line_numbers in occurrences.items()
            if len(line_numbers) >= 3 and len(text) > 20
        ]
