"""Security analysis agent for common vulnerability patterns."""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import PurePath

from deepcmd.agents.builtin.base import FileScanningAgent
from deepcmd.agents.permissions import AgentPermissions
from deepcmd.agents.types import Finding, Severity

CODE_EXTENSIONS = frozenset(
    {"rs", "py", "js", "ts", "jsx", "tsx", "java", "go", "php", "rb", "c", "cpp", "cs", "swift", "kt"}
)


@dataclass(frozen=True)
class VulnerabilityPattern:
    """A line-level regex signature for one class of vulnerability."""

    name: str
    pattern: re.Pattern[str]
    severity: Severity
    references: tuple[str, ...]
    description: str
    remediation: str


VULNERABILITY_PATTERNS: tuple[VulnerabilityPattern, ...] = (
    VulnerabilityPattern(
        name="SQL Injection",
        pattern=re.compile(
            r"""(?i)(SELECT|INSERT|UPDATE|DELETE).*['"].*\+|execute\(|query.*=.*['"].*\+|WHERE.*=.*['"].*\+"""
        ),
        severity=Severity.ERROR,
        references=("CWE-89",),
        description="Potential SQL injection vulnerability detected. String concatenation in SQL "
        "queries can allow attackers to inject malicious SQL code.",
        remediation="Use parameterized queries or prepared statements instead of string concatenation.",
    ),
    VulnerabilityPattern(
        name="Cross-Site Scripting (XSS)",
        pattern=re.compile(r"(?i)(innerHTML|outerHTML|document\.write|eval)\s*=.*\+|dangerouslySetInnerHTML"),
        severity=Severity.ERROR,
        references=("CWE-79",),
        description="Potential XSS vulnerability. Unescaped user input in HTML context can allow "
        "attackers to inject malicious scripts.",
        remediation="Sanitize and escape all user input before inserting into HTML. "
        "Use framework-provided safe methods.",
    ),
    VulnerabilityPattern(
        name="Weak Cryptography (MD5)",
        pattern=re.compile(r"(?i)md5\s*\(|crypto::md5|hashlib\.md5"),
        severity=Severity.WARNING,
        references=("CWE-327",),
        description="MD5 is cryptographically broken and should not be used for security purposes.",
        remediation="Use SHA-256 or SHA-3 for hashing. For passwords, use bcrypt, scrypt, or Argon2.",
    ),
    VulnerabilityPattern(
        name="Weak Cryptography (SHA1)",
        pattern=re.compile(r"(?i)sha1\s*\(|crypto::sha1|hashlib\.sha1"),
        severity=Severity.WARNING,
        references=("CWE-327",),
        description="SHA1 is deprecated and vulnerable to collision attacks.",
        remediation="Use SHA-256 or SHA-3 instead.",
    ),
    VulnerabilityPattern(
        name="Hardcoded Secret",
        pattern=re.compile(r"""(?i)(password|secret|api_key|apikey|private_key|token)\s*=\s*["'][^"']{8,}["']"""),
        severity=Severity.ERROR,
        references=("CWE-798",),
        description="Hardcoded credentials or secrets detected in source code.",
        remediation="Store secrets in environment variables or secure vaults. "
        "Never commit secrets to version control.",
    ),
    VulnerabilityPattern(
        name="Insecure Deserialization",
        pattern=re.compile(r"(?i)(pickle\.loads|yaml\.load\(|unserialize|ObjectInputStream)"),
        severity=Severity.ERROR,
        references=("CWE-502",),
        description="Insecure deserialization can lead to remote code execution.",
        remediation="Use safe deserialization methods (yaml.safe_load) or validate input thoroughly.",
    ),
    VulnerabilityPattern(
        name="Command Injection",
        pattern=re.compile(r"(?i)(os\.system|subprocess\.call|exec|shell_exec|system)\s*\([^)]*\+|`.*\$"),
        severity=Severity.ERROR,
        references=("CWE-78",),
        description="Potential command injection. User input in shell commands can allow arbitrary "
        "command execution.",
        remediation="Avoid shell=True in subprocess. Use argument arrays and validate input.",
    ),
    VulnerabilityPattern(
        name="Path Traversal",
        pattern=re.compile(r"""(?i)(open|readFile|read_file|fopen)\s*\([^)]*\+|path.*=.*['"/].*\+|join.*\.\."""),
        severity=Severity.WARNING,
        references=("CWE-22",),
        description="Potential path traversal vulnerability. User-controlled file paths may access "
        "unauthorized files.",
        remediation="Validate and sanitize file paths. Resolve them and check against allowed directories.",
    ),
    VulnerabilityPattern(
        name="Server-Side Request Forgery (SSRF)",
        pattern=re.compile(r"(?i)(requests\.get|urllib\.request|fetch|http\.get)\s*\([^)]*\+"),
        severity=Severity.WARNING,
        references=("CWE-918",),
        description="Potential SSRF vulnerability. User-controlled URLs in HTTP requests may access "
        "internal resources.",
        remediation="Validate and allow-list permitted URLs. Never trust user input for URL construction.",
    ),
)

_COMMENT_PREFIXES = ("//", "#", "/*")


class SecurityAgent(FileScanningAgent):
    """Regex-based scanner for injection, weak crypto, secrets and similar issues."""

    agent_id = "security"
    agent_name = "Security Analysis Agent"
    agent_description = (
        "Scans code for security vulnerabilities including SQL injection, XSS, weak crypto, "
        "hardcoded secrets, and more"
    )
    keywords = (
        "security",
        "vulnerability",
        "vulnerabilities",
        "audit",
        "secure",
        "exploit",
        "cve",
        "sql injection",
        "xss",
    )
    keyword_weight = 0.3
    default_permissions = AgentPermissions.read_only(max_iterations=10)

    def wants_file(self, path: PurePath) -> bool:
        return path.suffix.lower().lstrip(".") in CODE_EXTENSIONS

    def scan(self, content: str, path: str) -> list[Finding]:
        findings = []
        for pattern in VULNERABILITY_PATTERNS:
            for index, line in enumerate(content.splitlines()):
                if line.strip().startswith(_COMMENT_PREFIXES):
                    continue
                if pattern.pattern.search(line):
                    findings.append(
                        Finding(
                            severity=pattern.severity,
                            message=f"{pattern.description}\n\nRemediation: {pattern.remediation}"
                            f"\n\nReference: {', '.join(pattern.references)}",
                            file=path,
                            line=index + 1,
                            category=f"Security - {pattern.name}",
                        )
                    )
        return findings
