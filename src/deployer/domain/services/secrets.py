"""Secret pattern matching for the security scan gate."""

from __future__ import annotations

import re

from deployer.domain.models.base import ValueObject
from deployer.domain.ports.services import SourceFile


SECRET_PATTERNS: dict[str, re.Pattern[str]] = {
    "aws_access_key": re.compile(r"\b(AKIA|ASIA)[0-9A-Z]{16}\b"),
    "stripe_live_key": re.compile(r"\b(sk|rk)_live_[0-9a-zA-Z]{16,}\b"),
    "github_token": re.compile(r"\bgh[pousr]_[0-9A-Za-z]{36,}\b"),
    "slack_token": re.compile(r"\bxox[abposr]-[0-9A-Za-z-]{10,}\b"),
    "private_key": re.compile(r"-----BEGIN (RSA |EC |DSA |OPENSSH |PGP )?PRIVATE KEY-----"),
    "hardcoded_credential": re.compile(
        r"""(?i)\b(password|passwd|secret|api[_-]?key|auth[_-]?token)\b\s*[:=]\s*["'][^"'\s]{8,}["']"""
    ),
}

# Example and template files are expected to contain placeholder values
IGNORED_SUFFIXES = (".example", ".sample", ".template", ".md")


class SecretFinding(ValueObject):
    path: str
    line: int
    pattern: str


def scan_file(source: SourceFile) -> list[SecretFinding]:
    """Report every line of ``source`` matching a secret pattern."""
    if source.path.endswith(IGNORED_SUFFIXES):
        return []
    findings: list[SecretFinding] = []
    for lineno, line in enumerate(source.content.splitlines(), start=1):
        for name, pattern in SECRET_PATTERNS.items():
            if pattern.search(line):
                findings.append(SecretFinding(path=source.path, line=lineno, pattern=name))
    return findings


def scan_files(sources: list[SourceFile]) -> list[SecretFinding]:
    findings: list[SecretFinding] = []
    for source in sources:
        findings.extend(scan_file(source))
    return findings
