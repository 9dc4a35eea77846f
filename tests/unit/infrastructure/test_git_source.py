"""Unit tests for the git source inspector and audit report parsing."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from deployer.config import ToolSettings
from deployer.domain.errors import ActionError
from deployer.infrastructure.tools.git_source import GitSourceInspector, parse_audit_report
from deployer.infrastructure.tools.shell import CommandRunner


class TestParseAuditReport:
    def test_plain_list(self) -> None:
        advisories = parse_audit_report([
            {"name": "lodash", "severity": "critical", "title": "Prototype Pollution"},
            {"name": "minimist", "severity": "low"},
            "garbage",
        ])
        assert [(a.name, a.severity, a.title) for a in advisories] == [
            ("lodash", "critical", "Prototype Pollution"),
            ("minimist", "low", ""),
        ]

    def test_npm_audit_shape(self) -> None:
        payload = {
            "auditReportVersion": 2,
            "vulnerabilities": {
                "axios": {
                    "severity": "high",
                    "via": [{"title": "SSRF in axios"}, "follow-redirects"],
                },
                "follow-redirects": {"severity": "critical", "via": ["url-parse"]},
            },
        }
        advisories = parse_audit_report(payload)
        assert [(a.name, a.severity, a.title) for a in advisories] == [
            ("axios", "high", "SSRF in axios"),
            ("follow-redirects", "critical", ""),
        ]

    def test_unknown_shape(self) -> None:
        with pytest.raises(ValueError, match="unrecognised"):
            parse_audit_report({"advisories": []})


class TestGitSourceInspector:
    def test_no_audit_report_configured(self, tmp_path: Path) -> None:
        inspector = GitSourceInspector(CommandRunner(str(tmp_path)), ToolSettings(workdir=str(tmp_path)))
        assert inspector.dependency_advisories() == []

    def test_reads_audit_report(self, tmp_path: Path) -> None:
        (tmp_path / "audit.json").write_text(
            json.dumps([{"name": "openssl", "severity": "critical"}]), encoding="utf-8",
        )
        settings = ToolSettings(workdir=str(tmp_path), dependency_audit_report="audit.json")
        inspector = GitSourceInspector(CommandRunner(str(tmp_path)), settings)
        assert [a.name for a in inspector.dependency_advisories()] == ["openssl"]

    def test_missing_audit_report(self, tmp_path: Path) -> None:
        settings = ToolSettings(workdir=str(tmp_path), dependency_audit_report="audit.json")
        inspector = GitSourceInspector(CommandRunner(str(tmp_path)), settings)
        with pytest.raises(ActionError, match="not found"):
            inspector.dependency_advisories()

    def test_unreadable_audit_report(self, tmp_path: Path) -> None:
        (tmp_path / "audit.json").write_text("{oops", encoding="utf-8")
        settings = ToolSettings(workdir=str(tmp_path), dependency_audit_report="audit.json")
        inspector = GitSourceInspector(CommandRunner(str(tmp_path)), settings)
        with pytest.raises(ActionError, match="unreadable"):
            inspector.dependency_advisories()

    def test_changed_files_outside_repository(self, tmp_path: Path) -> None:
        settings = ToolSettings(workdir=str(tmp_path), diff_base_ref="origin/main")
        inspector = GitSourceInspector(CommandRunner(str(tmp_path)), settings)
        with pytest.raises(ActionError):
            inspector.changed_files()
