"""Source inspection through git and a dependency audit report."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import structlog

from deployer.config import ToolSettings
from deployer.domain.errors import ActionError
from deployer.domain.ports.services import DependencyAdvisory, SourceFile, SourceInspector
from deployer.infrastructure.tools.shell import CommandRunner


logger = structlog.get_logger(__name__)

# Larger files are almost always generated or binary
MAX_SCAN_BYTES = 1_000_000


def parse_audit_report(payload: Any) -> list[DependencyAdvisory]:
    """Read advisories from ``npm audit --json`` output or a plain list.

    The plain form is ``[{"name": ..., "severity": ..., "title": ...}]``.
    """
    if isinstance(payload, list):
        return [
            DependencyAdvisory(
                name=str(item.get("name", "unknown")),
                severity=str(item.get("severity", "unknown")),
                title=str(item.get("title", "")),
            )
            for item in payload
            if isinstance(item, dict)
        ]
    if isinstance(payload, dict) and isinstance(payload.get("vulnerabilities"), dict):
        advisories = []
        for name, vuln in payload["vulnerabilities"].items():
            via = vuln.get("via") or []
            titles = [v.get("title", "") for v in via if isinstance(v, dict)]
            advisories.append(DependencyAdvisory(
                name=name,
                severity=str(vuln.get("severity", "unknown")),
                title=titles[0] if titles else "",
            ))
        return advisories
    raise ValueError("unrecognised dependency audit report format")


class GitSourceInspector(SourceInspector):
    def __init__(self, runner: CommandRunner, settings: ToolSettings) -> None:
        self._runner = runner
        self._settings = settings

    def changed_files(self) -> list[SourceFile]:
        result = self._runner.run_checked(
            "diff", "git diff --name-only --diff-filter=ACMR {ref}",
            ref=self._settings.diff_base_ref,
        )
        root = Path(self._settings.workdir)
        files: list[SourceFile] = []
        for name in result.stdout.splitlines():
            path = root / name.strip()
            if not name.strip() or not path.is_file() or path.stat().st_size > MAX_SCAN_BYTES:
                continue
            try:
                content = path.read_text(encoding="utf-8")
            except UnicodeDecodeError:
                continue
            files.append(SourceFile(path=name.strip(), content=content))
        logger.info("changed_files_collected", count=len(files), base=self._settings.diff_base_ref)
        return files

    def dependency_advisories(self) -> list[DependencyAdvisory]:
        report = self._settings.dependency_audit_report
        if not report:
            return []
        path = Path(self._settings.workdir) / report
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
            return parse_audit_report(payload)
        except FileNotFoundError as e:
            raise ActionError("dependency audit", f"report {path} not found") from e
        except ValueError as e:
            raise ActionError("dependency audit", f"report {path} is unreadable: {e}") from e
